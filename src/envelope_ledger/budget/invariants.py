"""
Budget Invariants - pure validation functions

Each function checks one rule and raises a typed error. The engine runs
all of them before touching the store, so a failed operation never
leaves a partial write behind.

Target: 100% test coverage
"""

from envelope_ledger.kernel.errors import (
    BudgetValidation,
    CategoryNotFound,
    InsufficientFunds,
    NegativeBudget,
)
from envelope_ledger.kernel.money import Money, sum_money
from envelope_ledger.ledger.models import BudgetAllocation, Category
from envelope_ledger.ledger.store import LedgerStore


def validate_category_exists(store: LedgerStore, category_id: str) -> Category:
    """
    Ensure a category exists and return it

    Raises:
        CategoryNotFound: If no category has this id
    """
    category = store.get_category(category_id)
    if category is None:
        raise CategoryNotFound(category_id)
    return category


def validate_non_negative_budget(allocation: BudgetAllocation) -> None:
    """
    Ensure an allocation's budgeted amount is not negative

    Raises:
        NegativeBudget: If budgeted < 0
    """
    if allocation.budgeted.is_negative():
        raise NegativeBudget(
            allocation.category_id, str(allocation.period), allocation.budgeted.cents
        )


def validate_move_amount(amount: Money) -> None:
    """
    Moves carry a positive amount; direction comes from the argument order

    Raises:
        BudgetValidation: If amount is negative
    """
    if amount.is_negative():
        raise BudgetValidation(
            f"Move amount must be positive, got {amount}. Swap source and destination instead."
        )


def validate_distinct_categories(from_category_id: str, to_category_id: str) -> None:
    """
    Raises:
        BudgetValidation: If source and destination are the same category
    """
    if from_category_id == to_category_id:
        raise BudgetValidation("Cannot move funds from a category to itself")


def validate_sufficient_funds(
    category: Category, allocation: BudgetAllocation, amount: Money
) -> None:
    """
    A move may take at most what the source category has budgeted

    Carryover and activity do not count: only budgeted money is movable.

    Raises:
        InsufficientFunds: If allocation.budgeted < amount
    """
    if allocation.budgeted < amount:
        raise InsufficientFunds(
            category=category.name,
            needed=amount.cents,
            available=allocation.budgeted.cents,
        )


def zero_sum_holds(
    total_on_budget: Money, allocations: list[BudgetAllocation], available_to_budget: Money
) -> bool:
    """
    Every dollar is either unassigned or budgeted to exactly one bucket

    Returns:
        True when total_on_budget == ATB + sum(budgeted)
    """
    return total_on_budget == available_to_budget + sum_money(a.budgeted for a in allocations)
