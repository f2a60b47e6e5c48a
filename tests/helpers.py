"""
Test Helper Functions - Builders and Assertions

Provides reusable builders for test data creation and custom assertions
for ledger-wide invariants.

Fun fact: The Builder pattern was formalized by the Gang of Four in 1994,
but test data builders were popularized by the growing programmer test
movement in the 2000s - we use them to keep tests readable and maintainable!
"""

from datetime import date, datetime, timezone

from envelope_ledger.budget.engine import BudgetEngine
from envelope_ledger.budget.invariants import zero_sum_holds
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.ledger.models import Split, Transaction, TransactionStatus

FIXED_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def usd(raw: str) -> Money:
    """Shorthand: usd("60.00") == Money(6000)"""
    return Money.parse(raw)


def build_transaction(
    transaction_id: str,
    account_id: str,
    amount: str,
    on_date: date = date(2025, 1, 10),
    category_id: str | None = None,
    status: TransactionStatus = TransactionStatus.PENDING,
    splits: list[tuple[str, str]] | None = None,
    transfer_transaction_id: str | None = None,
) -> Transaction:
    """
    Builder for a transaction model (not persisted)

    Args:
        amount: Human amount, e.g. "-60.00"
        splits: (category_id, amount) pairs

    Example:
        >>> txn = build_transaction("t1", "acc", "-60.00", category_id="groceries")
    """
    return Transaction(
        id=transaction_id,
        account_id=account_id,
        date=on_date,
        amount=usd(amount),
        category_id=category_id,
        status=status,
        splits=[Split(category_id=cid, amount=usd(a)) for cid, a in splits or []],
        transfer_transaction_id=transfer_transaction_id,
        created_at=FIXED_TIME,
        updated_at=FIXED_TIME,
    )


def assert_zero_sum(engine: BudgetEngine, period: BudgetPeriod) -> None:
    """Total on-budget balance == Available to Budget + everything budgeted"""
    total = engine.accounts.total_on_budget_balance()
    allocations = engine.allocations.list_for_period(period)
    atb = engine.get_available_to_budget(period)
    assert zero_sum_holds(total, allocations, atb), (
        f"zero-sum broken: total={total} atb={atb} "
        f"budgeted={[str(a.budgeted) for a in allocations]}"
    )
