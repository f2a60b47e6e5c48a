"""
Tests for ActivityCalculator - per-category activity and income
"""

from datetime import date

from envelope_ledger.budget.activity import ActivityCalculator
from envelope_ledger.budget.engine import BudgetEngine
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.ledger.models import Account, Category, Split
from envelope_ledger.ledger.store import InMemoryLedgerStore
from envelope_ledger.transactions.service import TransactionService
from envelope_ledger.transactions.transfers import TransferService
from tests.helpers import usd


def test_activity_sums_signed_amounts_in_window(
    store: InMemoryLedgerStore,
    transactions: TransactionService,
    checking: Account,
    groceries: Category,
    jan: BudgetPeriod,
) -> None:
    transactions.create(checking.id, date(2025, 1, 1), usd("-60.00"), category_id=groceries.id)
    transactions.create(checking.id, date(2025, 1, 31), usd("-15.50"), category_id=groceries.id)
    transactions.create(checking.id, date(2025, 1, 20), usd("5.00"), category_id=groceries.id)
    # Outside the window on both sides
    transactions.create(checking.id, date(2024, 12, 31), usd("-99.00"), category_id=groceries.id)
    transactions.create(checking.id, date(2025, 2, 1), usd("-99.00"), category_id=groceries.id)

    calculator = ActivityCalculator(store)
    assert calculator.category_activity(groceries.id, jan) == usd("-70.50")


def test_split_lines_count_toward_their_own_categories(
    store: InMemoryLedgerStore,
    transactions: TransactionService,
    checking: Account,
    groceries: Category,
    dining: Category,
    jan: BudgetPeriod,
) -> None:
    transactions.create(
        checking.id,
        date(2025, 1, 12),
        usd("-100.00"),
        payee_name="Superstore",
        splits=[
            Split(category_id=groceries.id, amount=usd("-70.00")),
            Split(category_id=dining.id, amount=usd("-30.00")),
        ],
    )

    calculator = ActivityCalculator(store)
    assert calculator.category_activity(groceries.id, jan) == usd("-70.00")
    assert calculator.category_activity(dining.id, jan) == usd("-30.00")
    assert calculator.activity_by_category(jan) == {
        groceries.id: usd("-70.00"),
        dining.id: usd("-30.00"),
    }


def test_uncategorised_and_transfers_count_nowhere(
    store: InMemoryLedgerStore,
    transactions: TransactionService,
    transfers: TransferService,
    checking: Account,
    savings: Account,
    groceries: Category,
    jan: BudgetPeriod,
) -> None:
    transactions.create(checking.id, date(2025, 1, 3), usd("2500.00"), payee_name="Employer")
    transfers.create_transfer(checking.id, savings.id, usd("200.00"), date(2025, 1, 4))

    calculator = ActivityCalculator(store)
    assert calculator.activity_by_category(jan) == {}
    assert calculator.category_activity(groceries.id, jan) == Money.zero()


def test_income_is_every_positive_amount(
    store: InMemoryLedgerStore,
    transactions: TransactionService,
    checking: Account,
    groceries: Category,
    jan: BudgetPeriod,
) -> None:
    transactions.create(checking.id, date(2025, 1, 3), usd("2500.00"), payee_name="Employer")
    transactions.create(checking.id, date(2025, 1, 9), usd("12.00"), category_id=groceries.id)
    transactions.create(checking.id, date(2025, 1, 10), usd("-40.00"), category_id=groceries.id)
    transactions.create(checking.id, date(2025, 2, 3), usd("2500.00"), payee_name="Employer")

    assert ActivityCalculator(store).income_for_period(jan) == usd("2512.00")


def test_transfer_inflows_are_not_income(
    engine: BudgetEngine,
    transactions: TransactionService,
    transfers: TransferService,
    checking: Account,
    savings: Account,
    jan: BudgetPeriod,
) -> None:
    transactions.create(checking.id, date(2025, 1, 3), usd("2500.00"), payee_name="Employer")
    transfers.create_transfer(savings.id, checking.id, usd("300.00"), date(2025, 1, 4))

    assert engine.calculate_income_for_period(jan) == usd("2500.00")
    assert engine.get_budget_overview(jan).income == usd("2500.00")


def test_weekly_period_window(
    store: InMemoryLedgerStore,
    transactions: TransactionService,
    checking: Account,
    groceries: Category,
) -> None:
    week = BudgetPeriod.week_of(date(2025, 1, 15))  # Mon 13th .. Sun 19th
    transactions.create(checking.id, date(2025, 1, 12), usd("-1.00"), category_id=groceries.id)
    transactions.create(checking.id, date(2025, 1, 13), usd("-2.00"), category_id=groceries.id)
    transactions.create(checking.id, date(2025, 1, 19), usd("-3.00"), category_id=groceries.id)
    transactions.create(checking.id, date(2025, 1, 20), usd("-4.00"), category_id=groceries.id)

    assert ActivityCalculator(store).category_activity(groceries.id, week) == usd("-5.00")
