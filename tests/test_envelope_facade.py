"""
Tests for Envelope Façade - Public API

These tests verify that the Envelope façade provides a clean,
high-level API that works correctly against a real SQLite file.
"""

from datetime import date, datetime, timezone

import pytest

from envelope_ledger import BudgetPeriod, Envelope, Money
from envelope_ledger.kernel.errors import InsufficientFunds, TransactionLocked
from envelope_ledger.kernel.settings import BudgetPeriodType, LedgerSettings
from envelope_ledger.kernel.time import TestTimeProvider
from envelope_ledger.ledger.audit import JsonlAuditSink
from envelope_ledger.ledger.models import TransactionStatus
from envelope_ledger.transactions.service import TransactionFilter


@pytest.fixture
def clock():
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def env(tmp_path, clock):
    return Envelope(tmp_path / "ledger.db", time_provider=clock)


def test_envelope_init_creates_database(tmp_path):
    """Test Envelope initialization creates database"""
    db_path = tmp_path / "test.db"

    env = Envelope(db_path)

    assert db_path.exists()
    assert env.list_accounts() == []


def test_data_survives_reopen(tmp_path, clock):
    """A second Envelope on the same file sees everything"""
    db_path = tmp_path / "test.db"
    first = Envelope(db_path, time_provider=clock)
    checking = first.create_account("Checking", starting_balance="1000.00")
    bills = first.create_group("Bills")
    rent = first.create_category("Rent", bills.id)
    first.assign(rent.id, "2025-01", "800.00")

    second = Envelope(db_path, time_provider=clock)

    assert second.find_account("checking").id == checking.id
    assert second.summary(rent.id, "2025-01").budgeted == Money(80000)
    assert second.available_to_budget("2025-01") == Money(20000)


def test_january_grocery_walkthrough(env):
    """Budget, spend, review and reconcile one month end to end"""
    checking = env.create_account("Checking", starting_balance="$1,000.00")
    needs = env.create_group("Needs")
    groceries = env.create_category("Groceries", needs.id)

    env.assign(groceries.id, None, "500.00")
    spend = env.add_transaction(
        checking.id,
        date(2025, 1, 10),
        "-60.00",
        payee_name="Market",
        category_id=groceries.id,
        status=TransactionStatus.CLEARED,
    )

    summary = env.summary(groceries.id)
    assert (summary.budgeted, summary.carryover, summary.activity, summary.available) == (
        Money(50000),
        Money(0),
        Money(-6000),
        Money(44000),
    )
    assert env.available_to_budget() == Money(44000)
    assert env.account_balance(checking.id) == Money(94000)

    session = env.reconcile_start(checking.id, date(2025, 1, 31), "940.00")
    assert env.reconcile_summary(session).difference == Money(0)
    result = env.reconcile_complete(session)

    assert result.transactions_reconciled == 1
    assert env.find_transaction(spend.id).status == TransactionStatus.RECONCILED
    with pytest.raises(TransactionLocked):
        env.edit_transaction(spend.id, amount="-61.00")

    env.unlock_transaction(spend.id)
    assert env.edit_transaction(spend.id, amount="-61.00").amount == Money(-6100)


def test_move_and_overspent(env):
    """Moving money covers an overspent category"""
    env.create_account("Checking", starting_balance=100000)
    wants = env.create_group("Wants")
    dining = env.create_category("Dining", wants.id)
    fun = env.create_category("Fun", wants.id)
    account = env.find_account("Checking")

    env.assign(dining.id, "2025-01", "50.00")
    env.assign(fun.id, "2025-01", "100.00")
    env.add_transaction(account.id, date(2025, 1, 5), "-80.00", category_id=dining.id)

    assert [s.category_id for s in env.overspent("2025-01")] == [dining.id]

    env.move(fun.id, dining.id, "2025-01", "30.00")
    assert env.overspent("2025-01") == []

    with pytest.raises(InsufficientFunds):
        env.move(fun.id, dining.id, "2025-01", "70.01")


def test_rollover_through_facade(env):
    """Leftover January money shows up as February carryover"""
    account = env.create_account("Checking", starting_balance="500.00")
    group = env.create_group("Bills")
    power = env.create_category("Power", group.id)
    env.assign(power.id, "2025-01", "120.00")
    env.add_transaction(account.id, date(2025, 1, 20), "-100.00", category_id=power.id)

    env.apply_rollover("2025-02")

    february = env.summary(power.id, "2025-02")
    assert february.carryover == Money(2000)
    assert february.available == Money(2000)
    assert env.stale_carryovers("2025-02") == []


def test_transfer_and_listing(env):
    """Transfers create two linked rows and leave ATB alone"""
    checking = env.create_account("Checking", starting_balance="1000.00")
    savings = env.create_account("Savings", "savings", starting_balance="0")

    result = env.transfer(checking.id, savings.id, "250.00", date(2025, 1, 8))

    assert env.account_balance(savings.id) == Money(25000)
    assert env.available_to_budget("2025-01") == Money(100000)
    listed = env.list_transactions(TransactionFilter(account_id=savings.id))
    assert [t.id for t in listed] == [result.to_transaction.id]

    env.delete_transaction(result.to_transaction.id)
    assert env.list_transactions() == []


def test_reconcile_with_adjustment_uses_configured_payee(tmp_path, clock):
    """The adjustment payee comes from settings"""
    settings = LedgerSettings(adjustment_payee="Bank fee")
    env = Envelope(tmp_path / "ledger.db", settings=settings, time_provider=clock)
    checking = env.create_account("Checking", starting_balance="100.00")

    session = env.reconcile_start(checking.id, date(2025, 1, 31), "97.00")
    result = env.reconcile_complete_with_adjustment(session)

    adjustment = env.find_transaction(result.adjustment_transaction_id)
    assert adjustment.payee_name == "Bank fee"
    assert adjustment.amount == Money(-300)


def test_audit_log_path_from_settings(tmp_path, clock):
    """Setting audit_log_path makes every mutation land in a JSONL file"""
    log_path = tmp_path / "audit.jsonl"
    env = Envelope(
        tmp_path / "ledger.db",
        settings=LedgerSettings(audit_log_path=log_path),
        time_provider=clock,
    )

    env.create_account("Checking")
    env.create_default_groups()

    assert isinstance(env.audit_sink, JsonlAuditSink)
    assert len(env.audit_sink.read_all()) == 5


def test_current_period_follows_settings(tmp_path, clock):
    """With weekly budgeting, the default period is the ISO week"""
    env = Envelope(
        tmp_path / "ledger.db",
        settings=LedgerSettings(budget_period_type=BudgetPeriodType.WEEKLY),
        time_provider=clock,
    )

    assert env.period() == BudgetPeriod.weekly(2025, 3)
    assert env.period("2025-02") == BudgetPeriod.monthly(2025, 2)


def test_format_uses_currency_symbol(tmp_path):
    env = Envelope(tmp_path / "ledger.db", settings=LedgerSettings(currency_symbol="€"))
    assert env.format(Money(-1234)) == "-€12.34"


def test_targets_fill_the_budget(env):
    """Targets set through the façade top up the budget and survive reopen"""
    env.create_account("Checking", starting_balance="2000.00")
    bills = env.create_group("Bills")
    rent = env.create_category("Rent", bills.id)
    internet = env.create_category("Internet", bills.id)
    env.set_target(rent.id, "1200.00")
    env.set_target(internet.id, "60.00", "yearly")

    filled = env.auto_fill_targets("2025-01")

    assert [a.budgeted for a in filled] == [Money(120000), Money(500)]
    assert env.available_to_budget("2025-01") == Money(79500)
    assert env.auto_fill_targets("2025-01") == []

    assert env.remove_target(internet.id) is True
    assert [t.category_id for t in env.list_targets()] == [rent.id]
    assert env.get_target(internet.id) is None
