"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from envelope_ledger.accounts.service import AccountService
from envelope_ledger.budget.categories import CategoryService
from envelope_ledger.budget.engine import BudgetEngine
from envelope_ledger.kernel.ids import SequentialIdFactory
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.kernel.time import TestTimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, InMemoryAuditSink
from envelope_ledger.ledger.models import Account, Category, CategoryGroup
from envelope_ledger.ledger.store import InMemoryLedgerStore
from envelope_ledger.reconcile.engine import ReconciliationEngine
from envelope_ledger.transactions.service import TransactionService
from envelope_ledger.transactions.transfers import TransferService


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "ledger.db"


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC, the middle of the 2025-01 budget
    period, so both neighbouring months are a short advance_days() away.
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def audit(audit_sink: InMemoryAuditSink, test_time: TestTimeProvider) -> AuditRecorder:
    return AuditRecorder(audit_sink, test_time)


@pytest.fixture
def id_factory() -> SequentialIdFactory:
    """Readable ids ("id-0001", ...) shared by every service in a test"""
    return SequentialIdFactory("id")


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def accounts(
    store: InMemoryLedgerStore,
    audit: AuditRecorder,
    test_time: TestTimeProvider,
    id_factory: SequentialIdFactory,
) -> AccountService:
    return AccountService(store, audit, test_time, id_factory)


@pytest.fixture
def categories(
    store: InMemoryLedgerStore,
    audit: AuditRecorder,
    test_time: TestTimeProvider,
    id_factory: SequentialIdFactory,
) -> CategoryService:
    return CategoryService(store, audit, test_time, id_factory)


@pytest.fixture
def engine(
    store: InMemoryLedgerStore, audit: AuditRecorder, test_time: TestTimeProvider
) -> BudgetEngine:
    return BudgetEngine(store, audit, test_time)


@pytest.fixture
def transactions(
    store: InMemoryLedgerStore,
    audit: AuditRecorder,
    test_time: TestTimeProvider,
    id_factory: SequentialIdFactory,
) -> TransactionService:
    return TransactionService(store, audit, test_time, id_factory)


@pytest.fixture
def transfers(transactions: TransactionService) -> TransferService:
    return transactions.transfers


@pytest.fixture
def reconciliation(
    store: InMemoryLedgerStore,
    audit: AuditRecorder,
    test_time: TestTimeProvider,
    id_factory: SequentialIdFactory,
) -> ReconciliationEngine:
    return ReconciliationEngine(store, audit, test_time, id_factory)


# =============================================================================
# Seeded ledger
# =============================================================================


@pytest.fixture
def jan() -> BudgetPeriod:
    return BudgetPeriod.monthly(2025, 1)


@pytest.fixture
def checking(accounts: AccountService) -> Account:
    """On-budget checking account holding $1,000.00"""
    return accounts.create("Checking", starting_balance=Money.parse("1000.00"))


@pytest.fixture
def savings(accounts: AccountService) -> Account:
    return accounts.create("Savings", starting_balance=Money.parse("2000.00"))


@pytest.fixture
def needs(categories: CategoryService) -> CategoryGroup:
    return categories.create_group("Needs")


@pytest.fixture
def groceries(categories: CategoryService, needs: CategoryGroup) -> Category:
    return categories.create_category("Groceries", needs.id)


@pytest.fixture
def dining(categories: CategoryService, needs: CategoryGroup) -> Category:
    return categories.create_category("Dining", needs.id)


@pytest.fixture
def rent(categories: CategoryService, needs: CategoryGroup) -> Category:
    return categories.create_category("Rent", needs.id)
