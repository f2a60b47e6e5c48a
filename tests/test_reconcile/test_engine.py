"""
Tests for ReconciliationEngine - clearing, the completion gate, adjustments
"""

from datetime import date

import pytest

from envelope_ledger.accounts.service import AccountService
from envelope_ledger.kernel.errors import (
    AccountNotFound,
    CategoryNotFound,
    ReconciliationError,
    TransactionLocked,
)
from envelope_ledger.kernel.ids import SequentialIdFactory
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, InMemoryAuditSink
from envelope_ledger.ledger.models import Account, Category, Transaction, TransactionStatus
from envelope_ledger.ledger.store import InMemoryLedgerStore
from envelope_ledger.reconcile.engine import ADJUSTMENT_MEMO, ReconciliationEngine
from envelope_ledger.transactions.service import TransactionService
from tests.helpers import usd

STATEMENT_DATE = date(2025, 1, 31)


@pytest.fixture
def grocery_spend(
    transactions: TransactionService, checking: Account, groceries: Category
) -> Transaction:
    return transactions.create(
        checking.id,
        date(2025, 1, 10),
        usd("-60.00"),
        payee_name="Market",
        category_id=groceries.id,
        status=TransactionStatus.CLEARED,
    )


class TestSession:
    def test_scenario_balances_at_statement(
        self,
        reconciliation: ReconciliationEngine,
        checking: Account,
        grocery_spend: Transaction,
    ) -> None:
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("940.00"))

        summary = reconciliation.get_summary(session)
        assert session.starting_cleared_balance == usd("1000.00")
        assert summary.current_cleared_balance == usd("940.00")
        assert summary.difference == Money.zero()
        assert summary.can_complete
        assert [t.id for t in summary.cleared_transactions] == [grocery_spend.id]

    def test_difference_tracks_clearing(
        self,
        reconciliation: ReconciliationEngine,
        transactions: TransactionService,
        checking: Account,
    ) -> None:
        pending = transactions.create(checking.id, date(2025, 1, 20), usd("-40.00"))
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("960.00"))

        assert reconciliation.get_difference(session) == usd("-40.00")
        assert [t.id for t in reconciliation.get_uncleared_transactions(checking.id)] == [
            pending.id
        ]

        reconciliation.clear_transaction(pending.id)
        assert reconciliation.get_difference(session) == Money.zero()

        reconciliation.unclear_transaction(pending.id)
        assert reconciliation.get_difference(session) == usd("-40.00")

    def test_start_unknown_account(self, reconciliation: ReconciliationEngine) -> None:
        with pytest.raises(AccountNotFound):
            reconciliation.start("missing", STATEMENT_DATE, Money.zero())

    def test_start_archived_account(
        self,
        reconciliation: ReconciliationEngine,
        accounts: AccountService,
        checking: Account,
    ) -> None:
        accounts.archive(checking.id)
        with pytest.raises(ReconciliationError, match="archived"):
            reconciliation.start(checking.id, STATEMENT_DATE, Money.zero())

    def test_previously_reconciled_counts_as_starting_balance(
        self,
        reconciliation: ReconciliationEngine,
        checking: Account,
        grocery_spend: Transaction,
    ) -> None:
        first = reconciliation.start(checking.id, STATEMENT_DATE, usd("940.00"))
        reconciliation.complete(first)

        second = reconciliation.start(checking.id, date(2025, 2, 28), usd("940.00"))
        assert second.starting_cleared_balance == usd("940.00")
        assert reconciliation.get_summary(second).cleared_transactions == []


class TestComplete:
    def test_complete_locks_cleared_and_stamps_account(
        self,
        reconciliation: ReconciliationEngine,
        store: InMemoryLedgerStore,
        transactions: TransactionService,
        checking: Account,
        grocery_spend: Transaction,
    ) -> None:
        pending = transactions.create(checking.id, date(2025, 1, 30), usd("-5.00"))
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("940.00"))

        result = reconciliation.complete(session)

        assert result.transactions_reconciled == 1
        assert not result.adjustment_created
        assert store.get_transaction(grocery_spend.id).status == TransactionStatus.RECONCILED
        assert store.get_transaction(pending.id).status == TransactionStatus.PENDING
        account = store.get_account(checking.id)
        assert account.last_reconciled_date == STATEMENT_DATE
        assert account.last_reconciled_balance == usd("940.00")

    def test_complete_is_one_batch(
        self,
        reconciliation: ReconciliationEngine,
        store: InMemoryLedgerStore,
        checking: Account,
        grocery_spend: Transaction,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("940.00"))
        batches: list[int] = []
        original = store.batch_write
        monkeypatch.setattr(
            store, "batch_write", lambda ops: (batches.append(len(ops)), original(ops))
        )

        reconciliation.complete(session)

        assert batches == [2]  # one transaction plus the account

    def test_nonzero_difference_blocks_completion(
        self,
        reconciliation: ReconciliationEngine,
        store: InMemoryLedgerStore,
        checking: Account,
        grocery_spend: Transaction,
    ) -> None:
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("937.50"))

        with pytest.raises(ReconciliationError) as exc_info:
            reconciliation.complete(session)

        assert exc_info.value.difference_cents == -250
        assert store.get_transaction(grocery_spend.id).status == TransactionStatus.CLEARED
        assert store.get_account(checking.id).last_reconciled_date is None

    def test_reconciled_transactions_are_locked(
        self,
        reconciliation: ReconciliationEngine,
        transactions: TransactionService,
        checking: Account,
        grocery_spend: Transaction,
    ) -> None:
        reconciliation.complete(reconciliation.start(checking.id, STATEMENT_DATE, usd("940.00")))

        with pytest.raises(TransactionLocked):
            reconciliation.unclear_transaction(grocery_spend.id)
        with pytest.raises(TransactionLocked):
            reconciliation.clear_transaction(grocery_spend.id)
        with pytest.raises(TransactionLocked):
            transactions.update(grocery_spend.id, memo="oops")


class TestAdjustment:
    def test_adjustment_books_exact_difference(
        self,
        reconciliation: ReconciliationEngine,
        store: InMemoryLedgerStore,
        accounts: AccountService,
        checking: Account,
        grocery_spend: Transaction,
    ) -> None:
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("937.50"))

        result = reconciliation.complete_with_adjustment(session)

        assert result.adjustment_created
        assert result.adjustment_amount == usd("-2.50")
        assert result.transactions_reconciled == 2
        adjustment = store.get_transaction(result.adjustment_transaction_id or "")
        assert adjustment is not None
        assert adjustment.amount == usd("-2.50")
        assert adjustment.date == STATEMENT_DATE
        assert adjustment.payee_name == "Reconciliation Adjustment"
        assert adjustment.memo == ADJUSTMENT_MEMO
        assert adjustment.status == TransactionStatus.RECONCILED
        assert accounts.calculate_cleared_balance(checking.id) == usd("937.50")

    def test_adjustment_category_and_custom_payee(
        self,
        store: InMemoryLedgerStore,
        audit: AuditRecorder,
        test_time: TimeProvider,
        id_factory: SequentialIdFactory,
        checking: Account,
        groceries: Category,
    ) -> None:
        engine = ReconciliationEngine(
            store, audit, test_time, id_factory, adjustment_payee="Bank correction"
        )
        session = engine.start(checking.id, STATEMENT_DATE, usd("1010.00"))

        result = engine.complete_with_adjustment(session, category_id=groceries.id)

        adjustment = store.get_transaction(result.adjustment_transaction_id or "")
        assert adjustment is not None
        assert adjustment.amount == usd("10.00")
        assert adjustment.payee_name == "Bank correction"
        assert adjustment.category_id == groceries.id

    def test_adjustment_unknown_category(
        self,
        reconciliation: ReconciliationEngine,
        store: InMemoryLedgerStore,
        checking: Account,
    ) -> None:
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("999.00"))
        with pytest.raises(CategoryNotFound):
            reconciliation.complete_with_adjustment(session, category_id="missing")
        assert store.list_transactions() == []

    def test_balanced_session_needs_no_adjustment(
        self,
        reconciliation: ReconciliationEngine,
        checking: Account,
        grocery_spend: Transaction,
    ) -> None:
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("940.00"))

        result = reconciliation.complete_with_adjustment(session)

        assert not result.adjustment_created
        assert result.adjustment_transaction_id is None

    def test_adjustment_is_audited_as_create(
        self,
        reconciliation: ReconciliationEngine,
        audit_sink: InMemoryAuditSink,
        checking: Account,
    ) -> None:
        session = reconciliation.start(checking.id, STATEMENT_DATE, usd("1001.00"))
        reconciliation.complete_with_adjustment(session)

        names = [e.entity_name or "" for e in audit_sink.entries]
        assert any(n.startswith("Reconciliation adjustment $1.00") for n in names)
        assert audit_sink.entries[-1].diff_summary == "reconciled at 2025-01-31: $1001.00"
