"""
Reconciliation Engine - matching the ledger to a bank statement

Workflow:
1. start() with the statement date and ending balance
2. clear/unclear transactions until the difference is zero
3. complete(), or complete_with_adjustment() to book the remainder

Completion marks every cleared transaction reconciled (locking it) and
stamps the account with the statement date and balance, all in one
batch write.

Fun fact: Banks once mailed paper statements precisely so customers
could do step 2 with a pencil. The pencil is now optional.
"""

from datetime import date

from envelope_ledger.kernel.errors import (
    AccountNotFound,
    CategoryNotFound,
    ReconciliationError,
    TransactionNotFound,
)
from envelope_ledger.kernel.ids import DefaultIdFactory, IdFactory
from envelope_ledger.kernel.logging import LogOperation, get_logger
from envelope_ledger.kernel.metrics import reconciliations_completed_total, track_operation
from envelope_ledger.kernel.money import Money, sum_money
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, EntityType
from envelope_ledger.ledger.models import Transaction, TransactionStatus
from envelope_ledger.ledger.store import LedgerStore, WriteOp
from envelope_ledger.reconcile.models import (
    ReconciliationResult,
    ReconciliationSession,
    ReconciliationSummary,
)
from envelope_ledger.transactions.invariants import ensure_unlocked, validate_transaction

logger = get_logger(__name__)

ADJUSTMENT_PAYEE = "Reconciliation Adjustment"
ADJUSTMENT_MEMO = "Created during reconciliation to match statement balance"


class ReconciliationEngine:
    """
    Reconcile accounts against statements

    Args:
        store: Ledger store
        audit: Audit recorder
        time_provider: For timestamps (injectable for testing)
        id_factory: Id generator for adjustment transactions
        adjustment_payee: Payee of synthesized adjustments
    """

    def __init__(
        self,
        store: LedgerStore,
        audit: AuditRecorder,
        time_provider: TimeProvider,
        id_factory: IdFactory | None = None,
        adjustment_payee: str = ADJUSTMENT_PAYEE,
    ) -> None:
        self.store = store
        self.audit = audit
        self.time_provider = time_provider
        self.id_factory = id_factory or DefaultIdFactory()
        self.adjustment_payee = adjustment_payee

    def start(
        self, account_id: str, statement_date: date, statement_balance: Money
    ) -> ReconciliationSession:
        """
        Begin (or rebuild) a reconciliation session

        Raises:
            AccountNotFound: If the account does not exist
            ReconciliationError: If the account is archived
        """
        account = self.store.get_account(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        if account.archived:
            raise ReconciliationError("Cannot reconcile an archived account")

        reconciled = sum_money(
            t.amount
            for t in self.store.list_transactions_by_account(account_id)
            if t.status == TransactionStatus.RECONCILED
        )
        return ReconciliationSession(
            account_id=account_id,
            statement_date=statement_date,
            statement_balance=statement_balance,
            starting_cleared_balance=account.starting_balance + reconciled,
        )

    def get_summary(self, session: ReconciliationSession) -> ReconciliationSummary:
        transactions = self.store.list_transactions_by_account(session.account_id)
        uncleared = sorted(
            (t for t in transactions if t.status == TransactionStatus.PENDING),
            key=lambda t: t.date,
        )
        cleared = sorted(
            (t for t in transactions if t.status == TransactionStatus.CLEARED),
            key=lambda t: t.date,
        )
        current = session.starting_cleared_balance + sum_money(t.amount for t in cleared)
        difference = session.statement_balance - current
        return ReconciliationSummary(
            session=session,
            uncleared_transactions=uncleared,
            cleared_transactions=cleared,
            current_cleared_balance=current,
            difference=difference,
            can_complete=difference.is_zero(),
        )

    def get_difference(self, session: ReconciliationSession) -> Money:
        """statement_balance - (starting cleared balance + cleared transactions)"""
        return self.get_summary(session).difference

    def get_uncleared_transactions(self, account_id: str) -> list[Transaction]:
        """Everything not yet reconciled (pending and cleared), by date"""
        return sorted(
            (
                t
                for t in self.store.list_transactions_by_account(account_id)
                if t.status != TransactionStatus.RECONCILED
            ),
            key=lambda t: t.date,
        )

    # ========== Clearing ==========

    def _set_status(self, transaction_id: str, status: TransactionStatus) -> Transaction:
        before = self.store.get_transaction(transaction_id)
        if before is None:
            raise TransactionNotFound(transaction_id)
        ensure_unlocked(before, "changed")
        if before.status == status:
            return before

        transaction = before.model_copy(deep=True)
        transaction.status = status
        transaction.updated_at = self.time_provider.now()
        self.store.upsert_transaction(transaction)
        self.audit.record_update(
            EntityType.TRANSACTION,
            transaction.id,
            before,
            transaction,
            f"{transaction.date} {transaction.payee_name}",
            f"status: {before.status.value} -> {status.value} (reconciliation)",
        )
        return transaction

    def clear_transaction(self, transaction_id: str) -> Transaction:
        """
        Raises:
            TransactionLocked: If already reconciled
        """
        return self._set_status(transaction_id, TransactionStatus.CLEARED)

    def unclear_transaction(self, transaction_id: str) -> Transaction:
        """
        Raises:
            TransactionLocked: If already reconciled
        """
        return self._set_status(transaction_id, TransactionStatus.PENDING)

    # ========== Completion ==========

    @track_operation("reconcile_complete")
    def complete(self, session: ReconciliationSession) -> ReconciliationResult:
        """
        Lock every cleared transaction and stamp the account

        Raises:
            ReconciliationError: If the difference is not zero
        """
        summary = self.get_summary(session)
        if not summary.can_complete:
            raise ReconciliationError(
                f"Cannot complete reconciliation: difference is {summary.difference} "
                "(must be zero)",
                difference_cents=summary.difference.cents,
            )
        result = self._complete(session, summary.cleared_transactions, [])
        reconciliations_completed_total.labels(adjusted="false").inc()
        return result

    @track_operation("reconcile_complete_with_adjustment")
    def complete_with_adjustment(
        self, session: ReconciliationSession, category_id: str | None = None
    ) -> ReconciliationResult:
        """
        Complete, booking any remaining difference as an adjustment transaction

        The adjustment is dated at the statement date, cleared, and has
        exactly the difference as its amount, so completion then balances.

        Args:
            session: Session to complete
            category_id: Optional category for the adjustment

        Raises:
            CategoryNotFound: If category_id does not exist
        """
        summary = self.get_summary(session)
        if summary.can_complete:
            return self.complete(session)
        if category_id is not None and self.store.get_category(category_id) is None:
            raise CategoryNotFound(category_id)

        now = self.time_provider.now()
        adjustment = Transaction(
            id=self.id_factory.generate(),
            account_id=session.account_id,
            date=session.statement_date,
            amount=summary.difference,
            payee_name=self.adjustment_payee,
            category_id=category_id,
            memo=ADJUSTMENT_MEMO,
            status=TransactionStatus.CLEARED,
            created_at=now,
            updated_at=now,
        )
        validate_transaction(adjustment)

        result = self._complete(session, summary.cleared_transactions, [adjustment])
        reconciliations_completed_total.labels(adjusted="true").inc()
        return result.model_copy(
            update={
                "adjustment_created": True,
                "adjustment_amount": summary.difference,
                "adjustment_transaction_id": adjustment.id,
            }
        )

    def _complete(
        self,
        session: ReconciliationSession,
        cleared: list[Transaction],
        new_transactions: list[Transaction],
    ) -> ReconciliationResult:
        account_before = self.store.get_account(session.account_id)
        if account_before is None:
            raise AccountNotFound(session.account_id)

        now = self.time_provider.now()
        reconciled = []
        for before in [*cleared, *new_transactions]:
            transaction = before.model_copy(deep=True)
            transaction.status = TransactionStatus.RECONCILED
            transaction.updated_at = now
            reconciled.append((before, transaction))

        account = account_before.model_copy(deep=True)
        account.reconcile(session.statement_date, session.statement_balance, now)

        with LogOperation(
            logger,
            "reconcile_complete",
            account_id=session.account_id,
            statement_date=session.statement_date.isoformat(),
            transactions=len(reconciled),
        ):
            self.store.batch_write(
                [WriteOp.upsert(after) for _, after in reconciled] + [WriteOp.upsert(account)]
            )

        new_ids = {t.id for t in new_transactions}
        for before, after in reconciled:
            if before.id in new_ids:
                self.audit.record_create(
                    EntityType.TRANSACTION,
                    before.id,
                    before,
                    f"Reconciliation adjustment {before.amount} for account {account.name}",
                )
            self.audit.record_update(
                EntityType.TRANSACTION,
                after.id,
                before,
                after,
                f"{after.date} {after.payee_name}",
                "status: cleared -> reconciled (reconciliation complete)",
            )
        self.audit.record_update(
            EntityType.ACCOUNT,
            account.id,
            account_before,
            account,
            account.name,
            f"reconciled at {session.statement_date}: {session.statement_balance}",
        )
        return ReconciliationResult(transactions_reconciled=len(reconciled))
