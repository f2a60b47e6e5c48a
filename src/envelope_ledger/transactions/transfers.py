"""
Transfer Service - keeping both sides of a transfer in step

A transfer is two transactions: an outflow in the source account and an
equal inflow in the destination, each pointing at the other. Amount and
date always change on both sides at once, deletes remove both, and if
either side is reconciled the whole transfer is locked.

Transfers carry no category: moving money between two on-budget
accounts changes neither Available to Budget nor any envelope.
"""

from datetime import date

from pydantic import BaseModel

from envelope_ledger.kernel.errors import AccountNotFound, TransactionNotFound, ValidationError
from envelope_ledger.kernel.ids import DefaultIdFactory, IdFactory
from envelope_ledger.kernel.logging import LogOperation, get_logger
from envelope_ledger.kernel.metrics import track_operation
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, EntityType
from envelope_ledger.ledger.models import Account, Transaction
from envelope_ledger.ledger.store import Collection, LedgerStore, WriteOp
from envelope_ledger.transactions.invariants import (
    ensure_unlocked,
    validate_account_active,
    validate_distinct_accounts,
    validate_is_transfer,
    validate_transaction,
    validate_transfer_amount,
)

logger = get_logger(__name__)


class TransferResult(BaseModel):
    """Both sides of a transfer, outflow first"""

    from_transaction: Transaction
    to_transaction: Transaction


def _ordered(a: Transaction, b: Transaction) -> TransferResult:
    if a.amount.is_negative():
        return TransferResult(from_transaction=a, to_transaction=b)
    return TransferResult(from_transaction=b, to_transaction=a)


class TransferService:
    """Create, edit and delete transfers as a single unit"""

    def __init__(
        self,
        store: LedgerStore,
        audit: AuditRecorder,
        time_provider: TimeProvider,
        id_factory: IdFactory | None = None,
    ) -> None:
        self.store = store
        self.audit = audit
        self.time_provider = time_provider
        self.id_factory = id_factory or DefaultIdFactory()

    def _active_account(self, account_id: str) -> Account:
        account = self.store.get_account(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        validate_account_active(account)
        return account

    def _load(self, transaction_id: str) -> Transaction:
        transaction = self.store.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFound(transaction_id)
        return transaction

    def _load_pair(self, transaction_id: str, action: str) -> tuple[Transaction, Transaction]:
        """Load a transfer side and its mirror, refusing if either is locked"""
        transaction = self._load(transaction_id)
        linked_id = validate_is_transfer(transaction)
        ensure_unlocked(transaction, action)
        linked = self._load(linked_id)
        ensure_unlocked(linked, action)
        return transaction, linked

    @track_operation("create_transfer")
    def create_transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Money,
        on_date: date,
        memo: str = "",
    ) -> TransferResult:
        """
        Move money between two accounts

        Args:
            from_account_id: Account the money leaves
            to_account_id: Account the money arrives in
            amount: Positive amount
            on_date: Date of both sides
            memo: Copied to both sides

        Raises:
            ValidationError: If amount is not positive, the accounts are the same,
                or either account is archived
            AccountNotFound: If either account does not exist
        """
        validate_transfer_amount(amount)
        validate_distinct_accounts(from_account_id, to_account_id)
        from_account = self._active_account(from_account_id)
        to_account = self._active_account(to_account_id)

        now = self.time_provider.now()
        from_id = self.id_factory.generate()
        to_id = self.id_factory.generate()
        from_txn = Transaction(
            id=from_id,
            account_id=from_account_id,
            date=on_date,
            amount=-amount,
            payee_name=f"Transfer to {to_account.name}",
            memo=memo,
            transfer_transaction_id=to_id,
            created_at=now,
            updated_at=now,
        )
        to_txn = Transaction(
            id=to_id,
            account_id=to_account_id,
            date=on_date,
            amount=amount,
            payee_name=f"Transfer from {from_account.name}",
            memo=memo,
            transfer_transaction_id=from_id,
            created_at=now,
            updated_at=now,
        )
        validate_transaction(from_txn)
        validate_transaction(to_txn)

        self.store.batch_write([WriteOp.upsert(from_txn), WriteOp.upsert(to_txn)])
        self.audit.record_create(EntityType.TRANSACTION, from_txn.id, from_txn, from_txn.payee_name)
        self.audit.record_create(EntityType.TRANSACTION, to_txn.id, to_txn, to_txn.payee_name)
        logger.info(
            "Transfer created",
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount.cents,
        )
        return TransferResult(from_transaction=from_txn, to_transaction=to_txn)

    def get_linked_transaction(self, transaction_id: str) -> Transaction | None:
        """The other side of a transfer, or None for ordinary transactions"""
        transaction = self._load(transaction_id)
        if transaction.transfer_transaction_id is None:
            return None
        return self.store.get_transaction(transaction.transfer_transaction_id)

    @track_operation("update_transfer")
    def update_transfer(
        self,
        transaction_id: str,
        new_amount: Money | None = None,
        new_date: date | None = None,
    ) -> TransferResult:
        """
        Change a transfer's amount and/or date on both sides in one write

        The sign of new_amount is ignored: the outflow side stays negative
        and the inflow side positive.

        Raises:
            ValidationError: If nothing changes, new_amount is zero or this is not a transfer
            TransactionLocked: If either side is reconciled
        """
        if new_amount is None and new_date is None:
            raise ValidationError("Nothing to change: pass an amount and/or a date")
        if new_amount is not None:
            validate_transfer_amount(new_amount.abs())
        before, linked_before = self._load_pair(transaction_id, "edited")

        now = self.time_provider.now()
        txn = before.model_copy(deep=True)
        linked = linked_before.model_copy(deep=True)
        if new_amount is not None:
            amount = new_amount.abs()
            if txn.amount.is_negative():
                txn.amount, linked.amount = -amount, amount
            else:
                txn.amount, linked.amount = amount, -amount
        if new_date is not None:
            txn.date = linked.date = new_date
        txn.updated_at = linked.updated_at = now

        self.store.batch_write([WriteOp.upsert(txn), WriteOp.upsert(linked)])
        for old, new in ((before, txn), (linked_before, linked)):
            changes = []
            if old.amount != new.amount:
                changes.append(f"transfer amount: {old.amount} -> {new.amount}")
            if old.date != new.date:
                changes.append(f"date: {old.date} -> {new.date}")
            self.audit.record_update(
                EntityType.TRANSACTION,
                new.id,
                old,
                new,
                new.payee_name,
                ", ".join(changes) or None,
            )
        return _ordered(txn, linked)

    def update_transfer_amount(self, transaction_id: str, new_amount: Money) -> TransferResult:
        return self.update_transfer(transaction_id, new_amount=new_amount)

    def update_transfer_date(self, transaction_id: str, new_date: date) -> TransferResult:
        return self.update_transfer(transaction_id, new_date=new_date)

    @track_operation("delete_transfer")
    def delete_transfer(self, transaction_id: str) -> TransferResult:
        """
        Delete both sides of a transfer

        Raises:
            ValidationError: If this is not a transfer
            TransactionLocked: If either side is reconciled
        """
        txn, linked = self._load_pair(transaction_id, "deleted")
        with LogOperation(logger, "delete_transfer", transaction_id=transaction_id):
            self.store.batch_write(
                [
                    WriteOp.delete(Collection.TRANSACTIONS, txn.id),
                    WriteOp.delete(Collection.TRANSACTIONS, linked.id),
                ]
            )
        self.audit.record_delete(EntityType.TRANSACTION, txn.id, txn, txn.payee_name)
        self.audit.record_delete(
            EntityType.TRANSACTION, linked.id, linked, f"{linked.payee_name} (linked)"
        )
        return _ordered(txn, linked)
