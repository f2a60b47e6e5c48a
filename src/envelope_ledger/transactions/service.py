"""
Transaction Service - recording, editing and clearing transactions

Owns the lock contract: every mutator refuses reconciled transactions
with TransactionLocked, and unlock is the only way back (it moves the
transaction to cleared and leaves a loud audit record).

Edits to a transfer side are routed through TransferService so the
mirror transaction always follows.
"""

from datetime import date

from pydantic import BaseModel

from envelope_ledger.kernel.errors import (
    AccountNotFound,
    CategoryNotFound,
    TransactionNotFound,
    TransactionValidation,
    ValidationError,
)
from envelope_ledger.kernel.ids import DefaultIdFactory, IdFactory
from envelope_ledger.kernel.logging import get_logger
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, EntityType
from envelope_ledger.ledger.models import Split, Transaction, TransactionStatus
from envelope_ledger.ledger.store import LedgerStore
from envelope_ledger.transactions.invariants import (
    ensure_unlocked,
    validate_account_active,
    validate_transaction,
)
from envelope_ledger.transactions.transfers import TransferService

logger = get_logger(__name__)


class TransactionFilter(BaseModel):
    """Criteria for TransactionService.list_transactions; unset fields match everything"""

    account_id: str | None = None
    category_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: TransactionStatus | None = None
    limit: int | None = None

    def matches(self, transaction: Transaction) -> bool:
        if self.account_id is not None and transaction.account_id != self.account_id:
            return False
        if self.category_id is not None and not any(
            cid == self.category_id for cid, _ in transaction.category_amounts()
        ):
            return False
        if self.start_date is not None and transaction.date < self.start_date:
            return False
        if self.end_date is not None and transaction.date > self.end_date:
            return False
        if self.status is not None and transaction.status != self.status:
            return False
        return True


def _label(transaction: Transaction) -> str:
    return f"{transaction.date} {transaction.payee_name}".strip()


class TransactionService:
    """
    Transaction CRUD plus status changes

    Args:
        store: Ledger store
        audit: Audit recorder
        time_provider: For timestamps (injectable for testing)
        id_factory: Transaction id generator
    """

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
        self.transfers = TransferService(store, audit, time_provider, self.id_factory)

    def _require_category(self, category_id: str) -> None:
        if self.store.get_category(category_id) is None:
            raise CategoryNotFound(category_id)

    def _save_update(self, before: Transaction, after: Transaction, diff: str | None) -> None:
        after.updated_at = self.time_provider.now()
        validate_transaction(after)
        self.store.upsert_transaction(after)
        self.audit.record_update(
            EntityType.TRANSACTION, after.id, before, after, _label(after), diff
        )

    # ========== Create & read ==========

    def create(
        self,
        account_id: str,
        on_date: date,
        amount: Money,
        payee_name: str = "",
        category_id: str | None = None,
        memo: str = "",
        status: TransactionStatus = TransactionStatus.PENDING,
        splits: list[Split] | None = None,
    ) -> Transaction:
        """
        Record a transaction

        Raises:
            AccountNotFound: If the account does not exist
            ValidationError: If the account is archived
            CategoryNotFound: If a category (or split category) does not exist
            TransactionValidation: If splits do not add up or conflict with category
        """
        account = self.store.get_account(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        validate_account_active(account)
        if category_id is not None:
            self._require_category(category_id)
        for split in splits or []:
            self._require_category(split.category_id)

        now = self.time_provider.now()
        transaction = Transaction(
            id=self.id_factory.generate(),
            account_id=account_id,
            date=on_date,
            amount=amount,
            payee_name=payee_name.strip(),
            category_id=category_id,
            splits=list(splits or []),
            memo=memo,
            status=status,
            created_at=now,
            updated_at=now,
        )
        validate_transaction(transaction)

        self.store.upsert_transaction(transaction)
        self.audit.record_create(
            EntityType.TRANSACTION, transaction.id, transaction, _label(transaction)
        )
        logger.debug("Transaction created", transaction_id=transaction.id, account_id=account_id)
        return transaction

    def get(self, transaction_id: str) -> Transaction:
        transaction = self.store.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFound(transaction_id)
        return transaction

    def find(self, identifier: str) -> Transaction:
        """Look up by full id, then by unique id prefix (as printed by the CLI)"""
        transaction = self.store.get_transaction(identifier)
        if transaction is not None:
            return transaction
        matches = [t for t in self.store.list_transactions() if t.id.startswith(identifier)]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise ValidationError(f"Transaction id prefix '{identifier}' is ambiguous")
        raise TransactionNotFound(identifier)

    def list_transactions(self, criteria: TransactionFilter | None = None) -> list[Transaction]:
        """Matching transactions, newest first"""
        criteria = criteria or TransactionFilter()
        if criteria.account_id is not None:
            candidates = self.store.list_transactions_by_account(criteria.account_id)
        else:
            candidates = self.store.list_transactions()
        found = [t for t in reversed(candidates) if criteria.matches(t)]
        return found[: criteria.limit] if criteria.limit is not None else found

    def get_uncleared(self, account_id: str) -> list[Transaction]:
        return [
            t
            for t in self.store.list_transactions_by_account(account_id)
            if t.status == TransactionStatus.PENDING
        ]

    def get_cleared(self, account_id: str) -> list[Transaction]:
        return [
            t
            for t in self.store.list_transactions_by_account(account_id)
            if t.status == TransactionStatus.CLEARED
        ]

    # ========== Edit & delete ==========

    def update(
        self,
        transaction_id: str,
        on_date: date | None = None,
        amount: Money | None = None,
        payee_name: str | None = None,
        category_id: str | None = None,
        memo: str | None = None,
        clear_category: bool = False,
    ) -> Transaction:
        """
        Edit fields of a transaction; None leaves a field unchanged

        Setting a category drops any splits. On a transfer side, amount and
        date changes are applied to both sides.

        Raises:
            TransactionLocked: If the transaction (or its transfer mirror) is reconciled
            CategoryNotFound: If the new category does not exist
            TransactionValidation: If a transfer would get a category
        """
        current = self.get(transaction_id)
        ensure_unlocked(current, "edited")

        if current.is_transfer():
            if category_id is not None:
                raise TransactionValidation("Transfer transactions cannot be categorised")
            if amount is not None or on_date is not None:
                self.transfers.update_transfer(transaction_id, amount, on_date)
            current = self.get(transaction_id)
            on_date = amount = None

        before = current
        transaction = before.model_copy(deep=True)
        if on_date is not None:
            transaction.date = on_date
        if amount is not None:
            transaction.amount = amount
        if payee_name is not None:
            transaction.payee_name = payee_name.strip()
        if category_id is not None:
            self._require_category(category_id)
            transaction.category_id = category_id
            transaction.splits = []
        elif clear_category:
            transaction.category_id = None
        if memo is not None:
            transaction.memo = memo

        changes = []
        if before.date != transaction.date:
            changes.append(f"date: {before.date} -> {transaction.date}")
        if before.amount != transaction.amount:
            changes.append(f"amount: {before.amount} -> {transaction.amount}")
        if before.payee_name != transaction.payee_name:
            changes.append(f"payee: '{before.payee_name}' -> '{transaction.payee_name}'")
        if before.category_id != transaction.category_id:
            changes.append(f"category: {before.category_id} -> {transaction.category_id}")
        if before.memo != transaction.memo:
            changes.append("memo changed")
        if not changes and before.splits == transaction.splits:
            return before

        self._save_update(before, transaction, ", ".join(changes) or None)
        return transaction

    def delete(self, transaction_id: str) -> Transaction:
        """
        Delete a transaction; deleting a transfer side deletes both sides

        Raises:
            TransactionLocked: If it (or its transfer mirror) is reconciled
        """
        transaction = self.get(transaction_id)
        ensure_unlocked(transaction, "deleted")
        if transaction.is_transfer():
            self.transfers.delete_transfer(transaction_id)
            return transaction

        self.store.delete_transaction(transaction_id)
        self.audit.record_delete(
            EntityType.TRANSACTION, transaction.id, transaction, _label(transaction)
        )
        return transaction

    # ========== Status ==========

    def set_status(self, transaction_id: str, status: TransactionStatus) -> Transaction:
        """
        Change status; a reconciled transaction can only be set to reconciled again

        Raises:
            TransactionLocked: If reconciled and status is not RECONCILED
        """
        before = self.get(transaction_id)
        if status != TransactionStatus.RECONCILED:
            ensure_unlocked(before, "changed")
        if before.status == status:
            return before

        transaction = before.model_copy(deep=True)
        transaction.status = status
        self._save_update(
            before, transaction, f"status: {before.status.value} -> {status.value}"
        )
        return transaction

    def clear(self, transaction_id: str) -> Transaction:
        return self.set_status(transaction_id, TransactionStatus.CLEARED)

    def unclear(self, transaction_id: str) -> Transaction:
        return self.set_status(transaction_id, TransactionStatus.PENDING)

    def unlock(self, transaction_id: str) -> Transaction:
        """
        Re-open a reconciled transaction for editing (reconciled -> cleared)

        Raises:
            ValidationError: If the transaction is not locked
        """
        before = self.get(transaction_id)
        if not before.is_locked():
            raise ValidationError(f"Transaction {transaction_id} is not locked")

        transaction = before.model_copy(deep=True)
        transaction.status = TransactionStatus.CLEARED
        self._save_update(before, transaction, "UNLOCKED: reconciled -> cleared")
        logger.warning("Reconciled transaction unlocked", transaction_id=transaction_id)
        return transaction

    # ========== Splits ==========

    def add_split(
        self, transaction_id: str, category_id: str, amount: Money, memo: str = ""
    ) -> Transaction:
        """
        Append a split line

        Lines must add up to the amount before the transaction validates,
        so the first line of a two-way split is usually added through
        set_splits instead.

        Raises:
            TransactionLocked: If reconciled
            CategoryNotFound: If the category does not exist
            TransactionValidation: If the splits no longer add up
        """
        before = self.get(transaction_id)
        ensure_unlocked(before, "edited")
        self._require_category(category_id)

        transaction = before.model_copy(deep=True)
        transaction.splits.append(Split(category_id=category_id, amount=amount, memo=memo))
        transaction.category_id = None
        self._save_update(
            before, transaction, f"added split: {amount} to category {category_id}"
        )
        return transaction

    def set_splits(self, transaction_id: str, splits: list[Split]) -> Transaction:
        """
        Replace all split lines; clears the single category

        Raises:
            TransactionLocked: If reconciled
            CategoryNotFound: If any split category does not exist
            TransactionValidation: If the splits do not add up to the amount
        """
        before = self.get(transaction_id)
        ensure_unlocked(before, "edited")
        for split in splits:
            self._require_category(split.category_id)

        transaction = before.model_copy(deep=True)
        transaction.splits = list(splits)
        transaction.category_id = None
        self._save_update(before, transaction, f"set {len(splits)} splits")
        return transaction

    def clear_splits(self, transaction_id: str) -> Transaction:
        before = self.get(transaction_id)
        ensure_unlocked(before, "edited")
        if not before.splits:
            return before
        transaction = before.model_copy(deep=True)
        transaction.splits = []
        self._save_update(before, transaction, "cleared all splits")
        return transaction
