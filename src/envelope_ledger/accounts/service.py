"""
Account Service - accounts and their balances

An account's balance is never stored: it is the starting balance plus
every transaction recorded against it. The cleared balance only counts
transactions the bank has confirmed (cleared or reconciled).
"""

from pydantic import BaseModel

from envelope_ledger.kernel.errors import AccountNotFound, Duplicate, ValidationError
from envelope_ledger.kernel.ids import DefaultIdFactory, IdFactory
from envelope_ledger.kernel.logging import get_logger
from envelope_ledger.kernel.money import Money, sum_money
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, EntityType
from envelope_ledger.ledger.models import Account, AccountType, TransactionStatus
from envelope_ledger.ledger.store import LedgerStore

logger = get_logger(__name__)


class AccountSummary(BaseModel):
    """Account with its derived balances"""

    account: Account
    balance: Money
    cleared_balance: Money
    uncleared_count: int


class AccountService:
    """Create, look up, archive and total accounts"""

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

    def create(
        self,
        name: str,
        account_type: AccountType = AccountType.CHECKING,
        starting_balance: Money | None = None,
        on_budget: bool = True,
        notes: str = "",
    ) -> Account:
        """
        Create an account

        Raises:
            ValidationError: If the name is empty or too long
            Duplicate: If another account already has this name
        """
        name = name.strip()
        if not name:
            raise ValidationError("Account name cannot be empty")
        if any(a.name.lower() == name.lower() for a in self.store.list_accounts()):
            raise Duplicate("Account", name)

        now = self.time_provider.now()
        try:
            account = Account(
                id=self.id_factory.generate(),
                name=name,
                account_type=account_type,
                on_budget=on_budget,
                starting_balance=starting_balance or Money.zero(),
                notes=notes,
                created_at=now,
                updated_at=now,
            )
        except ValueError as e:
            raise ValidationError(f"Invalid account: {e}") from e

        self.store.upsert_account(account)
        self.audit.record_create(EntityType.ACCOUNT, account.id, account, account.name)
        logger.info("Account created", account_id=account.id, account_type=account_type.value)
        return account

    def get(self, account_id: str) -> Account:
        account = self.store.get_account(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def find(self, identifier: str) -> Account:
        """Look up by id, then by case-insensitive name"""
        account = self.store.get_account(identifier)
        if account is not None:
            return account
        for candidate in self.store.list_accounts():
            if candidate.name.lower() == identifier.strip().lower():
                return candidate
        raise AccountNotFound(identifier)

    def list_accounts(self, include_archived: bool = False) -> list[Account]:
        return [a for a in self.store.list_accounts() if include_archived or not a.archived]

    def archive(self, account_id: str) -> Account:
        return self._set_archived(account_id, True)

    def unarchive(self, account_id: str) -> Account:
        return self._set_archived(account_id, False)

    def _set_archived(self, account_id: str, archived: bool) -> Account:
        before = self.get(account_id)
        if before.archived == archived:
            return before
        account = before.model_copy(deep=True)
        now = self.time_provider.now()
        if archived:
            account.archive(now)
        else:
            account.unarchive(now)
        self.store.upsert_account(account)
        self.audit.record_update(
            EntityType.ACCOUNT, account.id, before, account, account.name
        )
        return account

    # ========== Balances ==========

    def calculate_balance(self, account_id: str) -> Money:
        account = self.get(account_id)
        transactions = self.store.list_transactions_by_account(account_id)
        return account.starting_balance + sum_money(t.amount for t in transactions)

    def calculate_cleared_balance(self, account_id: str) -> Money:
        account = self.get(account_id)
        transactions = self.store.list_transactions_by_account(account_id)
        return account.starting_balance + sum_money(
            t.amount for t in transactions if t.status != TransactionStatus.PENDING
        )

    def get_summary(self, account_id: str) -> AccountSummary:
        account = self.get(account_id)
        transactions = self.store.list_transactions_by_account(account_id)
        return AccountSummary(
            account=account,
            balance=account.starting_balance + sum_money(t.amount for t in transactions),
            cleared_balance=account.starting_balance
            + sum_money(t.amount for t in transactions if t.status != TransactionStatus.PENDING),
            uncleared_count=sum(1 for t in transactions if t.status == TransactionStatus.PENDING),
        )

    def list_summaries(self, include_archived: bool = False) -> list[AccountSummary]:
        return [self.get_summary(a.id) for a in self.list_accounts(include_archived)]

    def total_on_budget_balance(self) -> Money:
        """
        Sum of balances of every on-budget account, archived ones included

        Archiving hides an account; it does not make its money disappear
        from Available to Budget.
        """
        return sum_money(
            self.calculate_balance(a.id) for a in self.store.list_accounts() if a.on_budget
        )
