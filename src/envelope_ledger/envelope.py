"""
Envelope - Main façade class

The primary interface to a ledger. Wires the store, audit trail and
engines together and exposes one flat API for budgeting, transactions,
transfers and reconciliation.

Example:
    >>> from envelope_ledger import Envelope
    >>> env = Envelope("budget.db")
    >>> checking = env.create_account("Checking", starting_balance="1000.00")
    >>> bills = env.create_group("Bills")
    >>> rent = env.create_category("Rent", bills.id)
    >>> env.assign(rent.id, "2025-01", "800.00")
    >>> env.available_to_budget("2025-01")
    Money(cents=20000)
"""

from datetime import date
from pathlib import Path

from envelope_ledger.accounts.service import AccountService, AccountSummary
from envelope_ledger.budget.categories import CategoryService
from envelope_ledger.budget.engine import BudgetEngine
from envelope_ledger.budget.models import BudgetOverview, CategoryBudgetSummary, StaleCarryover
from envelope_ledger.budget.targets import TargetService
from envelope_ledger.kernel.ids import IdFactory
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.kernel.settings import LedgerSettings
from envelope_ledger.kernel.time import RealTimeProvider, TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, AuditSink, InMemoryAuditSink, JsonlAuditSink
from envelope_ledger.ledger.models import (
    Account,
    AccountType,
    BudgetAllocation,
    BudgetTarget,
    Category,
    CategoryGroup,
    Split,
    TargetCadence,
    Transaction,
    TransactionStatus,
)
from envelope_ledger.ledger.sqlite_store import SQLiteLedgerStore
from envelope_ledger.ledger.store import InMemoryLedgerStore, LedgerStore
from envelope_ledger.reconcile.engine import ReconciliationEngine
from envelope_ledger.reconcile.models import (
    ReconciliationResult,
    ReconciliationSession,
    ReconciliationSummary,
)
from envelope_ledger.transactions.service import TransactionFilter, TransactionService
from envelope_ledger.transactions.transfers import TransferResult, TransferService

MoneyLike = Money | str | int
PeriodLike = BudgetPeriod | str | None


def as_money(value: MoneyLike) -> Money:
    """Money from Money, cents (int) or a human string like '$10.50'"""
    if isinstance(value, Money):
        return value
    if isinstance(value, int):
        return Money(value)
    return Money.parse(value)


class Envelope:
    """
    Envelope Ledger main façade

    Provides a unified API for:
    - Accounts and their balances
    - Category groups and categories
    - Budget allocation, moves and rollover
    - Transactions, splits and transfers
    - Statement reconciliation
    """

    def __init__(
        self,
        sqlite_path: str | Path | None = None,
        settings: LedgerSettings | None = None,
        time_provider: TimeProvider | None = None,
        store: LedgerStore | None = None,
        audit_sink: AuditSink | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize a ledger

        Args:
            sqlite_path: SQLite database path; None keeps everything in memory
            settings: User settings (defaults if None)
            time_provider: Time provider (uses real time if None)
            store: Explicit store, overriding sqlite_path
            audit_sink: Explicit audit sink; otherwise settings.audit_log_path
                or an in-memory sink
            id_factory: Id generator (UUIDv7-style if None)
        """
        self.settings = settings or LedgerSettings()
        self.time_provider = time_provider or RealTimeProvider()

        if store is not None:
            self.store = store
        elif sqlite_path is not None:
            self.store = SQLiteLedgerStore(sqlite_path)
        else:
            self.store = InMemoryLedgerStore()

        if audit_sink is None:
            if self.settings.audit_log_path is not None:
                audit_sink = JsonlAuditSink(self.settings.audit_log_path)
            else:
                audit_sink = InMemoryAuditSink()
        self.audit_sink = audit_sink
        self.audit = AuditRecorder(audit_sink, self.time_provider)

        self.accounts = AccountService(self.store, self.audit, self.time_provider, id_factory)
        self.categories = CategoryService(self.store, self.audit, self.time_provider, id_factory)
        self.budget = BudgetEngine(self.store, self.audit, self.time_provider)
        self.targets: TargetService = self.budget.targets
        self.transactions = TransactionService(
            self.store, self.audit, self.time_provider, id_factory
        )
        self.transfers: TransferService = self.transactions.transfers
        self.reconciliation = ReconciliationEngine(
            self.store,
            self.audit,
            self.time_provider,
            id_factory,
            adjustment_payee=self.settings.adjustment_payee,
        )

    def period(self, value: PeriodLike = None) -> BudgetPeriod:
        """Parse a period, or the current one for the configured period type"""
        if isinstance(value, BudgetPeriod):
            return value
        if value is None:
            return self.settings.current_period(self.time_provider.today())
        return BudgetPeriod.parse(value)

    def format(self, amount: Money) -> str:
        return amount.format_with_symbol(self.settings.currency_symbol)

    # ========== Accounts ==========

    def create_account(
        self,
        name: str,
        account_type: AccountType | str = AccountType.CHECKING,
        starting_balance: MoneyLike = 0,
        on_budget: bool = True,
    ) -> Account:
        if isinstance(account_type, str):
            account_type = AccountType.parse(account_type)
        return self.accounts.create(
            name, account_type, as_money(starting_balance), on_budget=on_budget
        )

    def find_account(self, identifier: str) -> Account:
        return self.accounts.find(identifier)

    def list_accounts(self, include_archived: bool = False) -> list[AccountSummary]:
        return self.accounts.list_summaries(include_archived)

    def archive_account(self, account_id: str) -> Account:
        return self.accounts.archive(account_id)

    def account_balance(self, account_id: str) -> Money:
        return self.accounts.calculate_balance(account_id)

    # ========== Categories ==========

    def create_group(self, name: str) -> CategoryGroup:
        return self.categories.create_group(name)

    def create_default_groups(self) -> list[CategoryGroup]:
        return self.categories.create_default_groups()

    def find_group(self, identifier: str) -> CategoryGroup:
        return self.categories.find_group(identifier)

    def create_category(
        self, name: str, group_id: str, goal_amount: MoneyLike | None = None
    ) -> Category:
        goal = as_money(goal_amount) if goal_amount is not None else None
        return self.categories.create_category(name, group_id, goal)

    def find_category(self, identifier: str) -> Category:
        return self.categories.find_category(identifier)

    def list_groups(self) -> list[CategoryGroup]:
        return self.categories.list_groups()

    def list_categories(self) -> list[Category]:
        return self.categories.list_categories()

    # ========== Budget ==========

    def assign(self, category_id: str, period: PeriodLike, amount: MoneyLike) -> BudgetAllocation:
        return self.budget.assign_to_category(category_id, self.period(period), as_money(amount))

    def add(self, category_id: str, period: PeriodLike, delta: MoneyLike) -> BudgetAllocation:
        return self.budget.add_to_category(category_id, self.period(period), as_money(delta))

    def move(
        self, from_category_id: str, to_category_id: str, period: PeriodLike, amount: MoneyLike
    ) -> None:
        self.budget.move_between_categories(
            from_category_id, to_category_id, self.period(period), as_money(amount)
        )

    def summary(self, category_id: str, period: PeriodLike = None) -> CategoryBudgetSummary:
        return self.budget.get_category_summary(category_id, self.period(period))

    def overview(self, period: PeriodLike = None) -> BudgetOverview:
        return self.budget.get_budget_overview(self.period(period))

    def available_to_budget(self, period: PeriodLike = None) -> Money:
        return self.budget.get_available_to_budget(self.period(period))

    def apply_rollover(self, period: PeriodLike = None) -> list[BudgetAllocation]:
        return self.budget.apply_rollover_all(self.period(period))

    def overspent(self, period: PeriodLike = None) -> list[CategoryBudgetSummary]:
        return self.budget.get_overspent_categories(self.period(period))

    def stale_carryovers(self, period: PeriodLike = None) -> list[StaleCarryover]:
        return self.budget.get_stale_carryovers(self.period(period))

    # ========== Targets ==========

    def set_target(
        self,
        category_id: str,
        amount: MoneyLike,
        cadence: TargetCadence | str = TargetCadence.MONTHLY,
        interval_days: int | None = None,
        target_date: date | None = None,
        notes: str = "",
    ) -> BudgetTarget:
        return self.targets.set_target(
            category_id,
            as_money(amount),
            TargetCadence(cadence),
            interval_days=interval_days,
            target_date=target_date,
            notes=notes,
        )

    def get_target(self, category_id: str) -> BudgetTarget | None:
        return self.targets.get_target(category_id)

    def list_targets(self) -> list[BudgetTarget]:
        return self.targets.list_targets()

    def remove_target(self, category_id: str) -> bool:
        return self.targets.remove_target(category_id)

    def auto_fill_targets(self, period: PeriodLike = None) -> list[BudgetAllocation]:
        return self.budget.auto_fill_targets(self.period(period))

    # ========== Transactions ==========

    def add_transaction(
        self,
        account_id: str,
        on_date: date,
        amount: MoneyLike,
        payee_name: str = "",
        category_id: str | None = None,
        memo: str = "",
        status: TransactionStatus = TransactionStatus.PENDING,
        splits: list[Split] | None = None,
    ) -> Transaction:
        return self.transactions.create(
            account_id,
            on_date,
            as_money(amount),
            payee_name=payee_name,
            category_id=category_id,
            memo=memo,
            status=status,
            splits=splits,
        )

    def find_transaction(self, identifier: str) -> Transaction:
        return self.transactions.find(identifier)

    def list_transactions(self, criteria: TransactionFilter | None = None) -> list[Transaction]:
        return self.transactions.list_transactions(criteria)

    def edit_transaction(
        self,
        transaction_id: str,
        on_date: date | None = None,
        amount: MoneyLike | None = None,
        payee_name: str | None = None,
        category_id: str | None = None,
        memo: str | None = None,
    ) -> Transaction:
        return self.transactions.update(
            transaction_id,
            on_date=on_date,
            amount=as_money(amount) if amount is not None else None,
            payee_name=payee_name,
            category_id=category_id,
            memo=memo,
        )

    def delete_transaction(self, transaction_id: str) -> Transaction:
        return self.transactions.delete(transaction_id)

    def clear_transaction(self, transaction_id: str) -> Transaction:
        return self.transactions.clear(transaction_id)

    def unclear_transaction(self, transaction_id: str) -> Transaction:
        return self.transactions.unclear(transaction_id)

    def unlock_transaction(self, transaction_id: str) -> Transaction:
        return self.transactions.unlock(transaction_id)

    # ========== Transfers ==========

    def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: MoneyLike,
        on_date: date,
        memo: str = "",
    ) -> TransferResult:
        return self.transfers.create_transfer(
            from_account_id, to_account_id, as_money(amount), on_date, memo
        )

    # ========== Reconciliation ==========

    def reconcile_start(
        self, account_id: str, statement_date: date, statement_balance: MoneyLike
    ) -> ReconciliationSession:
        return self.reconciliation.start(account_id, statement_date, as_money(statement_balance))

    def reconcile_summary(self, session: ReconciliationSession) -> ReconciliationSummary:
        return self.reconciliation.get_summary(session)

    def reconcile_clear(self, transaction_id: str) -> Transaction:
        return self.reconciliation.clear_transaction(transaction_id)

    def reconcile_unclear(self, transaction_id: str) -> Transaction:
        return self.reconciliation.unclear_transaction(transaction_id)

    def reconcile_complete(self, session: ReconciliationSession) -> ReconciliationResult:
        return self.reconciliation.complete(session)

    def reconcile_complete_with_adjustment(
        self, session: ReconciliationSession, category_id: str | None = None
    ) -> ReconciliationResult:
        return self.reconciliation.complete_with_adjustment(session, category_id)
