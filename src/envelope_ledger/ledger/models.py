"""
Ledger Domain Models - the persisted entities

Accounts hold money, transactions move it, categories (inside groups)
say what it is for, and allocations say how much of it each category gets
in each period. These are the only things the store persists; every
balance and summary is derived from them on demand.

Key concepts:
- Money is integer cents (kernel.money.Money), serialized as an int
- A reconciled transaction is locked until explicitly unlocked
- An allocation's budgeted amount is never negative
- A target says how much a category should get each period; auto-fill
  tops the allocation up to it
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, Field

from envelope_ledger.kernel.errors import (
    BudgetValidation,
    SplitsMismatch,
    TransactionValidation,
    ValidationError,
)
from envelope_ledger.kernel.ids import allocation_key
from envelope_ledger.kernel.money import Money, sum_money
from envelope_ledger.kernel.period import BudgetPeriod, PeriodKind

MAX_ACCOUNT_NAME = 100
MAX_CATEGORY_NAME = 50
MAX_GROUP_NAME = 50


# ========== Accounts ==========


class AccountType(str, Enum):
    """Kind of account; credit and line_of_credit are liabilities"""

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    CASH = "cash"
    INVESTMENT = "investment"
    LINE_OF_CREDIT = "line_of_credit"
    OTHER = "other"

    def is_liability(self) -> bool:
        return self in (AccountType.CREDIT, AccountType.LINE_OF_CREDIT)

    @classmethod
    def parse(cls, raw: str) -> "AccountType":
        """Lenient parse accepting aliases like 'credit_card' and 'loc'"""
        aliases = {
            "credit_card": cls.CREDIT,
            "creditcard": cls.CREDIT,
            "loc": cls.LINE_OF_CREDIT,
            "lineofcredit": cls.LINE_OF_CREDIT,
        }
        text = raw.strip().lower()
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError as e:
            raise ValidationError(f"Unknown account type: {raw!r}") from e


class Account(BaseModel):
    """
    A place money lives

    Attributes:
        id: Unique identifier
        name: Display name, unique case-insensitively
        account_type: Kind of account
        on_budget: Whether the balance counts toward Available to Budget
        archived: Archived accounts accept no new transactions
        starting_balance: Balance before the first recorded transaction
        last_reconciled_date: Statement date of the last completed reconciliation
        last_reconciled_balance: Statement balance of that reconciliation
    """

    id: str
    name: str = Field(min_length=1, max_length=MAX_ACCOUNT_NAME)
    account_type: AccountType = AccountType.CHECKING
    on_budget: bool = True
    archived: bool = False
    starting_balance: Money = Field(default_factory=Money.zero)
    notes: str = ""
    last_reconciled_date: date | None = None
    last_reconciled_balance: Money | None = None
    created_at: datetime
    updated_at: datetime

    def archive(self, now: datetime) -> None:
        self.archived = True
        self.updated_at = now

    def unarchive(self, now: datetime) -> None:
        self.archived = False
        self.updated_at = now

    def reconcile(self, statement_date: date, statement_balance: Money, now: datetime) -> None:
        """Stamp the account with a completed reconciliation"""
        self.last_reconciled_date = statement_date
        self.last_reconciled_balance = statement_balance
        self.updated_at = now


# ========== Categories ==========


class CategoryGroup(BaseModel):
    """Named group of categories (Bills, Needs, Wants...)"""

    id: str
    name: str = Field(min_length=1, max_length=MAX_GROUP_NAME)
    sort_order: int = 0
    hidden: bool = False
    created_at: datetime
    updated_at: datetime


class Category(BaseModel):
    """
    Spending category - the "envelope"

    Attributes:
        goal_amount: Optional funding target; used to flag underfunded categories
    """

    id: str
    name: str = Field(min_length=1, max_length=MAX_CATEGORY_NAME)
    group_id: str
    sort_order: int = 0
    hidden: bool = False
    goal_amount: Money | None = None
    notes: str = ""
    created_at: datetime
    updated_at: datetime


# Groups a freshly initialised ledger starts with
DEFAULT_CATEGORY_GROUPS = ("Bills", "Needs", "Wants", "Savings")


# ========== Transactions ==========


class TransactionStatus(str, Enum):
    """
    Transaction lifecycle

    PENDING → CLEARED → RECONCILED

    Cleared means the bank has seen it. Reconciled means it was confirmed
    against a statement and is locked.
    """

    PENDING = "pending"
    CLEARED = "cleared"
    RECONCILED = "reconciled"

    def is_locked(self) -> bool:
        return self == TransactionStatus.RECONCILED


class Split(BaseModel):
    """One category line of a split transaction"""

    category_id: str
    amount: Money
    memo: str = ""


class Transaction(BaseModel):
    """
    A single money movement in one account

    Negative amounts are outflows, positive amounts inflows. A transaction
    is categorised either as a whole (category_id) or line by line
    (splits), never both. The two sides of a transfer point at each other
    through transfer_transaction_id and carry no category.
    """

    id: str
    account_id: str
    date: date
    amount: Money
    payee_name: str = ""
    category_id: str | None = None
    splits: list[Split] = Field(default_factory=list)
    memo: str = ""
    status: TransactionStatus = TransactionStatus.PENDING
    transfer_transaction_id: str | None = None
    created_at: datetime
    updated_at: datetime

    def is_split(self) -> bool:
        return bool(self.splits)

    def is_transfer(self) -> bool:
        return self.transfer_transaction_id is not None

    def is_inflow(self) -> bool:
        return self.amount.is_positive()

    def is_outflow(self) -> bool:
        return self.amount.is_negative()

    def is_locked(self) -> bool:
        return self.status.is_locked()

    def splits_total(self) -> Money:
        return sum_money(split.amount for split in self.splits)

    def category_amounts(self) -> list[tuple[str, Money]]:
        """(category_id, amount) lines this transaction contributes to activity"""
        if self.splits:
            return [(split.category_id, split.amount) for split in self.splits]
        if self.category_id is not None:
            return [(self.category_id, self.amount)]
        return []

    def validate_structure(self) -> None:
        """
        Check the categorisation rules

        Raises:
            TransactionValidation: If a category and splits are both set, or a
                transfer is categorised
            SplitsMismatch: If split lines do not add up to the amount
        """
        if self.splits:
            if self.category_id is not None:
                raise TransactionValidation(
                    "Transaction cannot have both a category and splits"
                )
            total = self.splits_total()
            if total != self.amount:
                raise SplitsMismatch(self.amount.cents, total.cents)
        if self.is_transfer() and (self.category_id is not None or self.splits):
            raise TransactionValidation("Transfer transactions cannot be categorised")


# ========== Budget allocations ==========


class BudgetAllocation(BaseModel):
    """
    Budget for one category in one period

    One record per (category_id, period). Created lazily (a missing
    record reads as zero budget and zero carryover) and mutated only
    through set_budgeted/add_budgeted/set_carryover.

    Invariants enforced:
    - budgeted >= 0
    """

    category_id: str
    period: BudgetPeriod
    budgeted: Money = Field(default_factory=Money.zero)
    carryover: Money = Field(default_factory=Money.zero)
    notes: str = ""
    created_at: datetime
    updated_at: datetime

    @property
    def key(self) -> str:
        return allocation_key(self.category_id, self.period)

    def total_budgeted(self) -> Money:
        """Budgeted plus carried over"""
        return self.budgeted + self.carryover

    def set_budgeted(self, amount: Money, now: datetime) -> None:
        self.budgeted = amount
        self.updated_at = now

    def add_budgeted(self, delta: Money, now: datetime) -> None:
        self.budgeted = self.budgeted + delta
        self.updated_at = now

    def set_carryover(self, amount: Money, now: datetime) -> None:
        self.carryover = amount
        self.updated_at = now

    def __str__(self) -> str:
        return f"{self.period} budgeted: {self.budgeted} (carryover: {self.carryover})"


# ========== Budget targets ==========


class TargetCadence(str, Enum):
    """How often a target amount is due"""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"
    BY_DATE = "by_date"


def _scaled(amount: Money, numerator: int | Decimal, denominator: int | Decimal) -> Money:
    """amount * numerator / denominator, rounded half up to the cent"""
    cents = Decimal(amount.cents) * Decimal(numerator) / Decimal(denominator)
    return Money(int(cents.quantize(Decimal(1), rounding=ROUND_HALF_UP)))


class BudgetTarget(BaseModel):
    """
    Recurring funding goal for one category

    At most one target per category, keyed by category_id. The amount is
    what the cadence asks for (per week, per month, per year, per
    interval_days, or in total by target_date); amount_for_period
    converts it to whatever period is being budgeted.

    Attributes:
        interval_days: Length of a CUSTOM cadence
        target_date: Deadline of a BY_DATE cadence
        active: Inactive targets ask for nothing
    """

    category_id: str
    amount: Money
    cadence: TargetCadence = TargetCadence.MONTHLY
    interval_days: int | None = None
    target_date: date | None = None
    notes: str = ""
    active: bool = True
    created_at: datetime
    updated_at: datetime

    def validate_target(self) -> None:
        """
        Raises:
            BudgetValidation: If the amount is not positive or the cadence
                is missing its interval/date
        """
        if not self.amount.is_positive():
            raise BudgetValidation("Target amount must be positive")
        if self.cadence == TargetCadence.CUSTOM and (
            self.interval_days is None or self.interval_days < 1
        ):
            raise BudgetValidation("Custom cadence interval must be at least 1 day")
        if self.cadence == TargetCadence.BY_DATE and self.target_date is None:
            raise BudgetValidation("A by-date target needs a target date")

    def describe_cadence(self) -> str:
        if self.cadence == TargetCadence.CUSTOM:
            return f"Every {self.interval_days} days"
        if self.cadence == TargetCadence.BY_DATE:
            return f"By {self.target_date}"
        return self.cadence.value.capitalize()

    def amount_for_period(self, period: BudgetPeriod) -> Money:
        """
        What this target asks for in one budget period

        Example:
            A $100 weekly target asks for round(100 * 31 / 7) = $442.86 in
            January, and a $1,200 yearly target asks for $100.00.
        """
        if not self.active:
            return Money.zero()
        days = period.length_days()
        kind = period.kind

        if self.cadence == TargetCadence.WEEKLY:
            if kind == PeriodKind.WEEKLY:
                return self.amount
            if kind == PeriodKind.BI_WEEKLY:
                return Money(self.amount.cents * 2)
            return _scaled(self.amount, days, 7)

        if self.cadence == TargetCadence.MONTHLY:
            if kind == PeriodKind.MONTHLY:
                return self.amount
            if kind == PeriodKind.WEEKLY:
                return _scaled(self.amount, 100, 433)
            if kind == PeriodKind.BI_WEEKLY:
                return Money(self.amount.cents // 2)
            return _scaled(self.amount, days, 30)

        if self.cadence == TargetCadence.YEARLY:
            if kind == PeriodKind.MONTHLY:
                return Money(self.amount.cents // 12)
            if kind == PeriodKind.WEEKLY:
                return _scaled(self.amount, 1, 52)
            if kind == PeriodKind.BI_WEEKLY:
                return _scaled(self.amount, 1, 26)
            return _scaled(self.amount, days, 365)

        if self.cadence == TargetCadence.CUSTOM:
            return _scaled(self.amount, days, self.interval_days or 1)

        # BY_DATE: spread what is left evenly over the months up to the deadline
        deadline = self.target_date
        if deadline is None or deadline < period.start:
            return Money.zero()
        if deadline <= period.end:
            return self.amount
        months = (deadline.year - period.start.year) * 12 + (
            deadline.month - period.start.month
        )
        if months <= 0:
            return self.amount
        return Money(-(-self.amount.cents // months))
