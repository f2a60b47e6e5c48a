"""
Budget Engine - assigning, moving and rolling over money

The engine owns every write to budget allocations. Each operation follows
the same shape:
1. Load current state (allocations, categories)
2. Validate invariants (budget/invariants.py)
3. Write, as one batch when more than one record changes
4. Audit each changed record

Nothing derived is stored: summaries, Available to Budget and activity
are recomputed from transactions and allocations on every call.

Zero-sum rule: the total of on-budget account balances always equals
Available to Budget plus everything budgeted in the period.
"""

from envelope_ledger.accounts.service import AccountService
from envelope_ledger.budget.activity import ActivityCalculator
from envelope_ledger.budget.allocations import AllocationStore
from envelope_ledger.budget.categories import CategoryService
from envelope_ledger.budget.invariants import (
    validate_category_exists,
    validate_distinct_categories,
    validate_move_amount,
    validate_non_negative_budget,
    validate_sufficient_funds,
)
from envelope_ledger.budget.models import BudgetOverview, CategoryBudgetSummary, StaleCarryover
from envelope_ledger.budget.targets import TargetService
from envelope_ledger.kernel.logging import LogOperation, get_logger
from envelope_ledger.kernel.metrics import allocation_writes_total, track_operation
from envelope_ledger.kernel.money import Money, sum_money
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, EntityType
from envelope_ledger.ledger.models import BudgetAllocation, Category
from envelope_ledger.ledger.store import LedgerStore, WriteOp

logger = get_logger(__name__)


def _signed(amount: Money) -> str:
    return f"+{amount}" if not amount.is_negative() else str(amount)


class BudgetEngine:
    """
    Budget operations for one ledger

    Args:
        store: Ledger store
        audit: Audit recorder for allocation changes
        time_provider: For allocation timestamps (injectable for testing)
    """

    def __init__(
        self,
        store: LedgerStore,
        audit: AuditRecorder,
        time_provider: TimeProvider,
    ) -> None:
        self.store = store
        self.audit = audit
        self.time_provider = time_provider
        self.allocations = AllocationStore(store, time_provider)
        self.activity = ActivityCalculator(store)
        self.accounts = AccountService(store, audit, time_provider)
        self.categories = CategoryService(store, audit, time_provider)
        self.targets = TargetService(store, audit, time_provider)

    # ========== Writes ==========

    @track_operation("assign_to_category")
    def assign_to_category(
        self, category_id: str, period: BudgetPeriod, amount: Money
    ) -> BudgetAllocation:
        """
        Set a category's budgeted amount for a period

        Args:
            category_id: Category to fund
            period: Budget period
            amount: New budgeted amount (replaces the old one)

        Returns:
            The saved allocation

        Raises:
            CategoryNotFound: If the category does not exist
            NegativeBudget: If amount is negative
        """
        category = validate_category_exists(self.store, category_id)
        before = self.allocations.get_or_default(category_id, period)
        allocation = before.model_copy(deep=True)
        allocation.set_budgeted(amount, self.time_provider.now())
        validate_non_negative_budget(allocation)

        self.allocations.upsert(allocation)
        allocation_writes_total.labels(reason="assign").inc()
        self.audit.record_update(
            EntityType.BUDGET_ALLOCATION,
            allocation.key,
            before,
            allocation,
            category.name,
            f"budgeted: {before.budgeted} -> {allocation.budgeted}",
        )
        return allocation

    @track_operation("add_to_category")
    def add_to_category(
        self, category_id: str, period: BudgetPeriod, delta: Money
    ) -> BudgetAllocation:
        """
        Add (or with a negative delta, remove) budget from a category

        Raises:
            CategoryNotFound: If the category does not exist
            NegativeBudget: If the result would be negative
        """
        category = validate_category_exists(self.store, category_id)
        before = self.allocations.get_or_default(category_id, period)
        allocation = before.model_copy(deep=True)
        allocation.add_budgeted(delta, self.time_provider.now())
        validate_non_negative_budget(allocation)

        self.allocations.upsert(allocation)
        allocation_writes_total.labels(reason="add").inc()
        self.audit.record_update(
            EntityType.BUDGET_ALLOCATION,
            allocation.key,
            before,
            allocation,
            category.name,
            f"budgeted: {before.budgeted} -> {allocation.budgeted} ({_signed(delta)})",
        )
        return allocation

    @track_operation("move_between_categories")
    def move_between_categories(
        self,
        from_category_id: str,
        to_category_id: str,
        period: BudgetPeriod,
        amount: Money,
    ) -> None:
        """
        Move budgeted money from one category to another

        Conserves the period's total budgeted amount exactly. Moving zero
        is a no-op.

        Raises:
            BudgetValidation: If amount is negative or both categories are the same
            CategoryNotFound: If either category does not exist
            InsufficientFunds: If the source has less than amount budgeted
        """
        if amount.is_zero():
            return
        validate_move_amount(amount)
        validate_distinct_categories(from_category_id, to_category_id)
        from_category = validate_category_exists(self.store, from_category_id)
        to_category = validate_category_exists(self.store, to_category_id)

        with LogOperation(
            logger,
            "move_between_categories",
            from_category_id=from_category_id,
            to_category_id=to_category_id,
            period=str(period),
            amount=amount.cents,
        ):
            from_before = self.allocations.get_or_default(from_category_id, period)
            to_before = self.allocations.get_or_default(to_category_id, period)
            validate_sufficient_funds(from_category, from_before, amount)

            now = self.time_provider.now()
            from_after = from_before.model_copy(deep=True)
            to_after = to_before.model_copy(deep=True)
            from_after.add_budgeted(-amount, now)
            to_after.add_budgeted(amount, now)
            validate_non_negative_budget(from_after)
            validate_non_negative_budget(to_after)

            self.store.batch_write([WriteOp.upsert(from_after), WriteOp.upsert(to_after)])
            allocation_writes_total.labels(reason="move").inc(2)

        self.audit.record_update(
            EntityType.BUDGET_ALLOCATION,
            from_after.key,
            from_before,
            from_after,
            from_category.name,
            f"moved {amount} to '{to_category.name}'",
        )
        self.audit.record_update(
            EntityType.BUDGET_ALLOCATION,
            to_after.key,
            to_before,
            to_after,
            to_category.name,
            f"received {amount} from '{from_category.name}'",
        )

    @track_operation("auto_fill_targets")
    def auto_fill_targets(self, period: BudgetPeriod) -> list[BudgetAllocation]:
        """
        Top every targeted category up to what its target asks for in `period`

        Only shortfalls are filled: a category already budgeted at or above
        its target is left alone, so running this twice changes nothing the
        second time. All top-ups are written as one batch.

        Returns:
            The allocations that were raised, in category order
        """
        with LogOperation(logger, "auto_fill_targets", period=str(period)):
            now = self.time_provider.now()
            changes: list[tuple[Category, BudgetAllocation, BudgetAllocation]] = []
            targets = {t.category_id: t for t in self.targets.list_targets()}
            for category in self._categories():
                target = targets.get(category.id)
                if target is None:
                    continue
                before = self.allocations.get_or_default(category.id, period)
                shortfall = target.amount_for_period(period) - before.budgeted
                if not shortfall.is_positive():
                    continue
                after = before.model_copy(deep=True)
                after.add_budgeted(shortfall, now)
                changes.append((category, before, after))

            if changes:
                self.store.batch_write([WriteOp.upsert(after) for _, _, after in changes])
                allocation_writes_total.labels(reason="auto_fill").inc(len(changes))

        for category, before, after in changes:
            self.audit.record_update(
                EntityType.BUDGET_ALLOCATION,
                after.key,
                before,
                after,
                category.name,
                f"budgeted: {before.budgeted} -> {after.budgeted} (target auto-fill)",
            )
        return [after for _, _, after in changes]

    # ========== Reads ==========

    def get_allocation(self, category_id: str, period: BudgetPeriod) -> BudgetAllocation:
        """Stored allocation, or a zero one if the category was never funded"""
        return self.allocations.get_or_default(category_id, period)

    def get_allocation_history(self, category_id: str) -> list[BudgetAllocation]:
        return self.allocations.list_for_category(category_id)

    def calculate_category_activity(self, category_id: str, period: BudgetPeriod) -> Money:
        return self.activity.category_activity(category_id, period)

    def calculate_income_for_period(self, period: BudgetPeriod) -> Money:
        return self.activity.income_for_period(period)

    def get_category_summary(
        self, category_id: str, period: BudgetPeriod
    ) -> CategoryBudgetSummary:
        """
        Budgeted, carryover, activity and available for one category

        Raises:
            CategoryNotFound: If the category does not exist
        """
        category = validate_category_exists(self.store, category_id)
        return self._summary(category, period)

    def _summary(self, category: Category, period: BudgetPeriod) -> CategoryBudgetSummary:
        allocation = self.allocations.get_or_default(category.id, period)
        activity = self.activity.category_activity(category.id, period)
        return CategoryBudgetSummary.from_allocation(allocation, activity, category.name)

    def get_available_to_budget(self, period: BudgetPeriod) -> Money:
        """
        Money not yet assigned to any category in this period

        ATB = sum of on-budget account balances - sum budgeted in period
        """
        total_balance = self.accounts.total_on_budget_balance()
        total_budgeted = sum_money(a.budgeted for a in self.allocations.list_for_period(period))
        return total_balance - total_budgeted

    def get_budget_overview(self, period: BudgetPeriod) -> BudgetOverview:
        summaries = [self._summary(c, period) for c in self._categories()]
        return BudgetOverview(
            period=period,
            categories=summaries,
            total_budgeted=sum_money(s.budgeted for s in summaries),
            total_activity=sum_money(s.activity for s in summaries),
            total_available=sum_money(s.available for s in summaries),
            available_to_budget=self.get_available_to_budget(period),
            income=self.activity.income_for_period(period),
        )

    def get_overspent_categories(self, period: BudgetPeriod) -> list[CategoryBudgetSummary]:
        return [s for s in (self._summary(c, period) for c in self._categories()) if s.is_overspent()]

    def get_underfunded_categories(self, period: BudgetPeriod) -> list[CategoryBudgetSummary]:
        """Categories with a goal whose budget for the period falls short of it"""
        return [
            summary
            for category in self._categories()
            if (summary := self._summary(category, period)).is_underfunded(category.goal_amount)
        ]

    def _categories(self) -> list[Category]:
        return self.categories.list_categories()

    # ========== Rollover ==========

    def get_carryover(self, category_id: str, period: BudgetPeriod) -> Money:
        """What the previous period leaves behind for this one (surplus or deficit)"""
        return self.get_category_summary(category_id, period.prev()).rollover_amount()

    def apply_rollover(self, category_id: str, period: BudgetPeriod) -> BudgetAllocation:
        """
        Set this period's carryover from the previous period's available

        Writes only when the value actually changes, so calling it again
        is free.

        Raises:
            CategoryNotFound: If the category does not exist
        """
        category = validate_category_exists(self.store, category_id)
        carryover = self._summary(category, period.prev()).rollover_amount()
        before = self.allocations.get_or_default(category_id, period)
        if before.carryover == carryover:
            return before

        allocation = before.model_copy(deep=True)
        allocation.set_carryover(carryover, self.time_provider.now())
        self.allocations.upsert(allocation)
        allocation_writes_total.labels(reason="rollover").inc()
        self.audit.record_update(
            EntityType.BUDGET_ALLOCATION,
            allocation.key,
            before,
            allocation,
            category.name,
            f"carryover: {before.carryover} -> {allocation.carryover}",
        )
        return allocation

    @track_operation("apply_rollover_all")
    def apply_rollover_all(self, period: BudgetPeriod) -> list[BudgetAllocation]:
        """Roll every category into `period`; safe to re-run"""
        with LogOperation(logger, "apply_rollover_all", period=str(period)):
            return [self.apply_rollover(c.id, period) for c in self._categories()]

    def get_stale_carryovers(self, period: BudgetPeriod) -> list[StaleCarryover]:
        """
        Categories whose stored carryover no longer matches the previous period

        Happens when transactions or budgets in an earlier period change
        after rollover ran. Reported, never rewritten: run apply_rollover_all
        to fix them.
        """
        stale = []
        for category in self._categories():
            expected = self._summary(category, period.prev()).rollover_amount()
            allocation = self.allocations.get(category.id, period)
            stored = allocation.carryover if allocation is not None else Money.zero()
            if allocation is None and expected.is_zero():
                continue
            if stored != expected:
                stale.append(
                    StaleCarryover(
                        category_id=category.id,
                        category_name=category.name,
                        period=period,
                        stored=stored,
                        expected=expected,
                    )
                )
        return stale
