"""
Target Service - recurring funding goals per category

A target says "this category needs $X every week/month/year" (or "$X in
total by some date"). It never moves money by itself: the engine's
auto_fill_targets reads the targets and tops allocations up to them.
"""

from datetime import date

from envelope_ledger.budget.invariants import validate_category_exists
from envelope_ledger.kernel.errors import NotFound
from envelope_ledger.kernel.logging import get_logger
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.audit import AuditRecorder, EntityType
from envelope_ledger.ledger.models import BudgetTarget, TargetCadence
from envelope_ledger.ledger.store import LedgerStore

logger = get_logger(__name__)


class TargetService:
    """
    Set, read and remove budget targets

    Args:
        store: Ledger store
        audit: Audit recorder
        time_provider: For timestamps (injectable for testing)
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

    def set_target(
        self,
        category_id: str,
        amount: Money,
        cadence: TargetCadence = TargetCadence.MONTHLY,
        interval_days: int | None = None,
        target_date: date | None = None,
        notes: str = "",
    ) -> BudgetTarget:
        """
        Create or replace the target of a category

        Args:
            category_id: Category the target funds
            amount: Amount per cadence (or in total, for BY_DATE)
            cadence: How often the amount is due
            interval_days: Required for CUSTOM
            target_date: Required for BY_DATE

        Returns:
            The saved target (active)

        Raises:
            CategoryNotFound: If the category does not exist
            BudgetValidation: If the amount is not positive or the cadence
                is missing its interval/date
        """
        category = validate_category_exists(self.store, category_id)
        before = self.store.get_target(category_id)
        now = self.time_provider.now()
        target = BudgetTarget(
            category_id=category_id,
            amount=amount,
            cadence=cadence,
            interval_days=interval_days if cadence == TargetCadence.CUSTOM else None,
            target_date=target_date if cadence == TargetCadence.BY_DATE else None,
            notes=notes,
            created_at=before.created_at if before is not None else now,
            updated_at=now,
        )
        target.validate_target()

        self.store.upsert_target(target)
        summary = f"{target.amount} {target.describe_cadence().lower()}"
        if before is None:
            self.audit.record_create(EntityType.BUDGET_TARGET, category_id, target, category.name)
        else:
            self.audit.record_update(
                EntityType.BUDGET_TARGET,
                category_id,
                before,
                target,
                category.name,
                f"target: {before.amount} {before.describe_cadence().lower()} -> {summary}",
            )
        logger.info("Target set", category_id=category_id, cadence=cadence.value)
        return target

    def get_target(self, category_id: str) -> BudgetTarget | None:
        return self.store.get_target(category_id)

    def require_target(self, category_id: str) -> BudgetTarget:
        target = self.store.get_target(category_id)
        if target is None:
            raise NotFound(category_id, "Target")
        return target

    def list_targets(self, include_inactive: bool = False) -> list[BudgetTarget]:
        targets = self.store.list_targets()
        return targets if include_inactive else [t for t in targets if t.active]

    def set_active(self, category_id: str, active: bool) -> BudgetTarget:
        """Pause or resume a target without forgetting it"""
        before = self.require_target(category_id)
        if before.active == active:
            return before
        target = before.model_copy(deep=True)
        target.active = active
        target.updated_at = self.time_provider.now()
        self.store.upsert_target(target)
        self.audit.record_update(
            EntityType.BUDGET_TARGET,
            category_id,
            before,
            target,
            diff_summary="resumed" if active else "paused",
        )
        return target

    def remove_target(self, category_id: str) -> bool:
        """Delete a category's target; False if it had none"""
        target = self.store.get_target(category_id)
        if target is None:
            return False
        self.store.delete_target(category_id)
        self.audit.record_delete(EntityType.BUDGET_TARGET, category_id, target)
        return True

    def amount_for(self, category_id: str, period: BudgetPeriod) -> Money:
        """What the category's target asks for in `period` (zero without one)"""
        target = self.store.get_target(category_id)
        return target.amount_for_period(period) if target is not None else Money.zero()
