"""
Allocation Store - get-or-default access to budget allocations

A category with no allocation in a period simply has nothing budgeted
there. get_or_default returns a fresh zero allocation in that case,
without saving it; it only reaches the store once something writes it.
"""

from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.kernel.time import TimeProvider
from envelope_ledger.ledger.models import BudgetAllocation
from envelope_ledger.ledger.store import LedgerStore


class AllocationStore:
    """Thin allocation view over the ledger store"""

    def __init__(self, store: LedgerStore, time_provider: TimeProvider) -> None:
        self.store = store
        self.time_provider = time_provider

    def get(self, category_id: str, period: BudgetPeriod) -> BudgetAllocation | None:
        return self.store.get_allocation(category_id, period)

    def get_or_default(self, category_id: str, period: BudgetPeriod) -> BudgetAllocation:
        """Stored allocation, or an unsaved zero allocation"""
        allocation = self.store.get_allocation(category_id, period)
        if allocation is not None:
            return allocation
        now = self.time_provider.now()
        return BudgetAllocation(
            category_id=category_id,
            period=period,
            created_at=now,
            updated_at=now,
        )

    def exists(self, category_id: str, period: BudgetPeriod) -> bool:
        return self.store.get_allocation(category_id, period) is not None

    def upsert(self, allocation: BudgetAllocation) -> None:
        self.store.upsert_allocation(allocation)

    def list_for_period(self, period: BudgetPeriod) -> list[BudgetAllocation]:
        return self.store.list_allocations_for_period(period)

    def list_for_category(self, category_id: str) -> list[BudgetAllocation]:
        return self.store.list_allocations_for_category(category_id)
