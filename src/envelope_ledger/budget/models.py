"""
Budget read models - derived summaries, never persisted

Everything here is computed from allocations and transactions on
demand. Nothing caches these, so they can never go stale.
"""

from pydantic import BaseModel

from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.ledger.models import BudgetAllocation


class CategoryBudgetSummary(BaseModel):
    """
    One category's standing in one period

    available = budgeted + carryover + activity
    """

    category_id: str
    category_name: str = ""
    period: BudgetPeriod
    budgeted: Money
    carryover: Money
    activity: Money
    available: Money

    @classmethod
    def build(
        cls,
        category_id: str,
        period: BudgetPeriod,
        budgeted: Money,
        carryover: Money,
        activity: Money,
        category_name: str = "",
    ) -> "CategoryBudgetSummary":
        return cls(
            category_id=category_id,
            category_name=category_name,
            period=period,
            budgeted=budgeted,
            carryover=carryover,
            activity=activity,
            available=budgeted + carryover + activity,
        )

    @classmethod
    def from_allocation(
        cls, allocation: BudgetAllocation, activity: Money, category_name: str = ""
    ) -> "CategoryBudgetSummary":
        return cls.build(
            allocation.category_id,
            allocation.period,
            allocation.budgeted,
            allocation.carryover,
            activity,
            category_name,
        )

    def is_overspent(self) -> bool:
        return self.available.is_negative()

    def is_underfunded(self, goal: Money | None) -> bool:
        """True when a goal is set and this period's budget falls short of it"""
        return goal is not None and self.budgeted < goal

    def rollover_amount(self) -> Money:
        """What carries into the next period: the whole available balance, deficits included"""
        return self.available

    def __str__(self) -> str:
        return (
            f"Budgeted: {self.budgeted} | Activity: {self.activity} | "
            f"Available: {self.available}"
        )


class BudgetOverview(BaseModel):
    """All categories for one period, with totals and Available to Budget"""

    period: BudgetPeriod
    categories: list[CategoryBudgetSummary]
    total_budgeted: Money
    total_activity: Money
    total_available: Money
    available_to_budget: Money
    income: Money

    def overspent(self) -> list[CategoryBudgetSummary]:
        return [s for s in self.categories if s.is_overspent()]


class StaleCarryover(BaseModel):
    """A stored carryover that no longer matches the previous period"""

    category_id: str
    category_name: str
    period: BudgetPeriod
    stored: Money
    expected: Money
