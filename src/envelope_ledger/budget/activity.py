"""
Activity Calculator - what actually happened in a period

Activity is the signed sum of transaction amounts attributed to a
category inside a period's inclusive date window. Split transactions
contribute only their lines for that category. Uncategorised
transactions (transfers, income waiting to be budgeted) count toward
no category.
"""

from collections import defaultdict

from envelope_ledger.kernel.money import Money, sum_money
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.ledger.store import LedgerStore


class ActivityCalculator:
    """Derives category activity and income from the transaction list"""

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def category_activity(self, category_id: str, period: BudgetPeriod) -> Money:
        """
        Activity of one category in one period

        Args:
            category_id: Category to total
            period: Window; both ends inclusive

        Returns:
            Signed total; negative means spending
        """
        return sum_money(
            amount
            for transaction in self.store.list_transactions_by_category(category_id)
            if period.contains(transaction.date)
            for cid, amount in transaction.category_amounts()
            if cid == category_id
        )

    def activity_by_category(self, period: BudgetPeriod) -> dict[str, Money]:
        """Activity of every category with any transactions in the period"""
        totals: dict[str, int] = defaultdict(int)
        start, end = period.start_date(), period.end_date()
        for transaction in self.store.list_transactions_by_date_range(start, end):
            for cid, amount in transaction.category_amounts():
                totals[cid] += amount.cents
        return {cid: Money(cents) for cid, cents in totals.items()}

    def income_for_period(self, period: BudgetPeriod) -> Money:
        """Sum of every positive non-transfer amount in the period"""
        start, end = period.start_date(), period.end_date()
        return sum_money(
            t.amount
            for t in self.store.list_transactions_by_date_range(start, end)
            if t.amount.is_positive() and not t.is_transfer()
        )
