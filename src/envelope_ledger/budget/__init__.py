"""
Budget - allocating money to categories, period by period

Every dollar in an on-budget account is either Available to Budget or
assigned to exactly one (category, period) bucket. The engine keeps it
that way.

Fun fact: "Give every dollar a job" is the whole method. The rest is
bookkeeping.
"""

from envelope_ledger.budget.engine import BudgetEngine
from envelope_ledger.budget.models import BudgetOverview, CategoryBudgetSummary

__all__ = ["BudgetEngine", "BudgetOverview", "CategoryBudgetSummary"]
