"""
Envelope Ledger - zero-based budgeting and statement reconciliation

Tracks money through accounts, assigns every dollar to a spending
category per period, and locks transactions once they have been
confirmed against a bank statement.

Fun fact: Zero-based doesn't mean you have zero money - it means
income minus assignments equals zero. Every dollar has a job.
"""

from envelope_ledger.envelope import Envelope
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.period import BudgetPeriod

__version__ = "0.1.0"
__all__ = ["Envelope", "Money", "BudgetPeriod", "__version__"]
