"""
Kernel - primitives and plumbing shared by every module

Money and periods, the error hierarchy, time and id providers, settings,
and the logging/metrics/retry plumbing. Nothing in here knows about
accounts or categories.

Fun fact: Zero-based budgeting was formalised by Peter Pyhrr at Texas
Instruments in 1970. Households had been doing it with envelopes for decades.
"""

from envelope_ledger.kernel.errors import (
    EnvelopeError,
    InsufficientFunds,
    NotFound,
    ReconciliationError,
    TransactionLocked,
    ValidationError,
)
from envelope_ledger.kernel.ids import IdFactory, generate_id
from envelope_ledger.kernel.money import Money, sum_money
from envelope_ledger.kernel.period import BudgetPeriod, PeriodKind
from envelope_ledger.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # Primitives
    "Money",
    "sum_money",
    "BudgetPeriod",
    "PeriodKind",
    # IDs
    "IdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Errors
    "EnvelopeError",
    "ValidationError",
    "InsufficientFunds",
    "NotFound",
    "ReconciliationError",
    "TransactionLocked",
]
