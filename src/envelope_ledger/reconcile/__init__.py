"""
Reconcile - confirming the ledger against bank statements
"""

from envelope_ledger.reconcile.engine import ReconciliationEngine
from envelope_ledger.reconcile.models import (
    ReconciliationResult,
    ReconciliationSession,
    ReconciliationSummary,
)

__all__ = [
    "ReconciliationEngine",
    "ReconciliationResult",
    "ReconciliationSession",
    "ReconciliationSummary",
]
