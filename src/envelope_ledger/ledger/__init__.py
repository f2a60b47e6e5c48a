"""
Ledger - persisted entities, stores and the audit trail
"""

from envelope_ledger.ledger.audit import AuditEntry, AuditRecorder, InMemoryAuditSink, JsonlAuditSink
from envelope_ledger.ledger.models import (
    Account,
    AccountType,
    BudgetAllocation,
    BudgetTarget,
    Category,
    CategoryGroup,
    Split,
    TargetCadence,
    Transaction,
    TransactionStatus,
)
from envelope_ledger.ledger.store import InMemoryLedgerStore, LedgerStore, WriteOp

__all__ = [
    "Account",
    "AccountType",
    "BudgetAllocation",
    "BudgetTarget",
    "Category",
    "CategoryGroup",
    "Split",
    "Transaction",
    "TransactionStatus",
    "TargetCadence",
    "LedgerStore",
    "InMemoryLedgerStore",
    "WriteOp",
    "AuditEntry",
    "AuditRecorder",
    "InMemoryAuditSink",
    "JsonlAuditSink",
]
