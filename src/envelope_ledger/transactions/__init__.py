"""
Transactions - recording money movements, transfers and the lock contract
"""

from envelope_ledger.transactions.service import TransactionFilter, TransactionService
from envelope_ledger.transactions.transfers import TransferResult, TransferService

__all__ = ["TransactionFilter", "TransactionService", "TransferResult", "TransferService"]
