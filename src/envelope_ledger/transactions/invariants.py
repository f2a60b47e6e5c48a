"""
Transaction Invariants - the lock contract and structural rules

A reconciled transaction has been confirmed against a bank statement.
Every mutation path calls ensure_unlocked first, so nothing edits,
re-dates, re-amounts or deletes it until someone explicitly unlocks it.
"""

from envelope_ledger.kernel.errors import (
    TransactionLocked,
    TransactionValidation,
    ValidationError,
)
from envelope_ledger.kernel.metrics import locked_rejections_total
from envelope_ledger.kernel.money import Money
from envelope_ledger.ledger.models import Account, Transaction


def ensure_unlocked(transaction: Transaction, action: str = "edited") -> None:
    """
    Refuse to touch a reconciled transaction

    Args:
        transaction: Transaction about to be mutated
        action: Verb for the message ("edited", "deleted"...)

    Raises:
        TransactionLocked: If the transaction is reconciled
    """
    if transaction.is_locked():
        locked_rejections_total.labels(operation=action).inc()
        raise TransactionLocked(transaction.id, action)


def validate_account_active(account: Account) -> None:
    """
    Raises:
        ValidationError: If the account is archived
    """
    if account.archived:
        raise ValidationError(
            f"Account '{account.name}' is archived and cannot take new transactions"
        )


def validate_transaction(transaction: Transaction) -> None:
    """
    Check split totals and categorisation rules

    Raises:
        TransactionValidation: If the transaction is malformed
    """
    transaction.validate_structure()


def validate_transfer_amount(amount: Money) -> None:
    """
    Raises:
        ValidationError: If amount is zero or negative
    """
    if amount.is_zero():
        raise ValidationError("Transfer amount must be non-zero")
    if amount.is_negative():
        raise ValidationError("Transfer amount must be positive")


def validate_distinct_accounts(from_account_id: str, to_account_id: str) -> None:
    if from_account_id == to_account_id:
        raise ValidationError("Cannot transfer to the same account")


def validate_is_transfer(transaction: Transaction) -> str:
    """
    Returns:
        The id of the linked transaction

    Raises:
        TransactionValidation: If the transaction is not part of a transfer
    """
    if transaction.transfer_transaction_id is None:
        raise TransactionValidation(f"Transaction {transaction.id} is not a transfer")
    return transaction.transfer_transaction_id
