"""
Custom exceptions for Envelope Ledger

Well-defined error hierarchy enables precise error handling and
clear error messages for the CLI and any other front end. Every error
carries the structured fields (amounts in cents, identifiers) the caller
needs for display, so nobody has to re-derive context after the fact.

Fun fact: The envelope system predates banks for most households - people
literally kept cash in labelled paper envelopes. We just keep the labels.
"""

from typing import Any


class EnvelopeError(Exception):
    """Base exception for all Envelope Ledger errors"""

    exit_code: int = 1

    def user_message(self) -> str:
        """Human-friendly message for CLI output"""
        return str(self)

    def recovery_suggestions(self) -> list[str]:
        """Hints printed below the error message"""
        return []


# Validation Errors


class ValidationError(EnvelopeError):
    """Raised when input is malformed or out of range"""

    exit_code = 4

    def recovery_suggestions(self) -> list[str]:
        return ["Check your input and try again"]


class BudgetValidation(ValidationError):
    """Raised when a budget operation receives invalid input"""

    exit_code = 7

    def recovery_suggestions(self) -> list[str]:
        return ["Check your budget allocations", "Review 'Available to Budget'"]


class NegativeBudget(BudgetValidation):
    """
    Raised when an allocation would end up with a negative budgeted amount

    Removing budget is done by assigning zero or adding a negative delta
    that still leaves the allocation at or above zero.
    """

    def __init__(self, category_id: str, period: str, budgeted_cents: int) -> None:
        self.category_id = category_id
        self.period = period
        self.budgeted_cents = budgeted_cents
        super().__init__(
            f"Budget amount cannot be negative: category {category_id} in {period} "
            f"would be {budgeted_cents} cents"
        )


class TransactionValidation(ValidationError):
    """Raised when a transaction fails structural validation"""

    pass


class SplitsMismatch(TransactionValidation):
    """Raised when split lines do not add up to the transaction amount"""

    def __init__(self, transaction_cents: int, splits_cents: int) -> None:
        self.transaction_cents = transaction_cents
        self.splits_cents = splits_cents
        super().__init__(
            f"Split total {splits_cents} cents does not equal transaction amount "
            f"{transaction_cents} cents"
        )


class MoneyParseError(ValidationError):
    """Raised when a money string cannot be parsed"""

    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Invalid money amount: {raw!r}")


class PeriodParseError(ValidationError):
    """Raised when a period string cannot be parsed"""

    def __init__(self, raw: str, reason: str = "") -> None:
        self.raw = raw
        super().__init__(f"Invalid period {raw!r}" + (f": {reason}" if reason else ""))


# Business Rule Errors


class InsufficientFunds(EnvelopeError):
    """
    Raised when a move would take more than a category has budgeted

    Amounts are exact cents so the caller can display them without
    recomputing anything.
    """

    exit_code = 13

    def __init__(self, category: str, needed: int, available: int) -> None:
        self.category = category
        self.needed = needed
        self.available = available
        super().__init__(
            f"Insufficient funds in category '{category}': need {needed}, have {available}"
        )

    def user_message(self) -> str:
        return (
            f"'{self.category}' doesn't have enough funds "
            f"(need ${self.needed / 100:.2f}, have ${self.available / 100:.2f})"
        )

    def recovery_suggestions(self) -> list[str]:
        return [
            "Move funds from another category",
            "Assign more funds to this category",
        ]


class ReconciliationError(EnvelopeError):
    """
    Raised when reconciliation cannot proceed

    Covers completing with a non-zero difference and starting a session
    on an archived account. `difference_cents` is set for the former.
    """

    exit_code = 8

    def __init__(self, message: str, difference_cents: int | None = None) -> None:
        self.difference_cents = difference_cents
        super().__init__(message)

    def recovery_suggestions(self) -> list[str]:
        return [
            "Review the reconciliation difference",
            "Check for missing transactions",
        ]


class TransactionLocked(EnvelopeError):
    """Raised when a mutation targets a reconciled (locked) transaction"""

    exit_code = 12

    def __init__(self, transaction_id: str, action: str = "edited") -> None:
        self.transaction_id = transaction_id
        self.action = action
        super().__init__(
            f"Transaction {transaction_id} is reconciled and cannot be {action}. "
            "Unlock it first."
        )

    def user_message(self) -> str:
        return f"Cannot modify locked transaction: {self}"

    def recovery_suggestions(self) -> list[str]:
        return [
            "Use 'envelope transaction unlock' to edit",
            "This will require confirmation",
        ]


# Lookup Errors


class NotFound(EnvelopeError):
    """Raised when a referenced entity does not exist"""

    exit_code = 5
    entity_type: str = "Entity"

    def __init__(self, identifier: str, entity_type: str | None = None) -> None:
        if entity_type is not None:
            self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(f"{self.entity_type} not found: {identifier}")

    def user_message(self) -> str:
        return f"{self.entity_type} '{self.identifier}' was not found"

    def recovery_suggestions(self) -> list[str]:
        return ["Check that the item exists"]


class AccountNotFound(NotFound):
    """Raised when account does not exist"""

    entity_type = "Account"

    def recovery_suggestions(self) -> list[str]:
        return ["Run 'envelope account list' to see available accounts"]


class CategoryNotFound(NotFound):
    """Raised when category does not exist"""

    entity_type = "Category"

    def recovery_suggestions(self) -> list[str]:
        return ["Run 'envelope category list' to see available categories"]


class CategoryGroupNotFound(NotFound):
    """Raised when category group does not exist"""

    entity_type = "CategoryGroup"


class TransactionNotFound(NotFound):
    """Raised when transaction does not exist"""

    entity_type = "Transaction"

    def recovery_suggestions(self) -> list[str]:
        return ["Check the transaction ID and try again"]


class Duplicate(EnvelopeError):
    """Raised when creating an entity whose name is already taken"""

    exit_code = 6

    def __init__(self, entity_type: str, identifier: str) -> None:
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(f"{entity_type} already exists: {identifier}")

    def recovery_suggestions(self) -> list[str]:
        return ["Use a different name", "Edit the existing item instead"]


# Infrastructure Errors


class StorageError(EnvelopeError):
    """Raised when the ledger store fails to read or write"""

    exit_code = 14

    def recovery_suggestions(self) -> list[str]:
        return [
            "Check the data directory is accessible",
            "Try with elevated permissions",
        ]


def format_cli_error(error: EnvelopeError) -> str:
    """
    Format an error for CLI output with suggestions

    Args:
        error: Any Envelope Ledger error

    Returns:
        Multi-line string ready for stderr
    """
    output = f"Error: {error.user_message()}\n"
    suggestions = error.recovery_suggestions()
    if suggestions:
        output += "\nSuggestions:\n"
        for suggestion in suggestions:
            output += f"  - {suggestion}\n"
    return output


def error_context(error: EnvelopeError) -> dict[str, Any]:
    """Structured fields of an error, for log events"""
    return {
        key: value
        for key, value in vars(error).items()
        if not key.startswith("_") and key != "args"
    }
