"""
Reconciliation read models

Sessions are throwaway: the CLI rebuilds one on every invocation from
the account, statement date and statement balance, so nothing about an
in-progress reconciliation is ever persisted except transaction statuses.
"""

from datetime import date

from pydantic import BaseModel

from envelope_ledger.kernel.money import Money
from envelope_ledger.ledger.models import Transaction


class ReconciliationSession(BaseModel):
    """
    Statement being reconciled against one account

    Attributes:
        starting_cleared_balance: Account starting balance plus every
            already-reconciled transaction
    """

    account_id: str
    statement_date: date
    statement_balance: Money
    starting_cleared_balance: Money

    model_config = {"frozen": True}


class ReconciliationSummary(BaseModel):
    """Where a session stands right now"""

    session: ReconciliationSession
    uncleared_transactions: list[Transaction]
    cleared_transactions: list[Transaction]
    current_cleared_balance: Money
    difference: Money
    can_complete: bool


class ReconciliationResult(BaseModel):
    transactions_reconciled: int
    adjustment_created: bool = False
    adjustment_amount: Money | None = None
    adjustment_transaction_id: str | None = None
