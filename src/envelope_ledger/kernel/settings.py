"""
Ledger settings - user preferences for budgeting and display

Loaded from a JSON file next to the database, then overridden by
ENVIRONMENT-style variables (ENVELOPE_CURRENCY_SYMBOL, ENVELOPE_LOG_LEVEL...).
Every field has a safe default, so an empty or missing file is fine.
"""

import json
import os
from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from envelope_ledger.kernel.errors import ValidationError
from envelope_ledger.kernel.period import BudgetPeriod

ENV_PREFIX = "ENVELOPE_"


class BudgetPeriodType(str, Enum):
    """Which period kind new budgets default to"""

    MONTHLY = "monthly"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"


class LedgerSettings(BaseModel):
    """
    User preferences

    The reconciliation adjustment payee is configurable for people who
    keep their books in another language; the memo is fixed.
    """

    schema_version: int = Field(default=1, ge=1)

    budget_period_type: BudgetPeriodType = Field(
        default=BudgetPeriodType.MONTHLY,
        description="Period kind used when no period is given explicitly",
    )

    bi_weekly_anchor: date = Field(
        default=date(2025, 1, 6),
        description="Any start date of a bi-weekly cycle; later cycles are 14 days apart",
    )

    currency_symbol: str = Field(default="$", min_length=1, max_length=5)

    date_format: str = Field(default="%Y-%m-%d", min_length=2)

    adjustment_payee: str = Field(
        default="Reconciliation Adjustment",
        min_length=1,
        max_length=100,
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    json_logs: bool = False

    audit_log_path: Path | None = Field(
        default=None,
        description="JSON-lines audit file; None disables file auditing",
    )

    model_config = {
        "frozen": False,
        "extra": "ignore",
    }

    @classmethod
    def load(cls, path: Path | str | None = None) -> "LedgerSettings":
        """
        Load settings from a JSON file and the environment

        Args:
            path: Settings file; missing files are treated as empty

        Returns:
            Validated settings

        Raises:
            ValidationError: If the file is not valid JSON or a value is invalid
        """
        data: dict[str, object] = {}
        if path is not None and Path(path).exists():
            try:
                data = json.loads(Path(path).read_text(encoding="utf-8") or "{}")
            except json.JSONDecodeError as e:
                raise ValidationError(f"Settings file {path} is not valid JSON: {e}") from e

        for name in cls.model_fields:
            env_value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if env_value is not None:
                data[name] = env_value

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid settings: {e}") from e

    def save(self, path: Path | str) -> None:
        Path(path).write_text(self.model_dump_json(indent=2), encoding="utf-8")

    def current_period(self, today: date) -> BudgetPeriod:
        """
        The period containing `today` for the configured period type

        Args:
            today: Reference date (usually TimeProvider.today())

        Returns:
            Monthly, ISO-weekly or bi-weekly period containing today
        """
        if self.budget_period_type == BudgetPeriodType.WEEKLY:
            return BudgetPeriod.week_of(today)
        if self.budget_period_type == BudgetPeriodType.BI_WEEKLY:
            cycles = (today - self.bi_weekly_anchor).days // 14
            return BudgetPeriod.bi_weekly(self.bi_weekly_anchor + timedelta(days=14 * cycles))
        return BudgetPeriod.month_of(today)

    def format_date(self, day: date) -> str:
        return day.strftime(self.date_format)
