"""
Budget periods - the time buckets allocations live in

A period is a closed date range [start, end] with a kind that decides
how it is named and how next()/prev() step through time. Periods order
by their start date, then end date.

String encodings (stable, round-trip through parse):
    monthly    "2025-01"
    weekly     "2025-W03"              (ISO week, Monday to Sunday)
    bi-weekly  "2025-01-06/2w"         (14 days from the given start)
    custom     "2025-01-01..2025-01-15"

Fun fact: ISO week 1 is the week containing the year's first Thursday,
so 30 December 2024 is already in week 1 of 2025.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from functools import total_ordering
from typing import Any

from pydantic_core import core_schema

from envelope_ledger.kernel.errors import PeriodParseError


class PeriodKind(str, Enum):
    """How a period is named and stepped"""

    MONTHLY = "monthly"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    CUSTOM = "custom"


_MONTHLY_RE = re.compile(r"^(\d{4})-(\d{2})$")
_WEEKLY_RE = re.compile(r"^(\d{4})-W(\d{2})$")
_BI_WEEKLY_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})/2w$")
_CUSTOM_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\.\.(\d{4}-\d{2}-\d{2})$")


def iso_weeks_in_year(year: int) -> int:
    """Number of ISO weeks in a year (52 or 53); 28 December is always in the last one"""
    return date(year, 12, 28).isocalendar()[1]


@total_ordering
@dataclass(frozen=True)
class BudgetPeriod:
    """
    A budgeting period

    Construct through the classmethods rather than directly so the
    start/end pair always matches the kind.
    """

    kind: PeriodKind
    start: date
    end: date

    # ========== Construction ==========

    @classmethod
    def monthly(cls, year: int, month: int) -> "BudgetPeriod":
        if not 1 <= month <= 12:
            raise PeriodParseError(f"{year}-{month:02d}", "month must be 1-12")
        last_day = calendar.monthrange(year, month)[1]
        return cls(PeriodKind.MONTHLY, date(year, month, 1), date(year, month, last_day))

    @classmethod
    def weekly(cls, year: int, week: int) -> "BudgetPeriod":
        if not 1 <= week <= iso_weeks_in_year(year):
            raise PeriodParseError(f"{year}-W{week:02d}", "week out of range")
        start = date.fromisocalendar(year, week, 1)
        return cls(PeriodKind.WEEKLY, start, start + timedelta(days=6))

    @classmethod
    def bi_weekly(cls, start: date) -> "BudgetPeriod":
        return cls(PeriodKind.BI_WEEKLY, start, start + timedelta(days=13))

    @classmethod
    def custom(cls, start: date, end: date) -> "BudgetPeriod":
        if end < start:
            raise PeriodParseError(f"{start}..{end}", "end is before start")
        return cls(PeriodKind.CUSTOM, start, end)

    @classmethod
    def month_of(cls, day: date) -> "BudgetPeriod":
        return cls.monthly(day.year, day.month)

    @classmethod
    def week_of(cls, day: date) -> "BudgetPeriod":
        iso_year, iso_week, _ = day.isocalendar()
        return cls.weekly(iso_year, iso_week)

    @classmethod
    def parse(cls, raw: str) -> "BudgetPeriod":
        """
        Parse the string encoding of any period kind

        Raises:
            PeriodParseError: If the string matches no encoding or names an
                impossible month/week/date
        """
        text = raw.strip()
        try:
            if match := _MONTHLY_RE.match(text):
                return cls.monthly(int(match.group(1)), int(match.group(2)))
            if match := _WEEKLY_RE.match(text):
                return cls.weekly(int(match.group(1)), int(match.group(2)))
            if match := _BI_WEEKLY_RE.match(text):
                return cls.bi_weekly(date.fromisoformat(match.group(1)))
            if match := _CUSTOM_RE.match(text):
                return cls.custom(
                    date.fromisoformat(match.group(1)),
                    date.fromisoformat(match.group(2)),
                )
        except ValueError as e:
            raise PeriodParseError(raw, str(e)) from e
        raise PeriodParseError(raw, "expected YYYY-MM, YYYY-Www, YYYY-MM-DD/2w or start..end")

    # ========== Queries ==========

    def start_date(self) -> date:
        return self.start

    def end_date(self) -> date:
        return self.end

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def length_days(self) -> int:
        return (self.end - self.start).days + 1

    # ========== Navigation ==========

    def next(self) -> "BudgetPeriod":
        if self.kind == PeriodKind.MONTHLY:
            if self.start.month == 12:
                return BudgetPeriod.monthly(self.start.year + 1, 1)
            return BudgetPeriod.monthly(self.start.year, self.start.month + 1)
        if self.kind == PeriodKind.WEEKLY:
            year, week, _ = self.start.isocalendar()
            if week >= iso_weeks_in_year(year):
                return BudgetPeriod.weekly(year + 1, 1)
            return BudgetPeriod.weekly(year, week + 1)
        if self.kind == PeriodKind.BI_WEEKLY:
            return BudgetPeriod.bi_weekly(self.start + timedelta(days=14))
        shift = timedelta(days=self.length_days())
        return BudgetPeriod.custom(self.start + shift, self.end + shift)

    def prev(self) -> "BudgetPeriod":
        if self.kind == PeriodKind.MONTHLY:
            if self.start.month == 1:
                return BudgetPeriod.monthly(self.start.year - 1, 12)
            return BudgetPeriod.monthly(self.start.year, self.start.month - 1)
        if self.kind == PeriodKind.WEEKLY:
            year, week, _ = self.start.isocalendar()
            if week == 1:
                return BudgetPeriod.weekly(year - 1, iso_weeks_in_year(year - 1))
            return BudgetPeriod.weekly(year, week - 1)
        if self.kind == PeriodKind.BI_WEEKLY:
            return BudgetPeriod.bi_weekly(self.start - timedelta(days=14))
        shift = timedelta(days=self.length_days())
        return BudgetPeriod.custom(self.start - shift, self.end - shift)

    # ========== Ordering & display ==========

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BudgetPeriod):
            return NotImplemented
        return (self.start, self.end) < (other.start, other.end)

    def __str__(self) -> str:
        if self.kind == PeriodKind.MONTHLY:
            return f"{self.start.year:04d}-{self.start.month:02d}"
        if self.kind == PeriodKind.WEEKLY:
            year, week, _ = self.start.isocalendar()
            return f"{year:04d}-W{week:02d}"
        if self.kind == PeriodKind.BI_WEEKLY:
            return f"{self.start.isoformat()}/2w"
        return f"{self.start.isoformat()}..{self.end.isoformat()}"

    def describe(self) -> str:
        """Longer human label, e.g. 'January 2025' or '2025-01-06 - 2025-01-19'"""
        if self.kind == PeriodKind.MONTHLY:
            return f"{calendar.month_name[self.start.month]} {self.start.year}"
        if self.kind == PeriodKind.WEEKLY:
            year, week, _ = self.start.isocalendar()
            return f"Week {week}, {year}"
        return f"{self.start.isoformat()} - {self.end.isoformat()}"

    # ========== Pydantic integration ==========

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: Any
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, return_schema=core_schema.str_schema()
            ),
        )

    @classmethod
    def _coerce(cls, value: Any) -> "BudgetPeriod":
        if isinstance(value, BudgetPeriod):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        raise ValueError(f"Cannot interpret {value!r} as BudgetPeriod")
