"""
Money - exact integer-cents currency amounts

Amounts are stored as whole cents so every ledger invariant can be
checked with plain integer equality. No floats anywhere near the ledger.

Fun fact: The 2 decimal places of most currencies go back to the 1792
US Coinage Act, which defined the dollar as 100 cents.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pydantic_core import core_schema

from envelope_ledger.kernel.errors import MoneyParseError


@dataclass(frozen=True, order=True)
class Money:
    """
    Signed amount in cents

    Supports +, -, unary -, comparison and sign predicates. Serializes
    to a bare integer (cents) inside pydantic models.

    Example:
        >>> Money.parse("$10.50") + Money.from_cents(50)
        Money(cents=1100)
    """

    cents: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise TypeError(f"Money requires integer cents, got {self.cents!r}")

    # ========== Construction ==========

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        return cls(cents)

    @classmethod
    def from_dollars_cents(cls, dollars: int, cents: int) -> "Money":
        return cls(dollars * 100 + cents)

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def from_decimal(cls, value: Decimal) -> "Money":
        """Convert a Decimal dollar amount, truncating past the cent"""
        return cls(int(value * 100))

    @classmethod
    def parse(cls, raw: str) -> "Money":
        """
        Parse a human-entered amount

        Accepts "10.50", "-10.50", "$10.50", "-$1,234.5" and "10" (whole
        dollars). Digits past the second decimal place are truncated.

        Raises:
            MoneyParseError: If the string is not a money amount
        """
        text = raw.strip()
        negative = text.startswith("-")
        if negative:
            text = text[1:]
        text = text.removeprefix("$").replace(",", "")

        if "." in text:
            parts = text.split(".")
            if len(parts) != 2:
                raise MoneyParseError(raw)
            dollars_str, cents_str = parts
            if not dollars_str and not cents_str:
                raise MoneyParseError(raw)
            if (dollars_str and not dollars_str.isdigit()) or (
                cents_str and not cents_str.isdigit()
            ):
                raise MoneyParseError(raw)
            dollars = int(dollars_str) if dollars_str else 0
            cents = int(cents_str[:2].ljust(2, "0")) if cents_str else 0
            total = dollars * 100 + cents
        else:
            if not text.isdigit():
                raise MoneyParseError(raw)
            total = int(text) * 100

        return cls(-total if negative else total)

    # ========== Predicates ==========

    def is_zero(self) -> bool:
        return self.cents == 0

    def is_positive(self) -> bool:
        return self.cents > 0

    def is_negative(self) -> bool:
        return self.cents < 0

    # ========== Arithmetic ==========

    def __add__(self, other: object) -> "Money":
        if isinstance(other, Money):
            return Money(self.cents + other.cents)
        return NotImplemented

    def __radd__(self, other: object) -> "Money":
        # Lets builtin sum() start from 0
        if other == 0:
            return self
        return NotImplemented

    def __sub__(self, other: object) -> "Money":
        if isinstance(other, Money):
            return Money(self.cents - other.cents)
        return NotImplemented

    def __neg__(self) -> "Money":
        return Money(-self.cents)

    def __abs__(self) -> "Money":
        return Money(abs(self.cents))

    def abs(self) -> "Money":
        return abs(self)

    # ========== Formatting ==========

    def dollars(self) -> int:
        """Whole dollars, truncated toward zero"""
        return abs(self.cents) // 100 * (-1 if self.cents < 0 else 1)

    def cents_part(self) -> int:
        """Cents portion (0-99)"""
        return abs(self.cents) % 100

    def to_decimal(self) -> Decimal:
        return Decimal(self.cents) / Decimal(100)

    def format_with_symbol(self, symbol: str) -> str:
        sign = "-" if self.cents < 0 else ""
        return f"{sign}{symbol}{abs(self.cents) // 100}.{self.cents_part():02d}"

    def __str__(self) -> str:
        return self.format_with_symbol("$")

    # ========== Pydantic integration ==========

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: Any
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda money: money.cents,
                return_schema=core_schema.int_schema(),
            ),
        )

    @classmethod
    def _coerce(cls, value: Any) -> "Money":
        if isinstance(value, Money):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if isinstance(value, str):
            return cls.parse(value)
        raise ValueError(f"Cannot interpret {value!r} as Money")


def sum_money(amounts: Iterable[Money]) -> Money:
    """Sum Money values, returning zero for an empty iterable"""
    total = 0
    for amount in amounts:
        total += amount.cents
    return Money(total)
