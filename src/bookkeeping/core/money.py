#!/usr/bin/env python3
"""
Money Primitive Type

Immutable amount wrapper that uses integer cents internally.
The currency itself is tracked on the owning document, not on the amount.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .currency import cents_to_units_str, format_argentine_number, parse_number, to_cents


@dataclass(frozen=True)
class Money:
    """
    Immutable money value in cents.

    Examples:
        >>> Money.from_text("1.234,56").to_cents()
        123456
        >>> Money.from_decimal(Decimal("10.005")).to_cents()
        1001
        >>> str(Money.from_cents(-4599))
        '$-45.99'
    """

    cents: int

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        """Create Money from cents."""
        return cls(cents=cents)

    @classmethod
    def zero(cls) -> "Money":
        return cls(cents=0)

    @classmethod
    def from_decimal(cls, amount: Decimal | int) -> "Money":
        """Create Money from a Decimal amount, rounding half-up to cents."""
        return cls(cents=to_cents(Decimal(amount)))

    @classmethod
    def from_text(cls, value: Any) -> "Money | None":
        """
        Parse Money from text in Argentine, US or plain notation.

        Args:
            value: Text like "1.234,56", "$1,234.56", a number, or None

        Returns:
            Money object, or None if the value cannot be parsed
        """
        parsed = parse_number(value)
        if parsed is None:
            return None
        return cls.from_decimal(parsed)

    def to_cents(self) -> int:
        """Get value in cents."""
        return self.cents

    def to_decimal(self) -> Decimal:
        """Get value as a Decimal with two decimal places."""
        return Decimal(self.cents).scaleb(-2)

    def abs(self) -> "Money":
        """Return absolute value of Money."""
        return Money(cents=abs(self.cents))

    def is_zero(self) -> bool:
        return self.cents == 0

    def within(self, other: "Money", tolerance: "Money") -> bool:
        """
        Check whether two amounts differ by at most a tolerance.

        Signs are ignored: a debit of 100 matches a credit of 100.
        """
        return abs(abs(self.cents) - abs(other.cents)) <= tolerance.cents

    def to_argentine(self) -> str:
        """Format as "1.234,56"."""
        return format_argentine_number(self.to_decimal())

    def __add__(self, other: "Money") -> "Money":
        return Money(cents=self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        return Money(cents=self.cents - other.cents)

    def __mul__(self, scalar: int) -> "Money":
        return Money(cents=self.cents * scalar)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.cents == other.cents

    def __lt__(self, other: "Money") -> bool:
        return self.cents < other.cents

    def __le__(self, other: "Money") -> bool:
        return self.cents <= other.cents

    def __gt__(self, other: "Money") -> bool:
        return self.cents > other.cents

    def __ge__(self, other: "Money") -> bool:
        return self.cents >= other.cents

    def __str__(self) -> str:
        """Format as "$1234.56"."""
        return f"${cents_to_units_str(self.cents)}"

    def __repr__(self) -> str:
        return f"Money(cents={self.cents})"
