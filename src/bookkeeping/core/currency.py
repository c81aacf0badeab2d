#!/usr/bin/env python3
"""
Amount Parsing and Formatting Utilities

Amount handling for scanned financial documents and spreadsheet exports.
All arithmetic goes through Decimal so binary floating-point artifacts never
reach a comparison.

Number Conventions:
- Argentine: "1.234,56" (dots for thousands, comma for decimal)
- US: "1,234.56" (commas for thousands, dot for decimal)
- Plain: "1234.56" (no thousands separator)

Key Principles:
- Detect the convention from separator positions, never from locale settings
- Invalid input parses to None, not to zero
- Amounts are compared within an explicit tolerance
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

CENT = Decimal("0.01")
DEFAULT_AMOUNT_TOLERANCE = Decimal("1")

_CURRENCY_PREFIX = re.compile(r"^(ARS|USD|U\$S|US\$)", re.IGNORECASE)
_NOISE = re.compile(r"[$\s]")


class NumberFormat(Enum):
    """Decimal/thousands convention of a number string."""

    ARGENTINE = "argentine"
    US = "us"
    PLAIN = "plain"


def detect_number_format(text: str) -> NumberFormat:
    """
    Detect the number convention from separator positions.

    If both separators are present the last one is the decimal separator.
    A lone comma is treated as an Argentine decimal comma.

    Args:
        text: Cleaned number string (no currency symbols)

    Returns:
        Detected NumberFormat
    """
    last_comma = text.rfind(",")
    last_dot = text.rfind(".")

    if last_comma != -1 and last_dot != -1:
        return NumberFormat.ARGENTINE if last_comma > last_dot else NumberFormat.US
    if last_comma != -1:
        return NumberFormat.ARGENTINE
    return NumberFormat.PLAIN


def parse_number(value: Any) -> Decimal | None:
    """
    Parse a number in any supported convention.

    Args:
        value: String, int, float, Decimal or None

    Returns:
        Decimal value, or None if the input is empty or not a number

    Examples:
        parse_number("1.234,56") -> Decimal("1234.56")
        parse_number("$1,234.56") -> Decimal("1234.56")
        parse_number("(500,00)") -> Decimal("-500.00")
        parse_number("abc") -> None
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        parsed = Decimal(str(value))
        return parsed if parsed.is_finite() else None

    text = str(value).strip()
    if not text:
        return None

    text = _CURRENCY_PREFIX.sub("", text)
    text = _NOISE.sub("", text)

    is_negative = text.startswith("-") or text.startswith("(")
    if is_negative:
        text = text.lstrip("-(").rstrip(")")

    number_format = detect_number_format(text)
    if number_format is NumberFormat.ARGENTINE:
        text = text.replace(".", "").replace(",", ".")
    elif number_format is NumberFormat.US:
        text = text.replace(",", "")

    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return None

    if not parsed.is_finite():
        return None

    return -parsed if is_negative else parsed


def parse_amount(value: Any) -> Decimal | None:
    """Parse a monetary amount as an absolute value (sign tracked elsewhere)."""
    parsed = parse_number(value)
    return None if parsed is None else abs(parsed)


def to_cents(amount: Decimal) -> int:
    """Round a Decimal amount half-up to integer hundredths."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_money(amount: Decimal) -> Decimal:
    """Round a Decimal amount half-up to two decimal places."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def cents_to_units_str(cents: int) -> str:
    """
    Convert cents to a plain decimal string using integer arithmetic.

    Example:
        cents_to_units_str(-123456) -> "-1234.56"
    """
    is_negative = cents < 0
    abs_cents = abs(int(cents))
    units, remainder = divmod(abs_cents, 100)
    sign = "-" if is_negative else ""
    return f"{sign}{units}.{remainder:02d}"


def _group_thousands(integer_part: str, separator: str) -> str:
    return re.sub(r"\B(?=(\d{3})+(?!\d))", separator, integer_part)


def _format_with(value: Any, decimals: int, thousands: str, decimal_sep: str) -> str:
    number = parse_number(value)
    if number is None:
        return ""

    is_negative = number < 0
    fixed = f"{abs(number).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP):f}"
    integer_part, _, decimal_part = fixed.partition(".")

    formatted = _group_thousands(integer_part, thousands)
    if decimal_part:
        formatted = f"{formatted}{decimal_sep}{decimal_part}"
    return f"-{formatted}" if is_negative else formatted


def format_argentine_number(value: Any, decimals: int = 2) -> str:
    """Format as "1.234,56"; returns an empty string for invalid input."""
    return _format_with(value, decimals, ".", ",")


def format_us_number(value: Any, decimals: int = 2) -> str:
    """Format as "1,234.56"; returns an empty string for invalid input."""
    return _format_with(value, decimals, ",", ".")


def normalize_amount(value: Any) -> str:
    """
    Normalize an amount to a comparison key.

    Returns:
        Absolute value with two decimals ("1234.56"), or "0" if invalid or zero
    """
    amount = parse_amount(value)
    if amount is None or amount == 0:
        return "0"
    return f"{round_money(amount):f}"


def amounts_match(first: Any, second: Any, tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE) -> bool:
    """
    Check whether two amounts are equal within a tolerance.

    Both amounts are compared by absolute value.

    Args:
        first: First amount (any parseable form)
        second: Second amount (any parseable form)
        tolerance: Maximum difference, in currency units (default: 1)

    Returns:
        True if both parse and differ by at most the tolerance
    """
    first_amount = parse_amount(first)
    second_amount = parse_amount(second)
    if first_amount is None or second_amount is None:
        return False
    return abs(first_amount - second_amount) <= tolerance


def format_cents(cents: int) -> str:
    """Format cents as a "$1234.56" display string."""
    return f"${cents_to_units_str(cents)}"
