#!/usr/bin/env python3
"""
FinancialDate Primitive Type and Regional Date Parsing

Immutable date wrapper plus the parsing helpers used for scanned documents,
which carry dates as ISO strings (YYYY-MM-DD), Argentine strings (DD/MM/YYYY,
DD-MM-YYYY) or spreadsheet serial numbers.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

_ISO_STRICT = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_ISO_FLEXIBLE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DAY_FIRST = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")

# Spreadsheet day zero
SERIAL_EPOCH = date(1899, 12, 30)

# How far back an ISO date may reach and still count as valid
ISO_YEARS_BACK = 16


@dataclass(frozen=True)
class FinancialDate:
    """Immutable financial date wrapper with consistent formatting."""

    date: date

    @classmethod
    def from_string(cls, date_str: str, format: str = "%Y-%m-%d") -> "FinancialDate":
        """
        Parse from string in specified format.

        Raises:
            ValueError: If the string does not match the format
        """
        return cls(date=datetime.strptime(date_str, format).date())

    @classmethod
    def today(cls) -> "FinancialDate":
        """Get today's date."""
        return cls(date=date.today())

    def to_iso_string(self) -> str:
        """Format as YYYY-MM-DD."""
        return self.date.isoformat()

    def days_until(self, other: "FinancialDate") -> int:
        """Signed number of days from this date to another (positive if other is later)."""
        return (other.date - self.date).days

    def __str__(self) -> str:
        return self.to_iso_string()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FinancialDate):
            return NotImplemented
        return self.date == other.date

    def __lt__(self, other: "FinancialDate") -> bool:
        return self.date < other.date

    def __le__(self, other: "FinancialDate") -> bool:
        return self.date <= other.date

    def __gt__(self, other: "FinancialDate") -> bool:
        return self.date > other.date

    def __ge__(self, other: "FinancialDate") -> bool:
        return self.date >= other.date

    def __repr__(self) -> str:
        return f"FinancialDate(date={self.date!r})"


def _build_date(year: str, month: str, day: str) -> FinancialDate | None:
    try:
        return FinancialDate(date=date(int(year), int(month), int(day)))
    except ValueError:
        return None


def parse_regional_date(value: Any) -> FinancialDate | None:
    """
    Parse a date written in any of the supported regional formats.

    Supported inputs:
    - YYYY-MM-DD (also with one-digit month/day)
    - DD/MM/YYYY and DD-MM-YYYY
    - date, datetime and FinancialDate objects

    Args:
        value: Date string or date-like object

    Returns:
        FinancialDate, or None if the value is empty or not a real calendar date
    """
    if value is None or value == "":
        return None
    if isinstance(value, FinancialDate):
        return value
    if isinstance(value, datetime):
        return FinancialDate(date=value.date())
    if isinstance(value, date):
        return FinancialDate(date=value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    for pattern in (_ISO_STRICT, _ISO_FLEXIBLE):
        match = pattern.match(text)
        if match:
            return _build_date(*match.groups())

    match = _DAY_FIRST.match(text)
    if match:
        day, month, year = match.groups()
        return _build_date(year, month, day)

    return None


def is_valid_iso_date(text: Any, today: date | None = None) -> bool:
    """
    Check for a strict YYYY-MM-DD date with a plausible year.

    The year must fall between (current year - 16) and (current year + 1)
    so historical invoices remain valid while OCR garbage is rejected.
    """
    if not isinstance(text, str):
        return False

    match = _ISO_STRICT.match(text)
    if not match:
        return False

    parsed = _build_date(*match.groups())
    if parsed is None:
        return False

    current_year = (today or date.today()).year
    return current_year - ISO_YEARS_BACK <= parsed.date.year <= current_year + 1


def day_difference(start: FinancialDate, end: FinancialDate) -> int:
    """Signed day count from start to end (end - start)."""
    return start.days_until(end)


def days_between(first: FinancialDate, second: FinancialDate) -> int:
    """Absolute day count between two dates."""
    return abs(day_difference(first, second))


def is_within_days(reference: FinancialDate, candidate: FinancialDate, days_before: int, days_after: int) -> bool:
    """
    Check whether candidate falls within an inclusive window around reference.

    Args:
        reference: Anchor date (e.g. invoice date)
        candidate: Date to check (e.g. payment date)
        days_before: Maximum days candidate may precede reference
        days_after: Maximum days candidate may follow reference
    """
    diff = day_difference(reference, candidate)
    return -days_before <= diff <= days_after


def serial_to_date(serial: int | float) -> FinancialDate:
    """
    Convert a spreadsheet serial number to a date.

    Example:
        serial_to_date(45658) -> FinancialDate(2025-01-01)
    """
    return FinancialDate(date=SERIAL_EPOCH + timedelta(days=int(serial)))


def normalize_spreadsheet_date(value: Any) -> str:
    """
    Normalize a spreadsheet cell holding a date to a string.

    Serial numbers and date objects become ISO strings; anything else is
    returned as text so later parsing can decide whether it is a date.
    """
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return serial_to_date(value).to_iso_string()
    if isinstance(value, (date, FinancialDate)):
        parsed = parse_regional_date(value)
        return parsed.to_iso_string() if parsed else ""
    return "" if value is None else str(value)
