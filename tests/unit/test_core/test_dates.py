#!/usr/bin/env python3
"""Tests for FinancialDate and regional date parsing."""

from datetime import date, datetime

import pytest

from bookkeeping.core.dates import (
    FinancialDate,
    day_difference,
    days_between,
    is_valid_iso_date,
    is_within_days,
    normalize_spreadsheet_date,
    parse_regional_date,
    serial_to_date,
)


def fd(year: int, month: int, day: int) -> FinancialDate:
    return FinancialDate(date=date(year, month, day))


class TestFinancialDate:
    """Test FinancialDate construction and formatting."""

    def test_from_string(self):
        assert FinancialDate.from_string("2025-03-01").date == date(2025, 3, 1)
        assert FinancialDate.from_string("01/03/2025", format="%d/%m/%Y").date == date(2025, 3, 1)

    def test_from_string_invalid_raises(self):
        with pytest.raises(ValueError):
            FinancialDate.from_string("2025-02-30")

    def test_today(self):
        assert FinancialDate.today().date == date.today()

    def test_iso_formatting(self):
        d = fd(2025, 3, 1)
        assert d.to_iso_string() == "2025-03-01"
        assert str(d) == "2025-03-01"

    def test_comparisons(self):
        assert fd(2025, 3, 1) < fd(2025, 3, 2)
        assert fd(2025, 3, 2) >= fd(2025, 3, 1)
        assert fd(2025, 3, 1) == fd(2025, 3, 1)

    def test_days_until(self):
        assert fd(2025, 3, 1).days_until(fd(2025, 3, 5)) == 4
        assert fd(2025, 3, 5).days_until(fd(2025, 3, 1)) == -4


class TestRegionalDateParsing:
    """Test parsing of every supported date notation."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2025-03-01", date(2025, 3, 1)),
            ("2025-3-1", date(2025, 3, 1)),
            ("01/03/2025", date(2025, 3, 1)),
            ("1/3/2025", date(2025, 3, 1)),
            ("01-03-2025", date(2025, 3, 1)),
            (" 15/12/2024 ", date(2024, 12, 15)),
            (date(2025, 3, 1), date(2025, 3, 1)),
            (datetime(2025, 3, 1, 14, 30), date(2025, 3, 1)),
        ],
        ids=["iso", "iso_flexible", "day_first_slash", "day_first_short", "day_first_dash", "padded", "date", "datetime"],
    )
    def test_parse_regional_date(self, value, expected):
        """Test day-first and ISO inputs parse to the same date."""
        assert parse_regional_date(value).date == expected

    @pytest.mark.parametrize("value", [None, "", "31/02/2025", "2025-13-01", "March 1", "03/2025", 12345])
    def test_invalid_dates_return_none(self, value):
        """Test invalid calendar dates and garbage yield None."""
        assert parse_regional_date(value) is None

    def test_financial_date_passes_through(self):
        d = fd(2025, 3, 1)
        assert parse_regional_date(d) is d


class TestIsoValidation:
    """Test strict ISO validation with a plausible year range."""

    TODAY = date(2026, 10, 16)

    @pytest.mark.parametrize(
        "text,valid",
        [
            ("2025-03-01", True),
            ("2010-01-01", True),
            ("2009-12-31", False),
            ("2027-12-31", True),
            ("2028-01-01", False),
            ("2025-3-1", False),
            ("2025-02-30", False),
            ("01/03/2025", False),
        ],
    )
    def test_is_valid_iso_date(self, text, valid):
        assert is_valid_iso_date(text, today=self.TODAY) is valid

    def test_non_string_is_invalid(self):
        assert not is_valid_iso_date(20250301, today=self.TODAY)


class TestDayArithmetic:
    """Test signed and absolute day counts."""

    def test_day_difference_is_signed(self):
        assert day_difference(fd(2025, 3, 1), fd(2025, 3, 5)) == 4
        assert day_difference(fd(2025, 3, 5), fd(2025, 3, 1)) == -4

    def test_days_between_is_absolute(self):
        assert days_between(fd(2025, 3, 5), fd(2025, 3, 1)) == 4

    def test_day_difference_across_year_end(self):
        assert day_difference(fd(2024, 12, 25), fd(2025, 1, 4)) == 10

    def test_is_within_days_is_inclusive(self):
        reference = fd(2025, 3, 11)
        assert is_within_days(reference, fd(2025, 3, 1), days_before=10, days_after=60)
        assert not is_within_days(reference, fd(2025, 2, 28), days_before=10, days_after=60)
        assert is_within_days(reference, fd(2025, 5, 10), days_before=10, days_after=60)
        assert not is_within_days(reference, fd(2025, 5, 11), days_before=10, days_after=60)


class TestSpreadsheetDates:
    """Test spreadsheet serial number conversion."""

    def test_serial_to_date(self):
        assert serial_to_date(45658).date == date(2025, 1, 1)
        assert serial_to_date(45292).date == date(2024, 1, 1)

    def test_fractional_serial_drops_time(self):
        assert serial_to_date(45658.75).date == date(2025, 1, 1)

    def test_normalize_spreadsheet_date(self):
        assert normalize_spreadsheet_date(45658) == "2025-01-01"
        assert normalize_spreadsheet_date(date(2025, 3, 1)) == "2025-03-01"
        assert normalize_spreadsheet_date("01/03/2025") == "01/03/2025"
        assert normalize_spreadsheet_date(None) == ""
