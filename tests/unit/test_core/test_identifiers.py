#!/usr/bin/env python3
"""Tests for counterparty identifier utilities."""

import pytest

from bookkeeping.core.identifiers import (
    extract_tax_id_from_text,
    format_short_id,
    format_tax_id,
    identifiers_match,
    is_valid_short_id,
    is_valid_tax_id,
    names_match,
    normalize_name,
    normalize_tax_id,
    short_id_from_tax_id,
    tax_id_contains_short_id,
)


class TestTaxIdValidation:
    """Test tax ID check digit validation."""

    @pytest.mark.parametrize(
        "tax_id",
        [
            "20-12345678-6",
            "20123456786",
            "20 12345678 6",
            "30-71234567-1",
            "20-30111222-0",  # remainder 0 -> check digit 0
            "20-12345600-9",  # remainder 1 -> check digit 9
        ],
    )
    def test_valid_tax_ids(self, tax_id):
        assert is_valid_tax_id(tax_id)

    @pytest.mark.parametrize("tax_id", ["20123456781", "2012345678", "201234567861", "", None, "abc"])
    def test_invalid_tax_ids(self, tax_id):
        assert not is_valid_tax_id(tax_id)

    def test_normalize_and_format(self):
        assert normalize_tax_id("20-12345678-6") == "20123456786"
        assert format_tax_id("20123456786") == "20-12345678-6"
        assert format_tax_id("123") == "123"


class TestShortIds:
    """Test short ID validation and derivation."""

    def test_is_valid_short_id(self):
        assert is_valid_short_id("12.345.678")
        assert is_valid_short_id("1234567")
        assert not is_valid_short_id("123456")
        assert not is_valid_short_id("123456789")

    def test_format_short_id(self):
        assert format_short_id("12345678") == "12.345.678"
        assert format_short_id("1234567") == "1.234.567"
        assert format_short_id("12") == "12"

    def test_short_id_from_tax_id(self):
        assert short_id_from_tax_id("20-12345678-6") == "12345678"
        assert short_id_from_tax_id("20-01234567-8") == "1234567"
        assert short_id_from_tax_id("123") is None

    def test_tax_id_contains_short_id(self):
        assert tax_id_contains_short_id("20-12345678-6", "12.345.678")
        assert tax_id_contains_short_id("20-01234567-8", "01234567")
        assert not tax_id_contains_short_id("20-12345678-6", "87654321")


class TestIdentifiersMatch:
    """Test identifier comparison."""

    def test_same_tax_id_with_different_separators(self):
        assert identifiers_match("20-12345678-6", "20123456786")
        assert identifiers_match("20.12345678.6", "20 12345678 6")

    def test_tax_id_against_short_id_either_way(self):
        assert identifiers_match("20123456786", "12.345.678")
        assert identifiers_match("12345678", "20-12345678-6")

    def test_different_identifiers(self):
        assert not identifiers_match("30712345671", "20123456786")
        assert not identifiers_match("20123456786", "87654321")

    def test_empty_never_matches(self):
        assert not identifiers_match("", "")
        assert not identifiers_match(None, "20123456786")


class TestTaxIdExtraction:
    """Test extracting tax IDs from bank descriptions."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Transf. CUIT 30-71234567-1 ACME", "30712345671"),
            ("CUIL:20123456786", "20123456786"),
            ("Pago 20-12345678-6 sueldo", "20123456786"),
            ("ref 30712345671 ok", "30712345671"),
        ],
        ids=["labelled", "labelled_compact", "separated", "bare"],
    )
    def test_extracts_valid_tax_id(self, text, expected):
        assert extract_tax_id_from_text(text) == expected

    def test_skips_invalid_check_digit(self):
        """Test a labelled but invalid tax ID falls through to a later valid one."""
        assert extract_tax_id_from_text("CUIT 20-12345678-1 / 30-71234567-1") == "30712345671"

    @pytest.mark.parametrize("text", ["CUIT 20-12345678-1", "Op 12345678901", "TRANSFERENCIA", "", None])
    def test_no_valid_tax_id(self, text):
        assert extract_tax_id_from_text(text) is None


class TestNames:
    """Test name normalization and comparison."""

    def test_normalize_name(self):
        assert normalize_name("  José   PÉREZ ") == "jose perez"
        assert normalize_name(None) == ""

    def test_names_match_ignores_case_and_accents(self):
        assert names_match("José Pérez", "JOSE PEREZ")

    def test_names_match_is_exact(self):
        assert not names_match("Acme SA", "Acme S.A.")
        assert not names_match("", "")
