#!/usr/bin/env python3
"""
Counterparty Identifier Utilities

Validation, formatting and comparison of Argentine taxpayer identifiers.

- Tax ID (CUIT/CUIL): 11 digits, XX-XXXXXXXX-X, modulo-11 check digit
- Short ID (DNI): 7 or 8 digits, embedded in the middle of a personal tax ID

Identifiers coming from scanned documents carry dashes, spaces and dots in
every combination, so all comparisons work on digits only.
"""

import re
import unicodedata

TAX_ID_WEIGHTS = (5, 4, 3, 2, 7, 6, 5, 4, 3, 2)

_SEPARATORS = re.compile(r"[-\s.]")
_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")

# Ordered: explicit label, separated form, bare 11-digit run
TAX_ID_TEXT_PATTERNS = (
    re.compile(r"CUI[TL][:\s]*(\d{2}[-\s]?\d{8}[-\s]?\d)", re.IGNORECASE),
    re.compile(r"(\d{2}[-\s]\d{8}[-\s]\d)"),
    re.compile(r"\b(\d{11})\b"),
)


def _digits(value: str | None) -> str:
    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))


def normalize_tax_id(tax_id: str | None) -> str:
    """Digits only, e.g. "20-12345678-6" -> "20123456786"."""
    return _digits(tax_id)


def is_valid_tax_id(tax_id: str | None) -> bool:
    """
    Validate a tax ID by length and check digit.

    Examples:
        is_valid_tax_id("20-12345678-6") -> True
        is_valid_tax_id("20123456781") -> False
    """
    digits = _digits(tax_id)
    if len(digits) != 11:
        return False

    total = sum(int(digit) * weight for digit, weight in zip(digits[:10], TAX_ID_WEIGHTS))
    check = 11 - (total % 11)
    if check == 11:
        check = 0
    elif check == 10:
        check = 9

    return check == int(digits[10])


def format_tax_id(tax_id: str | None) -> str:
    """Format as XX-XXXXXXXX-X; input that is not 11 digits is returned unchanged."""
    digits = _digits(tax_id)
    if len(digits) != 11:
        return tax_id or ""
    return f"{digits[:2]}-{digits[2:10]}-{digits[10]}"


def is_valid_short_id(short_id: str | None) -> bool:
    """A short ID is 7 or 8 digits once separators are removed."""
    digits = _digits(short_id)
    return 7 <= len(digits) <= 8


def format_short_id(short_id: str | None) -> str:
    """Format with thousands dots (12.345.678); invalid input is returned unchanged."""
    digits = _digits(short_id)
    if not 7 <= len(digits) <= 8:
        return short_id or ""
    return re.sub(r"\B(?=(\d{3})+(?!\d))", ".", digits)


def short_id_from_tax_id(tax_id: str | None) -> str | None:
    """
    Derive the short ID embedded in a tax ID.

    The short ID is the middle 8 digits with leading zeros removed,
    e.g. "20-01234567-8" -> "1234567".
    """
    digits = _digits(tax_id)
    if len(digits) != 11:
        return None
    middle = digits[2:10].lstrip("0")
    return middle or None


def tax_id_contains_short_id(tax_id: str | None, short_id: str | None) -> bool:
    """Check whether a short ID is the one embedded in a tax ID."""
    embedded = short_id_from_tax_id(tax_id)
    short_digits = _digits(short_id).lstrip("0")
    return bool(embedded and short_digits) and embedded == short_digits


def identifiers_match(first: str | None, second: str | None) -> bool:
    """
    Compare two counterparty identifiers.

    Matches when both are equal once separators are removed, or when one is a
    tax ID and the other is the short ID embedded in it (either way round).
    """
    first_clean = _SEPARATORS.sub("", first or "")
    second_clean = _SEPARATORS.sub("", second or "")
    if not first_clean or not second_clean:
        return False

    if first_clean == second_clean:
        return True

    if len(first_clean) == 11 and is_valid_short_id(second_clean):
        return tax_id_contains_short_id(first_clean, second_clean)
    if len(second_clean) == 11 and is_valid_short_id(first_clean):
        return tax_id_contains_short_id(second_clean, first_clean)

    return False


def extract_tax_id_from_text(text: str | None) -> str | None:
    """
    Find the first valid tax ID in free-form text.

    Patterns are tried in order; within a pattern, matches are tried left to
    right and only candidates passing the check digit are returned.

    Returns:
        Tax ID as 11 plain digits, or None if no valid tax ID is present
    """
    if not text:
        return None

    for pattern in TAX_ID_TEXT_PATTERNS:
        for match in pattern.finditer(text):
            candidate = _digits(match.group(1))
            if is_valid_tax_id(candidate):
                return candidate

    return None


def normalize_name(name: str | None) -> str:
    """Lower-case, strip accents and collapse whitespace."""
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _WHITESPACE.sub(" ", stripped).strip().lower()


def names_match(first: str | None, second: str | None) -> bool:
    """Exact equality of normalized names; empty names never match."""
    first_normalized = normalize_name(first)
    return bool(first_normalized) and first_normalized == normalize_name(second)
