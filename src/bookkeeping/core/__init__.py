"""
Core Utilities Package

Shared value types, document models and utilities used by every matcher.

This package provides:
- Amount parsing and integer-cent Money arithmetic
- Regional date parsing and day arithmetic
- Tax ID validation, extraction and comparison
- Document models and match annotations
- Configuration management for environment-specific settings
"""

from .config import Config, Environment, get_config, get_data_dir, is_test, reload_config
from .currency import amounts_match, format_argentine_number, format_us_number, normalize_amount, parse_amount, parse_number
from .dates import FinancialDate, day_difference, days_between, parse_regional_date
from .errors import BookkeepingError, ExchangeRateError, StorageError
from .identifiers import extract_tax_id_from_text, identifiers_match, is_valid_tax_id, names_match
from .models import (
    BankMovement,
    CollectionEntry,
    CrossCurrencyResult,
    Currency,
    Invoice,
    InvoiceKind,
    MatchCandidate,
    MatchConfidence,
    MatchQuality,
    Payment,
    ProcessingResult,
    Receipt,
    Withholding,
)
from .money import Money

__all__ = [
    "BankMovement",
    "BookkeepingError",
    "CollectionEntry",
    # Configuration
    "Config",
    "CrossCurrencyResult",
    "Currency",
    "Environment",
    "ExchangeRateError",
    "FinancialDate",
    # Data models
    "Invoice",
    "InvoiceKind",
    "MatchCandidate",
    "MatchConfidence",
    "MatchQuality",
    "Money",
    "Payment",
    "ProcessingResult",
    "Receipt",
    "StorageError",
    "Withholding",
    # Utilities
    "amounts_match",
    "day_difference",
    "days_between",
    "extract_tax_id_from_text",
    "format_argentine_number",
    "format_us_number",
    "get_config",
    "get_data_dir",
    "identifiers_match",
    "is_test",
    "is_valid_tax_id",
    "names_match",
    "normalize_amount",
    "parse_amount",
    "parse_number",
    "parse_regional_date",
    "reload_config",
]
