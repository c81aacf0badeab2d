"""
Exchange Rates Package

Historical USD/ARS rates for cross-currency matching.
"""

from .exchange_rate import ExchangeRate, ExchangeRateCache, ExchangeRateProvider, normalize_rate_date

__all__ = [
    "ExchangeRate",
    "ExchangeRateCache",
    "ExchangeRateProvider",
    "normalize_rate_date",
]
