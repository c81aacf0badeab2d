#!/usr/bin/env python3
"""
Error Types

Only upstream I/O failures are exceptions. An absent match, an identifier that
cannot be extracted or a date that does not parse are ordinary results.
"""


class BookkeepingError(Exception):
    """Base class for errors raised by the reconciliation engine."""


class StorageError(BookkeepingError):
    """A row store read failed."""

    def __init__(self, message: str, sheet: str | None = None):
        super().__init__(message)
        self.sheet = sheet


class ExchangeRateError(BookkeepingError):
    """An exchange rate could not be fetched or the response was invalid."""

    def __init__(self, message: str, date: str | None = None):
        super().__init__(message)
        self.date = date
