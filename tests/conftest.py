"""
Pytest Configuration and Shared Fixtures

Provides common test fixtures and configuration for the entire test suite.
"""

import tempfile
from pathlib import Path
from typing import Any

import pytest

from bookkeeping.core import config as config_module
from bookkeeping.storage import InMemoryRowStore
from tests.fixtures.documents import invoice_row, payment_row


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def sample_invoice_row() -> dict[str, Any]:
    """Unmatched ARS supplier invoice row."""
    return invoice_row()


@pytest.fixture
def sample_payment_row() -> dict[str, Any]:
    """Unmatched ARS payment row paying the sample invoice."""
    return payment_row(beneficiary_tax_id="30712345671", beneficiary_name="ACME SA")


@pytest.fixture
def memory_store(sample_invoice_row, sample_payment_row) -> InMemoryRowStore:
    """Row store holding one invoice and one payment."""
    return InMemoryRowStore({"invoices": [sample_invoice_row], "payments": [sample_payment_row]})


@pytest.fixture
def amount_test_cases() -> list[dict[str, Any]]:
    """Amount strings in every supported notation."""
    return [
        {"input": "1.234,56", "cents": 123456},
        {"input": "1,234.56", "cents": 123456},
        {"input": "1234.56", "cents": 123456},
        {"input": "$ 1.234,56", "cents": 123456},
        {"input": "0,00", "cents": 0},
    ]


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Set up test environment variables."""
    # Ensure tests don't use real data
    monkeypatch.setenv("BOOKKEEPING_ENV", "test")
    monkeypatch.setenv("BOOKKEEPING_DATA_DIR", str(tmp_path / "data"))

    for name in (
        "MATCH_DAYS_BEFORE",
        "MATCH_DAYS_AFTER",
        "AMOUNT_TOLERANCE",
        "USD_ARS_TOLERANCE_PERCENT",
        "MAX_CASCADE_DEPTH",
        "EXCHANGE_RATE_API_URL",
        "EXCHANGE_RATE_TIMEOUT",
        "EXCHANGE_RATE_CACHE_HOURS",
        "DEBUG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    # Each test builds its configuration from its own environment
    monkeypatch.setattr(config_module, "_config", None)


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for complete workflows")
    config.addinivalue_line("markers", "currency: Tests for amount handling and precision")
    config.addinivalue_line("markers", "matching: Tests for payment matching and displacement")
    config.addinivalue_line("markers", "bank: Tests for bank movement reconciliation")
    config.addinivalue_line("markers", "rates: Tests for exchange rate fetching and conversion")
