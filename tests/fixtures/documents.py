#!/usr/bin/env python3
"""
Synthetic Document Builders

Build documents through the same from_dict path the row store uses, so tests
exercise the row parsing as well as the matchers.
"""

from decimal import Decimal
from typing import Any

from bookkeeping.core.models import BankMovement, CollectionEntry, Invoice, Payment, Receipt, Withholding
from bookkeeping.rates import ExchangeRate, ExchangeRateCache, ExchangeRateProvider

# Valid check digits
SUPPLIER_TAX_ID = "30-71234567-1"
OTHER_SUPPLIER_TAX_ID = "20-30111222-0"
EMPLOYEE_TAX_ID = "20-12345678-6"
EMPLOYEE_SHORT_ID = "12345678"
CLIENT_TAX_ID = "27-25000111-3"


def invoice_row(file_id: str = "inv-1", row: int = 2, **overrides: Any) -> dict[str, Any]:
    data = {
        "file_id": file_id,
        "row": row,
        "kind": "A",
        "number": "00003-00001957",
        "issue_date": "2025-03-01",
        "tax_id": SUPPLIER_TAX_ID,
        "name": "Acme SA",
        "total": "1000.00",
        "currency": "ARS",
    }
    data.update(overrides)
    return data


def payment_row(file_id: str = "pay-1", row: int = 2, **overrides: Any) -> dict[str, Any]:
    data = {
        "file_id": file_id,
        "row": row,
        "date": "2025-03-05",
        "amount": "1000.00",
        "currency": "ARS",
        "beneficiary_tax_id": "",
        "beneficiary_name": "",
    }
    data.update(overrides)
    return data


def receipt_row(file_id: str = "rec-1", row: int = 2, **overrides: Any) -> dict[str, Any]:
    data = {
        "file_id": file_id,
        "row": row,
        "pay_date": "2025-03-31",
        "net_total": "850000.00",
        "employee_name": "Juan Pérez",
        "employee_tax_id": EMPLOYEE_TAX_ID,
    }
    data.update(overrides)
    return data


def entry_row(row: int = 2, **overrides: Any) -> dict[str, Any]:
    data = {
        "row": row,
        "collection_date": "2025-04-10",
        "invoice_date": "2025-03-10",
        "invoice_number": "00003-00001957",
        "client": "Cliente Uno SRL",
        "tax_id": CLIENT_TAX_ID,
        "total": "250.000,00",
        "note": "",
    }
    data.update(overrides)
    return data


def movement_row(row: int = 2, **overrides: Any) -> dict[str, Any]:
    data = {
        "row": row,
        "date": "10/04/2025",
        "value_date": "",
        "description": "TRANSFERENCIA RECIBIDA",
        "credit": "250.000,00",
        "debit": "",
        "detail": "",
    }
    data.update(overrides)
    return data


def withholding_row(file_id: str = "ret-1", row: int = 2, **overrides: Any) -> dict[str, Any]:
    data = {
        "file_id": file_id,
        "row": row,
        "issue_date": "2025-03-20",
        "agent_tax_id": CLIENT_TAX_ID,
        "agent_name": "Cliente Uno SRL",
        "amount": "20000.00",
    }
    data.update(overrides)
    return data


def make_invoice(file_id: str = "inv-1", row: int = 2, **overrides: Any) -> Invoice:
    return Invoice.from_dict(invoice_row(file_id, row, **overrides))


def make_payment(file_id: str = "pay-1", row: int = 2, **overrides: Any) -> Payment:
    return Payment.from_dict(payment_row(file_id, row, **overrides))


def make_receipt(file_id: str = "rec-1", row: int = 2, **overrides: Any) -> Receipt:
    return Receipt.from_dict(receipt_row(file_id, row, **overrides))


def make_entry(row: int = 2, **overrides: Any) -> CollectionEntry:
    return CollectionEntry.from_dict(entry_row(row, **overrides))


def make_movement(row: int = 2, **overrides: Any) -> BankMovement:
    return BankMovement.from_dict(movement_row(row, **overrides))


def make_withholding(file_id: str = "ret-1", row: int = 2, **overrides: Any) -> Withholding:
    return Withholding.from_dict(withholding_row(file_id, row, **overrides))


def provider_with_rates(rates: dict[str, str] | None = None) -> ExchangeRateProvider:
    """Provider whose cache already holds the given ISO date -> sell rate entries."""
    cache = ExchangeRateCache()
    for iso_date, sell in (rates or {}).items():
        cache.put(iso_date, ExchangeRate(date=iso_date, buy=Decimal(sell) - 40, sell=Decimal(sell)))
    return ExchangeRateProvider(cache=cache)
