#!/usr/bin/env python3
"""
Credit Note Settlement

Pairs each unsettled credit note with the unsettled invoice it fully cancels
(same supplier, same amount, not earlier than the invoice) and marks both
settled.

Writes are not atomic: the invoice is written first, then the credit note.
If the second write fails the invoice stays settled and the credit note is
picked up again on the next pass, where it no longer finds an open invoice
and stays unsettled until reviewed.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.identifiers import normalize_tax_id
from ..core.models import Invoice, ProcessingResult
from ..core.money import Money
from ..storage.row_store import INVOICES_SHEET

logger = logging.getLogger(__name__)


# Full cancellation: totals may differ by at most one cent
SETTLEMENT_TOLERANCE = Money.from_cents(1)


def normalize_invoice_number(number: str) -> str:
    """
    Canonical BBBBB-NNNNNNNN form of an invoice number.

    Leading zeros are trimmed then each part is padded (branch to 5 digits,
    sequence to 8). Numbers not in branch-sequence form are returned trimmed.

    Examples:
        normalize_invoice_number("2-3160") -> "00002-00003160"
        normalize_invoice_number("0003-00001957") -> "00003-00001957"
    """
    cleaned = (number or "").strip()
    parts = cleaned.split("-")
    if len(parts) != 2:
        return cleaned

    branch, sequence = parts
    return f"{branch.lstrip('0').zfill(5)}-{sequence.lstrip('0').zfill(8)}"


@dataclass(frozen=True)
class ReferencePattern:
    """One way a credit note note can cite the invoice it cancels."""

    name: str
    pattern: re.Pattern
    normalize: Callable[[str], str] = normalize_invoice_number

    def extract(self, text: str) -> str | None:
        match = self.pattern.search(text)
        if match and match.group(1):
            return self.normalize(match.group(1))
        return None


# Tried in order; the first pattern that matches wins
REFERENCE_PATTERNS: list[ReferencePattern] = [
    ReferencePattern("factura_numero", re.compile(r"factura\s*N[°ºro.]*\s*(\d+-\d+)", re.IGNORECASE)),
    ReferencePattern("fact_abbrev", re.compile(r"fact\.?\s*(\d+-\d+)", re.IGNORECASE)),
    ReferencePattern("ref", re.compile(r"ref\.?\s*(\d+-\d+)", re.IGNORECASE)),
    ReferencePattern("s_barra", re.compile(r"s/\s*(\d+-\d+)", re.IGNORECASE)),
    ReferencePattern("anulacion", re.compile(r"anulaci[oó]n\s+(?:factura\s+)?(\d+-\d+)", re.IGNORECASE)),
]


def extract_referenced_invoice_number(note: str | None) -> str | None:
    """
    Find the invoice number a credit note cites in its note.

    Examples:
        "Anula Factura N° 2-3160" -> "00002-00003160"
        "Bonificación s/ 0002-00003160" -> "00002-00003160"
        "Descuento comercial" -> None
    """
    if not note:
        return None

    for reference in REFERENCE_PATTERNS:
        number = reference.extract(note)
        if number:
            return number
    return None


@dataclass(frozen=True)
class SettlementPair:
    """A credit note and the invoice it cancels."""

    credit_note: Invoice
    invoice: Invoice
    referenced_number: str | None = None


def _cancels(credit_note: Invoice, invoice: Invoice, referenced_number: str | None) -> bool:
    credit_tax_id = normalize_tax_id(credit_note.tax_id)
    if not credit_tax_id or credit_tax_id != normalize_tax_id(invoice.tax_id):
        return False

    if not credit_note.total.within(invoice.total, SETTLEMENT_TOLERANCE):
        return False

    if referenced_number and normalize_invoice_number(invoice.number) != referenced_number:
        return False

    if credit_note.issue_date is None or invoice.issue_date is None:
        return False
    return credit_note.issue_date >= invoice.issue_date


def plan_settlements(rows: list[Invoice]) -> list[SettlementPair]:
    """
    Decide which credit notes cancel which invoices.

    First fit: each credit note takes the first open invoice that satisfies
    every condition, and that invoice is not offered to later credit notes.
    """
    credit_notes = [row for row in rows if row.is_credit_note and not row.settled]
    open_invoices = [row for row in rows if not row.kind.is_note and not row.settled]

    logger.debug(f"Credit note settlement: {len(credit_notes)} open credit notes, {len(open_invoices)} open invoices")

    pairs: list[SettlementPair] = []
    taken: set[int] = set()

    for credit_note in credit_notes:
        referenced_number = extract_referenced_invoice_number(credit_note.note)

        for invoice in open_invoices:
            if invoice.row in taken:
                continue
            if _cancels(credit_note, invoice, referenced_number):
                pairs.append(SettlementPair(credit_note, invoice, referenced_number))
                taken.add(invoice.row)
                break

    return pairs


@dataclass
class SettlementResult:
    """Outcome of a settlement pass."""

    settled: list[SettlementPair] = field(default_factory=list)
    failed: list[SettlementPair] = field(default_factory=list)
    writes: ProcessingResult = field(default_factory=ProcessingResult)

    @property
    def settled_count(self) -> int:
        return len(self.settled)


def settle_credit_notes(store: Any, sheet: str = INVOICES_SHEET) -> SettlementResult:
    """
    Read the invoice sheet, plan settlements and write them.

    For each pair the invoice row is written first, then the credit note row.
    A failed write abandons that pair and moves on to the next one.

    Raises:
        StorageError: If the sheet cannot be read
    """
    rows = [Invoice.from_dict(row) for row in store.read_rows(sheet)]
    result = SettlementResult()

    for pair in plan_settlements(rows):
        logger.info(
            f"Credit note {pair.credit_note.number} ({pair.credit_note.file_id}) cancels invoice "
            f"{pair.invoice.number} ({pair.invoice.file_id}), total {pair.invoice.total.to_decimal()}"
        )

        invoice_write = store.update_row(sheet, pair.invoice.row, {"settled": True})
        result.writes.record(invoice_write.ok, invoice_write.error)
        if not invoice_write.ok:
            logger.warning(f"Failed to mark invoice {pair.invoice.file_id} settled: {invoice_write.error}")
            result.failed.append(pair)
            continue

        credit_write = store.update_row(sheet, pair.credit_note.row, {"settled": True})
        result.writes.record(credit_write.ok, credit_write.error)
        if not credit_write.ok:
            logger.warning(f"Failed to mark credit note {pair.credit_note.file_id} settled: {credit_write.error}")
            result.failed.append(pair)
            continue

        result.settled.append(pair)

    logger.info(f"Credit note settlement complete: {result.settled_count} settled, {len(result.failed)} failed")
    return result
