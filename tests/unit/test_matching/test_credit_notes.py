#!/usr/bin/env python3
"""Tests for credit note settlement."""

import pytest

from bookkeeping.matching import (
    extract_referenced_invoice_number,
    normalize_invoice_number,
    plan_settlements,
    settle_credit_notes,
)
from bookkeeping.storage import InMemoryRowStore
from bookkeeping.storage.row_store import WriteResult
from tests.fixtures.documents import OTHER_SUPPLIER_TAX_ID, invoice_row, make_invoice


def credit_note_row(file_id: str = "nc-1", row: int = 3, **overrides):
    data = {"kind": "NC", "number": "00003-00000042", "issue_date": "2025-03-10", "note": ""}
    data.update(overrides)
    return invoice_row(file_id, row, **data)


def credit_note(file_id: str = "nc-1", row: int = 3, **overrides):
    return make_invoice(**credit_note_row(file_id, row, **overrides))


class TestInvoiceNumbers:
    """Test invoice number normalization and extraction."""

    @pytest.mark.parametrize(
        "number,expected",
        [
            ("2-3160", "00002-00003160"),
            ("0003-00001957", "00003-00001957"),
            ("00003-00001957", "00003-00001957"),
            (" 12-7 ", "00012-00000007"),
            ("FC 1957", "FC 1957"),
            ("", ""),
        ],
    )
    def test_normalize_invoice_number(self, number, expected):
        assert normalize_invoice_number(number) == expected

    @pytest.mark.parametrize(
        "note,expected",
        [
            ("Anula Factura N° 2-3160", "00002-00003160"),
            ("Según fact. 0003-1957", "00003-00001957"),
            ("Ref. 2-3160", "00002-00003160"),
            ("Bonificación s/ 0002-00003160", "00002-00003160"),
            ("Anulación factura 2-3160", "00002-00003160"),
            ("Descuento comercial", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract_referenced_invoice_number(self, note, expected):
        assert extract_referenced_invoice_number(note) == expected


@pytest.mark.matching
class TestPlanSettlements:
    """Test which credit notes cancel which invoices."""

    def test_full_cancellation_pairs(self):
        invoice = make_invoice()
        note = credit_note()

        pairs = plan_settlements([invoice, note])

        assert len(pairs) == 1
        assert pairs[0].credit_note.file_id == "nc-1"
        assert pairs[0].invoice.file_id == "inv-1"
        assert pairs[0].referenced_number is None

    def test_negative_credit_total_cancels(self):
        pairs = plan_settlements([make_invoice(), credit_note(total="-1000.00")])
        assert len(pairs) == 1

    def test_one_cent_difference_allowed(self):
        assert len(plan_settlements([make_invoice(), credit_note(total="1000.01")])) == 1
        assert plan_settlements([make_invoice(), credit_note(total="1000.02")]) == []

    def test_credit_note_before_invoice_not_paired(self):
        assert plan_settlements([make_invoice(), credit_note(issue_date="2025-02-28")]) == []

    def test_same_day_credit_note_pairs(self):
        assert len(plan_settlements([make_invoice(), credit_note(issue_date="2025-03-01")])) == 1

    def test_different_supplier_not_paired(self):
        assert plan_settlements([make_invoice(), credit_note(tax_id=OTHER_SUPPLIER_TAX_ID)]) == []

    def test_tax_id_formatting_ignored(self):
        assert len(plan_settlements([make_invoice(), credit_note(tax_id="30712345671")])) == 1

    def test_referenced_number_must_match(self):
        invoices = [make_invoice("inv-1", 2, number="00003-00001956"), make_invoice("inv-2", 4)]
        note = credit_note(note="Anula Factura N° 3-1957")

        pairs = plan_settlements([*invoices, note])

        assert [pair.invoice.file_id for pair in pairs] == ["inv-2"]
        assert pairs[0].referenced_number == "00003-00001957"

    def test_unknown_reference_blocks_pairing(self):
        assert plan_settlements([make_invoice(), credit_note(note="Anula Factura N° 9-9999")]) == []

    def test_first_fit_takes_each_invoice_once(self):
        rows = [
            make_invoice("inv-1", 2),
            make_invoice("inv-2", 3, number="00003-00001958"),
            credit_note("nc-1", 4),
            credit_note("nc-2", 5),
            credit_note("nc-3", 6),
        ]

        pairs = plan_settlements(rows)

        assert [(pair.credit_note.file_id, pair.invoice.file_id) for pair in pairs] == [
            ("nc-1", "inv-1"),
            ("nc-2", "inv-2"),
        ]

    def test_settled_rows_excluded(self):
        assert plan_settlements([make_invoice(settled="true"), credit_note()]) == []
        assert plan_settlements([make_invoice(), credit_note(settled="sí")]) == []

    def test_debit_notes_are_not_cancelled(self):
        assert plan_settlements([make_invoice(kind="ND"), credit_note()]) == []


class FailingRowStore(InMemoryRowStore):
    """Row store that refuses writes to chosen rows."""

    def __init__(self, sheets, failing_rows: set[int]):
        super().__init__(sheets)
        self.failing_rows = failing_rows

    def update_row(self, sheet, row, values):
        if row in self.failing_rows:
            return WriteResult.failure(f"Row {row} is protected")
        return super().update_row(sheet, row, values)


@pytest.mark.matching
class TestSettleCreditNotes:
    """Test writing settlements to the row store."""

    def test_both_rows_marked_settled(self):
        store = InMemoryRowStore({"invoices": [invoice_row(), credit_note_row()]})

        result = settle_credit_notes(store)

        assert result.settled_count == 1
        assert result.writes.successful == 2
        assert all(row["settled"] is True for row in store.read_rows("invoices"))

    def test_second_run_is_noop(self):
        store = InMemoryRowStore({"invoices": [invoice_row(), credit_note_row()]})
        settle_credit_notes(store)

        result = settle_credit_notes(store)

        assert result.settled_count == 0
        assert result.writes.total_processed == 0

    def test_failed_credit_note_write_leaves_invoice_settled(self):
        store = FailingRowStore({"invoices": [invoice_row(), credit_note_row()]}, failing_rows={3})

        result = settle_credit_notes(store)

        assert result.settled_count == 0
        assert len(result.failed) == 1
        invoice, note = store.read_rows("invoices")
        assert invoice["settled"] is True
        assert "settled" not in note

    def test_failed_pair_does_not_stop_batch(self):
        rows = [
            invoice_row("inv-1", 2),
            invoice_row("inv-2", 3, tax_id=OTHER_SUPPLIER_TAX_ID),
            credit_note_row("nc-1", 4),
            credit_note_row("nc-2", 5, tax_id=OTHER_SUPPLIER_TAX_ID),
        ]
        store = FailingRowStore({"invoices": rows}, failing_rows={2})

        result = settle_credit_notes(store)

        assert [pair.credit_note.file_id for pair in result.failed] == ["nc-1"]
        assert [pair.credit_note.file_id for pair in result.settled] == ["nc-2"]
        assert result.writes.failed == 1
        assert result.writes.successful == 2

    def test_custom_sheet_name(self):
        store = InMemoryRowStore({"facturas": [invoice_row(), credit_note_row()]})
        assert settle_credit_notes(store, sheet="facturas").settled_count == 1
