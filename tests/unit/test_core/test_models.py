#!/usr/bin/env python3
"""Tests for document models and match quality ordering."""

from datetime import date

import pytest

from bookkeeping.core.models import (
    BankMovement,
    Currency,
    Invoice,
    InvoiceKind,
    MatchConfidence,
    MatchQuality,
    Payment,
    ProcessingResult,
    Receipt,
)
from tests.fixtures.documents import invoice_row, movement_row, payment_row, receipt_row


class TestDocumentParsing:
    """Test building documents from row dictionaries."""

    def test_invoice_from_dict(self):
        invoice = Invoice.from_dict(invoice_row(issue_date="01/03/2025", total="1.234,56", currency="U$S"))

        assert invoice.file_id == "inv-1"
        assert invoice.row == 2
        assert invoice.kind is InvoiceKind.A
        assert invoice.issue_date.date == date(2025, 3, 1)
        assert invoice.total.to_cents() == 123456
        assert invoice.currency is Currency.USD
        assert not invoice.is_matched
        assert not invoice.settled

    def test_invoice_stored_annotation(self):
        invoice = Invoice.from_dict(
            invoice_row(
                matched_payment_id="pay-9",
                match_confidence="medium",
                has_identifier_match="TRUE",
                settled="Sí",
            )
        )

        assert invoice.is_matched
        assert invoice.match_confidence is MatchConfidence.MEDIUM
        assert invoice.has_identifier_match
        assert invoice.settled

    def test_credit_note_kind(self):
        credit_note = Invoice.from_dict(invoice_row(kind="nc"))
        assert credit_note.kind is InvoiceKind.NC
        assert credit_note.is_credit_note
        assert credit_note.kind.is_note

    def test_unknown_values_fall_back(self):
        invoice = Invoice.from_dict(invoice_row(kind="Z", currency="", match_confidence="bogus", total="n/a"))
        assert invoice.kind is InvoiceKind.A
        assert invoice.currency is Currency.ARS
        assert invoice.match_confidence is None
        assert invoice.total.is_zero()

    def test_payment_counterparties_beneficiary_first(self):
        payment = Payment.from_dict(
            payment_row(
                beneficiary_tax_id="30712345671",
                beneficiary_name="Acme SA",
                payer_tax_id="20123456786",
                payer_name="Estudio",
            )
        )
        assert payment.counterparty_tax_ids == ["30712345671", "20123456786"]
        assert payment.counterparty_names == ["Acme SA", "Estudio"]

    def test_payment_with_bad_date(self):
        payment = Payment.from_dict(payment_row(date="not a date"))
        assert payment.date is None

    def test_receipt_from_dict(self):
        receipt = Receipt.from_dict(receipt_row(net_total="850.000,00"))
        assert receipt.net_total.to_cents() == 85000000
        assert receipt.document_date.date == date(2025, 3, 31)

    def test_movement_date_falls_back_to_value_date(self):
        movement = BankMovement.from_dict(movement_row(date="garbage", value_date="05/04/2025"))
        assert movement.effective_date.date == date(2025, 4, 5)

    def test_movement_credit_detection(self):
        assert BankMovement.from_dict(movement_row()).is_credit
        assert not BankMovement.from_dict(movement_row(credit="", debit="1.000,00")).is_credit
        assert not BankMovement.from_dict(movement_row(credit="0,00")).is_credit


class TestMatchConfidence:
    """Test confidence parsing and ranks."""

    def test_ranks(self):
        assert MatchConfidence.HIGH.rank > MatchConfidence.MEDIUM.rank > MatchConfidence.LOW.rank

    def test_from_value(self):
        assert MatchConfidence.from_value("high") is MatchConfidence.HIGH
        assert MatchConfidence.from_value(MatchConfidence.LOW) is MatchConfidence.LOW
        assert MatchConfidence.from_value("") is None
        assert MatchConfidence.from_value(None) is None


def quality(confidence: MatchConfidence, identifier_match: bool, days: int) -> MatchQuality:
    return MatchQuality(confidence=confidence, identifier_match=identifier_match, date_proximity_days=days)


class TestMatchQuality:
    """Test the ordering of match qualities."""

    def test_confidence_dominates(self):
        assert quality(MatchConfidence.HIGH, False, 40) > quality(MatchConfidence.MEDIUM, True, 0)
        assert quality(MatchConfidence.MEDIUM, False, 40) > quality(MatchConfidence.LOW, True, 0)

    def test_identifier_breaks_confidence_tie(self):
        assert quality(MatchConfidence.MEDIUM, True, 20) > quality(MatchConfidence.MEDIUM, False, 1)

    def test_closer_date_breaks_remaining_tie(self):
        assert quality(MatchConfidence.HIGH, True, 2) > quality(MatchConfidence.HIGH, True, 5)

    def test_equal_qualities(self):
        first = quality(MatchConfidence.LOW, False, 7)
        second = quality(MatchConfidence.LOW, False, 7)
        assert first == second
        assert not first > second
        assert hash(first) == hash(second)

    def test_ordering_is_total(self):
        """Test sorting a mixed list gives a consistent best-first order."""
        qualities = [
            quality(MatchConfidence.LOW, True, 1),
            quality(MatchConfidence.HIGH, False, 9),
            quality(MatchConfidence.MEDIUM, True, 3),
            quality(MatchConfidence.HIGH, True, 9),
            quality(MatchConfidence.HIGH, True, 2),
        ]
        ordered = sorted(qualities, reverse=True)

        assert ordered == [
            quality(MatchConfidence.HIGH, True, 2),
            quality(MatchConfidence.HIGH, True, 9),
            quality(MatchConfidence.HIGH, False, 9),
            quality(MatchConfidence.MEDIUM, True, 3),
            quality(MatchConfidence.LOW, True, 1),
        ]
        for better, worse in zip(ordered, ordered[1:]):
            assert better > worse


class TestProcessingResult:
    """Test write outcome bookkeeping."""

    def test_record(self):
        result = ProcessingResult()
        result.record(True)
        result.record(False, "Row 9 not found in invoices")

        assert result.total_processed == 2
        assert result.successful == 1
        assert result.failed == 1
        assert result.errors == ["Row 9 not found in invoices"]
        assert result.success_rate == pytest.approx(50.0)

    def test_empty_success_rate(self):
        assert ProcessingResult().success_rate == 0.0
