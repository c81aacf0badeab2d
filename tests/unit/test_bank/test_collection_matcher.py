#!/usr/bin/env python3
"""Tests for bank movement reconciliation against collection entries."""

from decimal import Decimal

import pytest

from bookkeeping.bank import CollectionMatcher, format_detail, reconcile_movements, write_details
from bookkeeping.core.models import MatchConfidence
from bookkeeping.storage import InMemoryRowStore
from tests.fixtures.documents import (
    CLIENT_TAX_ID,
    OTHER_SUPPLIER_TAX_ID,
    make_entry,
    make_movement,
    movement_row,
)


@pytest.mark.bank
class TestCollectionMatcher:
    """Test matching a single movement."""

    def setup_method(self):
        self.matcher = CollectionMatcher()

    def test_tax_id_in_description_gives_high(self):
        """Test the tax ID pass beats a closer entry from another client."""
        movement = make_movement(description=f"TRANSF CUIT {CLIENT_TAX_ID} PAGO FC")
        entries = [
            make_entry(2, collection_date="2025-04-01"),
            make_entry(3, collection_date="2025-04-10", tax_id=OTHER_SUPPLIER_TAX_ID),
        ]

        result = self.matcher.match_movement(movement, entries)

        assert result.matched
        assert result.confidence is MatchConfidence.HIGH
        assert result.entry.row == 2
        assert result.extracted_tax_id == "27250001113"
        assert "Date proximity: 9 days" in result.reasons

    @pytest.mark.parametrize(
        "collection_date,expected",
        [
            ("2025-04-10", MatchConfidence.MEDIUM),
            ("2025-04-22", MatchConfidence.MEDIUM),
            ("2025-04-25", MatchConfidence.MEDIUM),
            ("2025-04-26", MatchConfidence.LOW),
            ("2025-03-11", MatchConfidence.LOW),
            ("2025-05-10", MatchConfidence.LOW),
        ],
    )
    def test_amount_and_date_confidence(self, collection_date, expected):
        result = self.matcher.match_movement(make_movement(), [make_entry(collection_date=collection_date)])

        assert result.matched
        assert result.confidence is expected
        assert result.extracted_tax_id is None

    @pytest.mark.parametrize("collection_date", ["2025-05-11", "2025-03-10"])
    def test_beyond_thirty_days_not_matched(self, collection_date):
        result = self.matcher.match_movement(make_movement(), [make_entry(collection_date=collection_date)])

        assert not result.matched
        assert result.reasons == ["No matching collection entries found"]

    def test_unknown_tax_id_falls_back_to_amount_and_date(self):
        movement = make_movement(description=f"TRANSF {OTHER_SUPPLIER_TAX_ID}")

        result = self.matcher.match_movement(movement, [make_entry()])

        assert result.matched
        assert result.confidence is MatchConfidence.MEDIUM
        assert result.extracted_tax_id == "20301112220"

    def test_invalid_check_digit_is_not_extracted(self):
        result = self.matcher.match_movement(make_movement(description="CUIT 20123456781"), [make_entry()])

        assert result.matched
        assert result.extracted_tax_id is None

    def test_tie_goes_to_earlier_entry(self):
        entries = [make_entry(2, collection_date="2025-04-15"), make_entry(3, collection_date="2025-04-05")]

        result = self.matcher.match_movement(make_movement(), entries)

        assert result.entry.row == 2

    def test_amount_tolerance(self):
        assert self.matcher.match_movement(make_movement(credit="250.000,90"), [make_entry()]).matched
        assert not self.matcher.match_movement(make_movement(credit="250.001,50"), [make_entry()]).matched

    def test_custom_amount_tolerance(self):
        matcher = CollectionMatcher(amount_tolerance=Decimal("5"))
        assert matcher.match_movement(make_movement(credit="250.004,00"), [make_entry()]).matched

    def test_value_date_used_when_date_invalid(self):
        movement = make_movement(date="sin fecha", value_date="10/04/2025")
        assert self.matcher.match_movement(movement, [make_entry()]).matched

    @pytest.mark.parametrize(
        "overrides,entries,used_rows,reason",
        [
            ({"credit": "", "debit": "1.000,00"}, None, None, "Not a credit movement"),
            ({}, [], None, "No collection entries to match against"),
            ({}, None, {2}, "All collection entries already matched"),
            ({"date": "", "value_date": ""}, None, None, "No valid date in movement"),
            ({"credit": "99.000,00"}, None, None, "No matching collection entries found"),
        ],
    )
    def test_no_match_reasons(self, overrides, entries, used_rows, reason):
        if entries is None:
            entries = [make_entry()]

        result = self.matcher.match_movement(make_movement(**overrides), entries, used_rows)

        assert not result.matched
        assert result.entry is None
        assert result.reasons == [reason]

    def test_detail_text(self):
        assert format_detail(make_entry()) == "Cobro Cliente Uno SRL - Fc 00003-00001957"
        assert (
            format_detail(make_entry(note="Honorarios marzo"))
            == "Cobro Cliente Uno SRL - Fc 00003-00001957 - Honorarios marzo"
        )


@pytest.mark.bank
class TestReconcileMovements:
    """Test batch reconciliation and detail writes."""

    def test_each_entry_used_once(self):
        movements = [make_movement(2), make_movement(3)]

        result = reconcile_movements(movements, [make_entry()])

        assert [(write.movement_row, write.entry_row) for write in result.writes] == [(2, 2)]
        assert result.unmatched == {3: ["All collection entries already matched"]}

    def test_debits_and_described_rows_skipped(self):
        movements = [
            make_movement(2, credit="", debit="5.000,00"),
            make_movement(3, detail="Cobro anterior"),
            make_movement(4),
        ]

        result = reconcile_movements(movements, [make_entry()])

        assert result.skipped == 2
        assert [write.movement_row for write in result.writes] == [4]

    def test_write_details(self):
        store = InMemoryRowStore({"bank_movements": [movement_row(2), movement_row(3, credit="1,00")]})
        movements = [make_movement(2), make_movement(3, credit="1,00")]

        result = reconcile_movements(movements, [make_entry(5)])
        outcome = write_details(store, result)

        assert outcome.successful == 1
        first, second = store.read_rows("bank_movements")
        assert first["detail"] == "Cobro Cliente Uno SRL - Fc 00003-00001957"
        assert first["matched_entry_row"] == 5
        assert first["match_confidence"] == "MEDIUM"
        assert second["detail"] == ""

    def test_write_to_missing_row_counted(self):
        store = InMemoryRowStore({"bank_movements": []})

        outcome = write_details(store, reconcile_movements([make_movement()], [make_entry()]))

        assert outcome.failed == 1
        assert outcome.errors == ["Row 2 not found in bank_movements"]
