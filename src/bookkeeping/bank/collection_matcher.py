#!/usr/bin/env python3
"""
Bank Movement to Collection Entry Matching

Explains bank credit movements by matching them against the sales
sub-ledger's collection entries (expected incoming payments).

Two passes, first match wins:
1. Tax ID found in the movement description + amount + date within 30 days.
   Closest date wins, confidence HIGH.
2. Amount + date within 30 days, ignoring the tax ID. Closest date wins,
   confidence MEDIUM within 15 days, LOW beyond.

A movement that cannot be matched gets a NoMatch-style result with reasons,
never an exception.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from ..core.currency import DEFAULT_AMOUNT_TOLERANCE
from ..core.dates import FinancialDate, days_between
from ..core.identifiers import extract_tax_id_from_text, normalize_tax_id
from ..core.models import BankMovement, CollectionEntry, MatchConfidence, ProcessingResult
from ..core.money import Money
from ..storage.row_store import MOVEMENTS_SHEET

logger = logging.getLogger(__name__)

# Fixed windows, not configurable
MEDIUM_CONFIDENCE_DAYS = 15
LOW_CONFIDENCE_DAYS = 30


def format_detail(entry: CollectionEntry) -> str:
    """
    Build the detail text for a matched movement.

    Example:
        "Cobro ACME SA - Fc 00003-00001957 - Honorarios marzo"
    """
    parts = [f"Cobro {entry.client}", f"Fc {entry.invoice_number}"]
    if entry.note:
        parts.append(entry.note)
    return " - ".join(parts)


@dataclass
class CollectionMatchResult:
    """Match (or absence of one) for a single bank movement."""

    matched: bool
    confidence: MatchConfidence
    reasons: list[str] = field(default_factory=list)
    entry: CollectionEntry | None = None
    detail: str = ""
    extracted_tax_id: str | None = None

    @classmethod
    def no_match(cls, reason: str, extracted_tax_id: str | None = None) -> "CollectionMatchResult":
        return cls(matched=False, confidence=MatchConfidence.LOW, reasons=[reason], extracted_tax_id=extracted_tax_id)


class CollectionMatcher:
    """Two-pass matcher for bank credit movements"""

    def __init__(self, amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE):
        self.amount_tolerance = Money.from_decimal(amount_tolerance)

    def match_movement(
        self,
        movement: BankMovement,
        entries: list[CollectionEntry],
        used_rows: set[int] | None = None,
    ) -> CollectionMatchResult:
        """
        Match one movement against the collection entries not yet used.

        Args:
            movement: Bank statement row
            entries: Collection entries
            used_rows: Rows of entries already consumed by other movements

        Returns:
            CollectionMatchResult; matched=False carries the reason
        """
        used_rows = used_rows or set()

        if not movement.is_credit:
            return CollectionMatchResult.no_match("Not a credit movement")

        if not entries:
            return CollectionMatchResult.no_match("No collection entries to match against")

        available = [entry for entry in entries if entry.row not in used_rows]
        if not available:
            return CollectionMatchResult.no_match("All collection entries already matched")

        movement_date = movement.effective_date
        if movement_date is None:
            return CollectionMatchResult.no_match("No valid date in movement")

        credit = movement.credit
        tax_id = extract_tax_id_from_text(movement.description)

        if tax_id:
            best = self._closest(credit, movement_date, available, tax_id=tax_id)
            if best is not None:
                entry, days = best
                return CollectionMatchResult(
                    matched=True,
                    confidence=MatchConfidence.HIGH,
                    reasons=[
                        f"Tax ID match: {tax_id}",
                        f"Amount match: {credit.to_decimal()}",
                        f"Date proximity: {days} days",
                    ],
                    entry=entry,
                    detail=format_detail(entry),
                    extracted_tax_id=tax_id,
                )

        best = self._closest(credit, movement_date, available)
        if best is not None:
            entry, days = best
            confidence = MatchConfidence.MEDIUM if days <= MEDIUM_CONFIDENCE_DAYS else MatchConfidence.LOW
            return CollectionMatchResult(
                matched=True,
                confidence=confidence,
                reasons=[f"Amount match: {credit.to_decimal()}", f"Date proximity: {days} days"],
                entry=entry,
                detail=format_detail(entry),
                extracted_tax_id=tax_id,
            )

        return CollectionMatchResult.no_match("No matching collection entries found", extracted_tax_id=tax_id)

    def _closest(
        self,
        amount: Money,
        movement_date: FinancialDate,
        entries: list[CollectionEntry],
        tax_id: str | None = None,
    ) -> tuple[CollectionEntry, int] | None:
        """Closest-dated entry within the window; ties go to the earlier entry."""
        best: tuple[CollectionEntry, int] | None = None

        for entry in entries:
            if tax_id is not None and normalize_tax_id(entry.tax_id) != tax_id:
                continue
            if not entry.total.within(amount, self.amount_tolerance):
                continue
            if entry.collection_date is None:
                continue

            days = days_between(movement_date, entry.collection_date)
            if days > LOW_CONFIDENCE_DAYS:
                continue

            if best is None or days < best[1]:
                best = (entry, days)

        return best


@dataclass(frozen=True)
class MovementWrite:
    """Detail text to write on a movement row."""

    movement_row: int
    entry_row: int
    confidence: MatchConfidence
    detail: str


@dataclass
class ReconciliationResult:
    """Outcome of reconciling a batch of movements."""

    writes: list[MovementWrite] = field(default_factory=list)
    unmatched: dict[int, list[str]] = field(default_factory=dict)
    skipped: int = 0


def reconcile_movements(
    movements: list[BankMovement],
    entries: list[CollectionEntry],
    matcher: CollectionMatcher | None = None,
) -> ReconciliationResult:
    """
    Match a batch of movements, using each collection entry at most once.

    Debit rows and rows that already have a detail are skipped.
    """
    matcher = matcher or CollectionMatcher()
    result = ReconciliationResult()
    used_rows: set[int] = set()

    for movement in movements:
        if movement.detail or not movement.is_credit:
            result.skipped += 1
            continue

        match = matcher.match_movement(movement, entries, used_rows)
        if not match.matched or match.entry is None:
            result.unmatched[movement.row] = match.reasons
            logger.debug("Movement row %d unmatched: %s", movement.row, "; ".join(match.reasons))
            continue

        used_rows.add(match.entry.row)
        result.writes.append(
            MovementWrite(
                movement_row=movement.row,
                entry_row=match.entry.row,
                confidence=match.confidence,
                detail=match.detail,
            )
        )

    logger.info(
        f"Reconciled {len(result.writes)} bank movements, {len(result.unmatched)} unmatched, {result.skipped} skipped"
    )
    return result


def write_details(store, result: ReconciliationResult, sheet: str = MOVEMENTS_SHEET) -> ProcessingResult:
    """
    Write each matched movement's detail, matched entry and confidence.

    Failed writes are logged and counted; the remaining writes still run.
    """
    outcome = ProcessingResult()
    for write in result.writes:
        values = {
            "detail": write.detail,
            "matched_entry_row": write.entry_row,
            "match_confidence": write.confidence.value,
        }
        written = store.update_row(sheet, write.movement_row, values)
        outcome.record(written.ok, written.error)
        if not written.ok:
            logger.warning(f"Failed to write detail on {sheet} row {write.movement_row}: {written.error}")
    return outcome
