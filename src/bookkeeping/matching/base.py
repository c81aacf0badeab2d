#!/usr/bin/env python3
"""
Shared pieces of the payment matchers.
"""

from dataclasses import replace
from decimal import Decimal

from ..core.currency import DEFAULT_AMOUNT_TOLERANCE
from ..core.models import MatchCandidate, Payment
from .quality import DateTier, build_date_tiers, find_tier


class TieredMatcher:
    """Base for matchers that score payments against dated documents."""

    def __init__(
        self,
        days_before: int = 10,
        days_after: int = 60,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    ):
        """
        Initialize the matcher.

        Args:
            days_before: LOW tier reach before the document date
            days_after: LOW tier reach after the document date
            amount_tolerance: Same-currency amount tolerance in currency units
        """
        self.tiers = build_date_tiers(days_before, days_after)
        self.amount_tolerance = amount_tolerance

    def _tier_reason(self, day_diff: int, payment: Payment) -> str:
        tier = find_tier(day_diff, self.tiers)
        name = tier.name if tier else "no"
        return f"Date within {name} range: {payment.date}"

    def _tier(self, day_diff: int) -> DateTier | None:
        return find_tier(day_diff, self.tiers)

    @staticmethod
    def _as_payment_candidate(candidate: MatchCandidate, payment: Payment) -> MatchCandidate:
        """Re-target a document candidate at the payment side."""
        return replace(
            candidate,
            target=payment,
            target_id=payment.file_id,
            target_row=payment.row,
            is_upgrade=bool(payment.matched_document_id),
            existing_match_id=payment.matched_document_id,
            existing_confidence=payment.match_confidence if payment.matched_document_id else None,
            reasons=list(candidate.reasons),
        )
