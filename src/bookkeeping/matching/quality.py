#!/usr/bin/env python3
"""
Confidence Tiers and Match Quality

The date-tier rule as a table plus the single ordering used to decide whether
one pairing is better than another.

Tiers (diff = payment date - document date, in days):

| Tier   | Window          | Confidence                                  |
|--------|-----------------|---------------------------------------------|
| HIGH   | [0, 15]         | HIGH with identifier/name match, else MEDIUM |
| MEDIUM | (-3, 30)        | HIGH with identifier/name match, else MEDIUM |
| LOW    | (-before, after)| LOW                                          |

Cross-currency pairings ignore the tier once inside the window: MEDIUM with
a tax ID match, LOW without.
"""

from dataclasses import dataclass

from ..core.models import MatchConfidence, MatchQuality

# Proximity used when the incumbent's date cannot be determined
UNKNOWN_PROXIMITY_DAYS = 999


@dataclass(frozen=True)
class DateTier:
    """A date window and the confidence it can reach."""

    name: str
    low: int
    high: int
    inclusive: bool
    best_confidence: MatchConfidence

    def contains(self, day_diff: int) -> bool:
        if self.inclusive:
            return self.low <= day_diff <= self.high
        return self.low < day_diff < self.high


def build_date_tiers(days_before: int = 10, days_after: int = 60) -> tuple[DateTier, ...]:
    """Tier table with a configurable LOW window."""
    return (
        DateTier("high", 0, 15, inclusive=True, best_confidence=MatchConfidence.HIGH),
        DateTier("medium", -3, 30, inclusive=False, best_confidence=MatchConfidence.HIGH),
        DateTier("low", -days_before, days_after, inclusive=False, best_confidence=MatchConfidence.LOW),
    )


DATE_TIERS = build_date_tiers()


def find_tier(day_diff: int, tiers: tuple[DateTier, ...] = DATE_TIERS) -> DateTier | None:
    """First tier containing day_diff, or None when outside every window."""
    for tier in tiers:
        if tier.contains(day_diff):
            return tier
    return None


def confidence_for(
    day_diff: int,
    identifier_match: bool,
    is_cross_currency: bool = False,
    tiers: tuple[DateTier, ...] = DATE_TIERS,
) -> MatchConfidence | None:
    """
    Look up the confidence for a pairing.

    Args:
        day_diff: Payment date minus document date, in days
        identifier_match: Tax ID or name matched (tax ID only when cross-currency)
        is_cross_currency: Document and payment currencies differ
        tiers: Tier table

    Returns:
        MatchConfidence, or None if the pairing is not a candidate
    """
    tier = find_tier(day_diff, tiers)
    if tier is None:
        return None

    if is_cross_currency:
        return MatchConfidence.MEDIUM if identifier_match else MatchConfidence.LOW

    if tier.best_confidence is MatchConfidence.LOW:
        return MatchConfidence.LOW

    return MatchConfidence.HIGH if identifier_match else MatchConfidence.MEDIUM


def compare_match_quality(first: MatchQuality, second: MatchQuality) -> int:
    """
    Three-way comparison: positive if first is better, negative if worse, 0 if equal.
    """
    if first > second:
        return 1
    if first < second:
        return -1
    return 0


def is_better_match(challenger: MatchQuality, incumbent: MatchQuality) -> bool:
    """True only if the challenger is strictly better than the incumbent."""
    return challenger > incumbent


def sort_candidates(candidates: list) -> list:
    """Sort best-first by quality; ties keep input order."""
    return sorted(candidates, key=lambda candidate: candidate.quality, reverse=True)
