"""
Bank Reconciliation Package

Matches bank movements against expected collections, and explains debits and
credits with the invoices, payments and receipts they settle.
"""

from .collection_matcher import (
    CollectionMatcher,
    CollectionMatchResult,
    MovementWrite,
    ReconciliationResult,
    format_detail,
    reconcile_movements,
    write_details,
)
from .movement_matcher import (
    BankMovementMatcher,
    Books,
    MovementMatch,
    MovementMatchBatch,
    MovementMatchQuality,
    MovementMatchType,
    MovementMatchWrite,
    extract_keyword_tokens,
    is_bank_fee,
    is_credit_card_payment,
    is_direct_debit,
    keyword_match_score,
    match_movements,
    write_movement_matches,
)

__all__ = [
    "BankMovementMatcher",
    "Books",
    "CollectionMatchResult",
    "CollectionMatcher",
    "MovementMatch",
    "MovementMatchBatch",
    "MovementMatchQuality",
    "MovementMatchType",
    "MovementMatchWrite",
    "MovementWrite",
    "ReconciliationResult",
    "extract_keyword_tokens",
    "format_detail",
    "is_bank_fee",
    "is_credit_card_payment",
    "is_direct_debit",
    "keyword_match_score",
    "match_movements",
    "reconcile_movements",
    "write_details",
    "write_movement_matches",
]
