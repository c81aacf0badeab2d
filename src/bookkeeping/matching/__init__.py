"""
Matching Package

Payment matchers, credit note settlement and the displacement controller.
"""

from .cascade import (
    AssignmentState,
    CascadeResult,
    DisplacementController,
    DisplacementQueue,
    DisplacementTask,
    PaymentUpdate,
    SlotUpdate,
)
from .credit_notes import (
    REFERENCE_PATTERNS,
    SettlementPair,
    SettlementResult,
    extract_referenced_invoice_number,
    normalize_invoice_number,
    plan_settlements,
    settle_credit_notes,
)
from .invoice_matcher import InvoiceMatcher
from .quality import DATE_TIERS, DateTier, build_date_tiers, compare_match_quality, confidence_for, is_better_match
from .receipt_matcher import ReceiptMatcher

__all__ = [
    "DATE_TIERS",
    "REFERENCE_PATTERNS",
    "AssignmentState",
    "CascadeResult",
    "DateTier",
    "DisplacementController",
    "DisplacementQueue",
    "DisplacementTask",
    "InvoiceMatcher",
    "PaymentUpdate",
    "ReceiptMatcher",
    "SettlementPair",
    "SettlementResult",
    "SlotUpdate",
    "build_date_tiers",
    "compare_match_quality",
    "confidence_for",
    "extract_referenced_invoice_number",
    "is_better_match",
    "normalize_invoice_number",
    "plan_settlements",
    "settle_credit_notes",
]
