#!/usr/bin/env python3
"""
Salary Receipt to Payment Matching Module

Same tiering as invoice matching. The payment amount must equal the receipt's
net total, and only the beneficiary side of the payment is compared with the
employee.
"""

import logging

from ..core.dates import day_difference, days_between
from ..core.identifiers import identifiers_match, names_match
from ..core.models import MatchCandidate, Payment, Receipt
from ..core.money import Money
from .base import TieredMatcher
from .quality import confidence_for, sort_candidates

logger = logging.getLogger(__name__)


class ReceiptMatcher(TieredMatcher):
    """Matches payments to salary receipts"""

    @classmethod
    def from_config(cls, config) -> "ReceiptMatcher":
        matching = config.matching
        return cls(
            days_before=matching.days_before,
            days_after=matching.days_after,
            amount_tolerance=matching.amount_tolerance,
        )

    def score_pair(self, payment: Payment, receipt: Receipt) -> MatchCandidate | None:
        """Score one payment/receipt pairing; None if they cannot match."""
        if payment.date is None or receipt.pay_date is None:
            return None

        if not receipt.net_total.within(payment.amount, Money.from_decimal(self.amount_tolerance)):
            return None

        day_diff = day_difference(receipt.pay_date, payment.date)
        if self._tier(day_diff) is None:
            return None

        reasons = [f"Amount match: {payment.amount.to_decimal()}", self._tier_reason(day_diff, payment)]

        tax_id_match = bool(receipt.employee_tax_id) and identifiers_match(
            payment.beneficiary_tax_id, receipt.employee_tax_id
        )
        if tax_id_match:
            reasons.append("Beneficiary tax ID matches employee")

        name_match = bool(receipt.employee_name) and names_match(payment.beneficiary_name, receipt.employee_name)
        if name_match:
            reasons.append("Beneficiary name matches employee")

        confidence = confidence_for(day_diff, tax_id_match or name_match, tiers=self.tiers)
        if confidence is None:
            return None

        if receipt.is_matched:
            reasons.append(f"Potential upgrade from {(receipt.match_confidence or confidence).value}")

        return MatchCandidate(
            target=receipt,
            target_id=receipt.file_id,
            target_row=receipt.row,
            confidence=confidence,
            identifier_match=tax_id_match,
            date_proximity_days=days_between(receipt.pay_date, payment.date),
            name_match=name_match,
            reasons=reasons,
            is_upgrade=receipt.is_matched,
            existing_match_id=receipt.matched_payment_id,
            existing_confidence=receipt.match_confidence if receipt.is_matched else None,
        )

    def find_receipts_for_payment(self, payment: Payment, receipts: list[Receipt]) -> list[MatchCandidate]:
        """
        Find every receipt a payment could cover, best first.

        Args:
            payment: Outgoing salary payment
            receipts: Receipt pool

        Returns:
            Candidates sorted by match quality
        """
        if payment.date is None:
            logger.debug("Payment %s has no valid date, skipping", payment.file_id)
            return []

        candidates = [
            candidate
            for candidate in (self.score_pair(payment, receipt) for receipt in receipts)
            if candidate is not None
        ]

        logger.debug("Payment %s: %d receipt candidates", payment.file_id, len(candidates))
        return sort_candidates(candidates)

    def find_payments_for_receipt(self, receipt: Receipt, payments: list[Payment]) -> list[MatchCandidate]:
        """Find every payment that could cover a receipt, best first."""
        if receipt.pay_date is None:
            return []

        candidates = []
        for payment in payments:
            candidate = self.score_pair(payment, receipt)
            if candidate is not None:
                candidates.append(self._as_payment_candidate(candidate, payment))

        return sort_candidates(candidates)
