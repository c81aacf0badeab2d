#!/usr/bin/env python3
"""
Invoice to Payment Matching Module

Scores payments against invoices using the date-tier table, counterparty
identifiers and, for USD invoices, the cached historical exchange rate.
"""

import logging
from decimal import Decimal

from ..core.currency import DEFAULT_AMOUNT_TOLERANCE
from ..core.dates import day_difference, days_between
from ..core.identifiers import identifiers_match, names_match
from ..core.models import Invoice, MatchCandidate, Payment
from ..rates.exchange_rate import DEFAULT_TOLERANCE_PERCENT, ExchangeRateProvider
from .base import TieredMatcher
from .quality import confidence_for, sort_candidates

logger = logging.getLogger(__name__)


class InvoiceMatcher(TieredMatcher):
    """Matches payments to invoices and invoices to payments"""

    def __init__(
        self,
        days_before: int = 10,
        days_after: int = 60,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
        tolerance_percent: Decimal = DEFAULT_TOLERANCE_PERCENT,
        rates: ExchangeRateProvider | None = None,
    ):
        """
        Initialize the matcher.

        Args:
            days_before: LOW tier reach before the invoice date
            days_after: LOW tier reach after the invoice date
            amount_tolerance: ARS amount tolerance in pesos
            tolerance_percent: Cross-currency tolerance in percent
            rates: Rate provider whose cache has been prefetched for USD invoice dates
        """
        super().__init__(days_before, days_after, amount_tolerance)
        self.tolerance_percent = tolerance_percent
        self.rates = rates or ExchangeRateProvider()

    @classmethod
    def from_config(cls, config, rates: ExchangeRateProvider | None = None) -> "InvoiceMatcher":
        matching = config.matching
        return cls(
            days_before=matching.days_before,
            days_after=matching.days_after,
            amount_tolerance=matching.amount_tolerance,
            tolerance_percent=matching.cross_currency_tolerance_percent,
            rates=rates,
        )

    def score_pair(self, payment: Payment, invoice: Invoice) -> MatchCandidate | None:
        """
        Score one payment/invoice pairing.

        Returns:
            Candidate targeting the invoice, or None if the pair cannot match
        """
        if payment.date is None or invoice.issue_date is None:
            return None

        day_diff = day_difference(invoice.issue_date, payment.date)
        if self._tier(day_diff) is None:
            return None

        amount = self.rates.amounts_match_cross_currency(
            invoice.total,
            invoice.currency,
            invoice.issue_date,
            payment.amount,
            tolerance_percent=self.tolerance_percent,
            amount_tolerance=self.amount_tolerance,
        )
        if not amount.matches:
            return None

        reasons = []
        if amount.is_cross_currency:
            reasons.append("Cross-currency match (USD->ARS)")
            reasons.append(f"Exchange rate: {amount.rate}, expected ARS: {amount.expected_amount.to_decimal()}")
        else:
            reasons.append(f"Amount match: {payment.amount.to_decimal()}")
        reasons.append(self._tier_reason(day_diff, payment))

        tax_id_match = False
        if invoice.tax_id:
            if identifiers_match(payment.beneficiary_tax_id, invoice.tax_id):
                tax_id_match = True
                reasons.append("Beneficiary tax ID match")
            elif identifiers_match(payment.payer_tax_id, invoice.tax_id):
                tax_id_match = True
                reasons.append("Payer tax ID match")

        name_match = False
        if invoice.name:
            if names_match(payment.beneficiary_name, invoice.name):
                name_match = True
                reasons.append("Beneficiary name match")
            elif names_match(payment.payer_name, invoice.name):
                name_match = True
                reasons.append("Payer name match")

        # Names do not count towards cross-currency confidence
        identifier_evidence = tax_id_match if amount.is_cross_currency else (tax_id_match or name_match)
        confidence = confidence_for(day_diff, identifier_evidence, amount.is_cross_currency, self.tiers)
        if confidence is None:
            return None

        if invoice.is_matched:
            reasons.append(f"Potential upgrade from {(invoice.match_confidence or confidence).value}")

        return MatchCandidate(
            target=invoice,
            target_id=invoice.file_id,
            target_row=invoice.row,
            confidence=confidence,
            identifier_match=tax_id_match,
            date_proximity_days=days_between(invoice.issue_date, payment.date),
            name_match=name_match,
            reasons=reasons,
            cross_currency=amount.is_cross_currency,
            exchange_rate=amount.rate,
            expected_amount=amount.expected_amount,
            is_upgrade=invoice.is_matched,
            existing_match_id=invoice.matched_payment_id,
            existing_confidence=invoice.match_confidence if invoice.is_matched else None,
        )

    def find_invoices_for_payment(self, payment: Payment, invoices: list[Invoice]) -> list[MatchCandidate]:
        """
        Find every invoice a payment could settle, best first.

        Invoices settled by other means (settled without a matched payment)
        are skipped; invoices matched to another payment are returned as
        upgrade candidates.

        Args:
            payment: Payment to match
            invoices: Invoice pool

        Returns:
            Candidates sorted by match quality
        """
        if payment.date is None:
            logger.debug("Payment %s has no valid date, skipping", payment.file_id)
            return []

        candidates = []
        for invoice in invoices:
            if invoice.settled and not invoice.is_matched:
                continue
            candidate = self.score_pair(payment, invoice)
            if candidate is not None:
                candidates.append(candidate)

        logger.debug("Payment %s: %d invoice candidates", payment.file_id, len(candidates))
        return sort_candidates(candidates)

    def find_payments_for_invoice(self, invoice: Invoice, payments: list[Payment]) -> list[MatchCandidate]:
        """
        Find every payment that could settle an invoice, best first.

        Args:
            invoice: Invoice to match
            payments: Payment pool

        Returns:
            Candidates targeting payments, sorted by match quality
        """
        if invoice.issue_date is None:
            return []

        candidates = []
        for payment in payments:
            candidate = self.score_pair(payment, invoice)
            if candidate is not None:
                candidates.append(self._as_payment_candidate(candidate, payment))

        return sort_candidates(candidates)
