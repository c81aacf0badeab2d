#!/usr/bin/env python3
"""
Bank Movement to Document Matching

Explains bank statement rows by matching them against the books: payments
sent, supplier invoices and salary receipts for debits; payments received
and issued invoices (net of withholdings) for credits.

Debit priority, first hit wins:
0. Bank fee or credit card payment, recognised from the description
1. Payment slip (+/- 1 day) already linked to a supplier invoice
2. Supplier invoice by amount and date, identified by tax ID, or by keywords
   when the movement is a direct debit
3. Salary receipt by net amount and date
4. Payment slip without a linked invoice (flagged for review)

Credit priority:
1. Payment received (+/- 1 day) already linked to an issued invoice
2. Issued invoice by amount, or amount plus related withholdings
3. Payment received without a linked invoice (flagged for review)

Confidence on invoice matches is capped when the invoice is in USD:
MEDIUM with a tax ID match, LOW without.
"""

import logging
import re
import unicodedata
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from functools import total_ordering
from typing import Any

from ..core.currency import DEFAULT_AMOUNT_TOLERANCE
from ..core.dates import FinancialDate, day_difference, days_between, is_within_days, parse_regional_date
from ..core.identifiers import extract_tax_id_from_text, identifiers_match
from ..core.models import (
    BankMovement,
    Currency,
    Invoice,
    MatchConfidence,
    Payment,
    ProcessingResult,
    Receipt,
    Withholding,
)
from ..core.money import Money
from ..matching.quality import UNKNOWN_PROXIMITY_DAYS
from ..rates.exchange_rate import DEFAULT_TOLERANCE_PERCENT, ExchangeRateProvider
from ..storage.row_store import MOVEMENTS_SHEET

logger = logging.getLogger(__name__)

PAYMENT_DATE_RANGE = 1
DOCUMENT_DAYS_BEFORE = 5
DOCUMENT_DAYS_AFTER = 30
WITHHOLDING_DAYS_AFTER = 90
MIN_KEYWORD_SCORE = 2

BANK_FEE_DETAIL = "Gastos bancarios"
CREDIT_CARD_DETAIL = "Pago de tarjeta de credito"

BANK_FEE_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^IMPUESTO LEY",
        r"^IMP\.LEY 25413",
        r"^LEY NRO 25\.4",
        r"^COMISION MAN",
        r"^COM MANT MENS",
        r"^COMISION MOV",
        r"^COMISION TRA",
        r"^COMI TRANSFERENCIA",
        r"^COM\.TRANSF",
        r"^COMISION POR TRANSFERENCIA",
        r"^IVA TASA GRA",
        r"^IVA TASA GENERAL",
        r"^COMISION GES",
        r"^GP-COM\.OPAGO",
        r"^GP-IVA TASA",
    )
)

CREDIT_CARD_PAYMENT_PATTERNS = (re.compile(r"^PAGO TARJETA\s+\d+", re.IGNORECASE),)

DIRECT_DEBIT_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"DEBITO\s*DI\b",
        r"DEBITO\s*DIRECTO",
        r"DEBITO\s*AUTOMATICO",
        r"DEB\.?\s*AUT",
    )
)

# Words every bank description carries; they identify nobody
BANK_JARGON = frozenset(
    {
        "DEBITO", "CREDITO", "TRANSFERENCIA", "TRANSFERENCI", "PAGO", "COBRO",
        "OG", "DI", "AUT", "AUTO", "DIR", "REF", "NRO", "NUM", "CTA", "CBU",
    }
)

_TOKEN_SEPARATORS = re.compile(r"[\s\-.]+")
_DIGIT_LETTER_BOUNDARY = re.compile(r"(?<=\d)(?=[A-Z])|(?<=[A-Z])(?=\d)")


def _matches_any(patterns: tuple[re.Pattern, ...], description: str | None) -> bool:
    if not description:
        return False
    return any(pattern.search(description) for pattern in patterns)


def is_bank_fee(description: str | None) -> bool:
    """Bank charges, commissions and the taxes levied on them."""
    return _matches_any(BANK_FEE_PATTERNS, description)


def is_credit_card_payment(description: str | None) -> bool:
    return _matches_any(CREDIT_CARD_PAYMENT_PATTERNS, description)


def is_direct_debit(description: str | None) -> bool:
    return _matches_any(DIRECT_DEBIT_PATTERNS, description)


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text.upper())
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def extract_keyword_tokens(description: str | None) -> list[str]:
    """
    Pull the words of a bank description that could name a counterparty.

    Digit/letter runs are split apart, then numbers, words shorter than three
    letters and bank jargon are dropped. Tokens are upper-case without accents.

    Example:
        "DEBITO DI 20751CUOTA EDESUR" -> ["CUOTA", "EDESUR"]
    """
    if not description:
        return []

    tokens = []
    for part in _TOKEN_SEPARATORS.split(description.upper()):
        tokens.extend(_DIGIT_LETTER_BOUNDARY.split(part))

    folded = (_fold(token) for token in tokens)
    return [token for token in folded if len(token) >= 3 and not token.isdigit() and token not in BANK_JARGON]


def keyword_match_score(description: str | None, name: str, note: str = "") -> int:
    """Two points per description token found in the counterparty name, two more per token in the note."""
    tokens = extract_keyword_tokens(description)
    if not tokens:
        return 0

    folded_name = _fold(name or "")
    folded_note = _fold(note or "")

    score = 0
    for token in tokens:
        if token in folded_name:
            score += 2
        if folded_note and token in folded_note:
            score += 2
    return score


class MovementMatchType(Enum):
    BANK_FEE = "bank_fee"
    CREDIT_CARD_PAYMENT = "credit_card_payment"
    PAYMENT_INVOICE = "payment_invoice"
    DIRECT_INVOICE = "direct_invoice"
    RECEIPT = "receipt"
    PAYMENT_ONLY = "payment_only"
    NO_MATCH = "no_match"


@dataclass
class MovementMatch:
    """Match (or absence of one) for a single bank movement."""

    movement: BankMovement
    match_type: MovementMatchType
    confidence: MatchConfidence
    detail: str = ""
    matched_id: str = ""
    extracted_tax_id: str | None = None
    reasons: list[str] = field(default_factory=list)
    withholdings: list[Withholding] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.match_type is not MovementMatchType.NO_MATCH

    @classmethod
    def no_match(cls, movement: BankMovement, reason: str, extracted_tax_id: str | None = None) -> "MovementMatch":
        return cls(
            movement=movement,
            match_type=MovementMatchType.NO_MATCH,
            confidence=MatchConfidence.LOW,
            extracted_tax_id=extracted_tax_id,
            reasons=[reason],
        )


@total_ordering
@dataclass(frozen=True)
class MovementMatchQuality:
    """
    Comparable quality of a movement's match, used to decide replacements.

    Ordered by confidence, then tax ID found in the description, then date
    distance (closer is better), then whether the document is itself linked.
    """

    confidence: MatchConfidence
    tax_id_match: bool
    date_distance: int
    has_linked_document: bool

    def _key(self) -> tuple[int, int, int, int]:
        return (
            self.confidence.rank,
            int(self.tax_id_match),
            -self.date_distance,
            int(self.has_linked_document),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MovementMatchQuality):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "MovementMatchQuality") -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())


def _movement_dates(movement: BankMovement) -> list[FinancialDate]:
    dates = []
    for text in (movement.date, movement.value_date):
        parsed = parse_regional_date(text)
        if parsed is not None and parsed not in dates:
            dates.append(parsed)
    return dates


def _payment_distance(bank_dates: list[FinancialDate], document_date: FinancialDate | None) -> int | None:
    """Closest gap to a bank date within +/- PAYMENT_DATE_RANGE, or None."""
    if document_date is None:
        return None
    gaps = [
        days_between(bank_date, document_date)
        for bank_date in bank_dates
        if is_within_days(bank_date, document_date, PAYMENT_DATE_RANGE, PAYMENT_DATE_RANGE)
    ]
    return min(gaps) if gaps else None


def _document_distance(bank_dates: list[FinancialDate], document_date: FinancialDate | None) -> int | None:
    """Closest gap for a bank date from 5 days before to 30 days after the document, or None."""
    if document_date is None:
        return None
    gaps = [
        days_between(document_date, bank_date)
        for bank_date in bank_dates
        if is_within_days(document_date, bank_date, DOCUMENT_DAYS_BEFORE, DOCUMENT_DAYS_AFTER)
    ]
    return min(gaps) if gaps else None


def _capped(identified: bool, cross_currency: bool) -> MatchConfidence:
    if cross_currency:
        return MatchConfidence.MEDIUM if identified else MatchConfidence.LOW
    return MatchConfidence.HIGH if identified else MatchConfidence.MEDIUM


def format_invoice_detail(invoice: Invoice, incoming: bool = False) -> str:
    """
    Build the detail text for a movement explained by an invoice.

    Example:
        "Pago Factura a Acme SA - Hosting marzo"
        "Cobro Factura de Cliente Uno SRL"
    """
    if incoming:
        text = f"Cobro Factura de {invoice.name or 'Cliente'}"
    else:
        text = f"Pago Factura a {invoice.name or 'Proveedor'}"
    if invoice.note:
        text += f" - {invoice.note}"
    return text


@dataclass
class _PaymentHit:
    payment: Payment
    distance: int
    tax_id_match: bool
    reasons: list[str]


@dataclass
class _InvoiceHit:
    invoice: Invoice
    distance: int
    tax_id_match: bool
    keyword_score: int
    cross_currency: bool
    exact_amount: bool
    reasons: list[str]
    withholdings: list[Withholding] = field(default_factory=list)


class BankMovementMatcher:
    """Matches bank debits and credits against invoices, payments and receipts"""

    def __init__(
        self,
        rates: ExchangeRateProvider | None = None,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
        tolerance_percent: Decimal = DEFAULT_TOLERANCE_PERCENT,
    ):
        """
        Initialize the matcher.

        Args:
            rates: Rate provider whose cache has been prefetched for USD invoice dates
            amount_tolerance: ARS amount tolerance in pesos
            tolerance_percent: Cross-currency tolerance in percent
        """
        self.rates = rates or ExchangeRateProvider()
        self.amount_tolerance = amount_tolerance
        self.tolerance_percent = tolerance_percent

    @classmethod
    def from_config(cls, config, rates: ExchangeRateProvider | None = None) -> "BankMovementMatcher":
        matching = config.matching
        return cls(
            rates=rates,
            amount_tolerance=matching.amount_tolerance,
            tolerance_percent=matching.cross_currency_tolerance_percent,
        )

    def match_debit(
        self,
        movement: BankMovement,
        invoices: list[Invoice],
        receipts: list[Receipt],
        payments: list[Payment],
    ) -> MovementMatch:
        """
        Explain money leaving the account.

        Args:
            movement: Bank statement row
            invoices: Supplier invoices
            receipts: Salary receipts
            payments: Payment slips sent

        Returns:
            MovementMatch; NO_MATCH carries the reason
        """
        if is_bank_fee(movement.description):
            return self._recognised(movement, MovementMatchType.BANK_FEE, BANK_FEE_DETAIL, "Bank fee pattern detected")

        if not movement.is_debit:
            return MovementMatch.no_match(movement, "No debit amount")

        if is_credit_card_payment(movement.description):
            return self._recognised(
                movement,
                MovementMatchType.CREDIT_CARD_PAYMENT,
                CREDIT_CARD_DETAIL,
                "Credit card payment pattern detected",
            )

        tax_id = extract_tax_id_from_text(movement.description)
        bank_dates = _movement_dates(movement)
        if not bank_dates:
            return MovementMatch.no_match(movement, "No valid date in movement", tax_id)

        amount = movement.debit
        payment_hits = self._payment_hits(amount, bank_dates, tax_id, payments, incoming=False)

        invoices_by_id = {invoice.file_id: invoice for invoice in invoices}
        linked = self._linked(movement, payment_hits, invoices_by_id, tax_id, incoming=False)
        if linked is not None:
            return linked

        invoice_hits = self._supplier_invoice_hits(movement, amount, bank_dates, tax_id, invoices)
        if invoice_hits:
            best = invoice_hits[0]
            by_keyword = not best.tax_id_match
            reasons = best.reasons + ["Direct invoice match (keyword)" if by_keyword else "Direct invoice match"]
            return MovementMatch(
                movement=movement,
                match_type=MovementMatchType.DIRECT_INVOICE,
                confidence=_capped(best.tax_id_match, best.cross_currency),
                detail=format_invoice_detail(best.invoice),
                matched_id=best.invoice.file_id,
                extracted_tax_id=tax_id,
                reasons=reasons,
            )

        receipt = self._closest_receipt(amount, bank_dates, receipts)
        if receipt is not None:
            return MovementMatch(
                movement=movement,
                match_type=MovementMatchType.RECEIPT,
                confidence=MatchConfidence.HIGH,
                detail=f"Sueldo - {receipt.employee_name}",
                matched_id=receipt.file_id,
                extracted_tax_id=tax_id,
                reasons=[f"Amount match: {amount.to_decimal()}", f"Employee: {receipt.employee_name}"],
            )

        if payment_hits:
            best = payment_hits[0]
            payment = best.payment
            detail = f"REVISAR! Pago a {payment.beneficiary_name or 'Desconocido'}"
            if payment.beneficiary_tax_id:
                detail += f" {payment.beneficiary_tax_id}"
            if payment.note:
                detail += f" ({payment.note})"
            return MovementMatch(
                movement=movement,
                match_type=MovementMatchType.PAYMENT_ONLY,
                confidence=MatchConfidence.LOW,
                detail=detail,
                matched_id=payment.file_id,
                extracted_tax_id=tax_id,
                reasons=best.reasons + ["Payment without linked invoice"],
            )

        return MovementMatch.no_match(movement, "No matching documents found", tax_id)

    def match_credit(
        self,
        movement: BankMovement,
        invoices: list[Invoice],
        payments: list[Payment],
        withholdings: list[Withholding],
    ) -> MovementMatch:
        """
        Explain money entering the account.

        Args:
            movement: Bank statement row
            invoices: Issued invoices
            payments: Payment slips received
            withholdings: Withholding certificates received from clients

        Returns:
            MovementMatch; NO_MATCH carries the reason
        """
        if not movement.is_credit:
            return MovementMatch.no_match(movement, "No credit amount")

        tax_id = extract_tax_id_from_text(movement.description)
        movement_date = movement.effective_date
        if movement_date is None:
            return MovementMatch.no_match(movement, "No valid date in movement", tax_id)

        bank_dates = [movement_date]
        amount = movement.credit
        payment_hits = self._payment_hits(amount, bank_dates, tax_id, payments, incoming=True)

        invoices_by_id = {invoice.file_id: invoice for invoice in invoices}
        linked = self._linked(movement, payment_hits, invoices_by_id, tax_id, incoming=True)
        if linked is not None:
            return linked

        invoice_hits = self._client_invoice_hits(amount, bank_dates, tax_id, invoices, withholdings)
        if invoice_hits:
            best = invoice_hits[0]
            detail = format_invoice_detail(best.invoice, incoming=True)
            if best.withholdings:
                detail += " (con retencion)"
            # Withholdings are found by tax ID, so using them identifies the client
            identified = best.tax_id_match or bool(best.withholdings)
            return MovementMatch(
                movement=movement,
                match_type=MovementMatchType.DIRECT_INVOICE,
                confidence=_capped(identified, best.cross_currency),
                detail=detail,
                matched_id=best.invoice.file_id,
                extracted_tax_id=tax_id,
                reasons=best.reasons,
                withholdings=best.withholdings,
            )

        if payment_hits:
            best = payment_hits[0]
            return MovementMatch(
                movement=movement,
                match_type=MovementMatchType.PAYMENT_ONLY,
                confidence=MatchConfidence.MEDIUM,
                detail=f"REVISAR! Cobro de {best.payment.payer_name or 'Desconocido'}",
                matched_id=best.payment.file_id,
                extracted_tax_id=tax_id,
                reasons=best.reasons + ["Payment without linked invoice"],
            )

        return MovementMatch.no_match(movement, "No matching invoice or payment found", tax_id)

    def related_withholdings(self, invoice: Invoice, withholdings: list[Withholding]) -> list[Withholding]:
        """Withholdings by the invoice's client dated on or up to 90 days after the invoice."""
        if invoice.issue_date is None or not invoice.tax_id:
            return []

        related = []
        for withholding in withholdings:
            if withholding.issue_date is None:
                continue
            if not identifiers_match(withholding.agent_tax_id, invoice.tax_id):
                continue
            if 0 <= day_difference(invoice.issue_date, withholding.issue_date) <= WITHHOLDING_DAYS_AFTER:
                related.append(withholding)
        return related

    def _recognised(
        self, movement: BankMovement, match_type: MovementMatchType, detail: str, reason: str
    ) -> MovementMatch:
        return MovementMatch(
            movement=movement,
            match_type=match_type,
            confidence=MatchConfidence.HIGH,
            detail=detail,
            reasons=[reason],
        )

    def _linked(
        self,
        movement: BankMovement,
        payment_hits: list[_PaymentHit],
        invoices_by_id: dict[str, Invoice],
        tax_id: str | None,
        incoming: bool,
    ) -> MovementMatch | None:
        """First payment hit whose stored match points at a known invoice."""
        for hit in payment_hits:
            document_id = hit.payment.matched_document_id
            if not document_id:
                continue

            invoice = invoices_by_id.get(document_id)
            if invoice is None:
                logger.warning(
                    f"Linked invoice {document_id} of payment {hit.payment.file_id} not found, "
                    f"ignoring the link for movement row {movement.row}"
                )
                continue

            confidence = MatchConfidence.HIGH
            reasons = hit.reasons + ["Payment linked to invoice"]
            if incoming and invoice.currency is Currency.USD:
                confidence = MatchConfidence.MEDIUM
                reasons.append("Cross-currency match (USD->ARS)")

            return MovementMatch(
                movement=movement,
                match_type=MovementMatchType.PAYMENT_INVOICE,
                confidence=confidence,
                detail=format_invoice_detail(invoice, incoming=incoming),
                matched_id=hit.payment.file_id,
                extracted_tax_id=tax_id,
                reasons=reasons,
            )
        return None

    def _payment_hits(
        self,
        amount: Money,
        bank_dates: list[FinancialDate],
        tax_id: str | None,
        payments: list[Payment],
        incoming: bool,
    ) -> list[_PaymentHit]:
        """Payments within a day of the movement, tax ID matches first, then closest."""
        tolerance = Money.from_decimal(self.amount_tolerance)
        hits = []

        for payment in payments:
            if not payment.amount.within(amount, tolerance):
                continue
            distance = _payment_distance(bank_dates, payment.date)
            if distance is None:
                continue

            reasons = [f"Amount match: {amount.to_decimal()}", f"Date match: payment {payment.date}"]
            counterparty = payment.payer_tax_id if incoming else payment.beneficiary_tax_id
            tax_id_match = bool(tax_id) and identifiers_match(tax_id, counterparty)
            if tax_id_match:
                reasons.append("Tax ID match with payer" if incoming else "Tax ID match with beneficiary")

            hits.append(_PaymentHit(payment=payment, distance=distance, tax_id_match=tax_id_match, reasons=reasons))

        hits.sort(key=lambda hit: (not hit.tax_id_match, hit.distance))
        return hits

    def _supplier_invoice_hits(
        self,
        movement: BankMovement,
        amount: Money,
        bank_dates: list[FinancialDate],
        tax_id: str | None,
        invoices: list[Invoice],
    ) -> list[_InvoiceHit]:
        """
        Supplier invoices a debit could pay.

        An invoice needs the description's tax ID, or, for direct debits only,
        a keyword score of at least MIN_KEYWORD_SCORE against its name and note.
        """
        direct_debit = is_direct_debit(movement.description)
        hits = []

        for invoice in invoices:
            comparison = self._compare(invoice, amount)
            if not comparison.matches:
                continue
            distance = _document_distance(bank_dates, invoice.issue_date)
            if distance is None:
                continue

            reasons = []
            if comparison.is_cross_currency:
                reasons.append("Cross-currency match (USD->ARS)")
                reasons.append(
                    f"Exchange rate: {comparison.rate}, expected ARS: {comparison.expected_amount.to_decimal()}"
                )
            else:
                reasons.append(f"Amount match: {amount.to_decimal()}")
            reasons.append(f"Date match: invoice {invoice.issue_date}")

            tax_id_match = bool(tax_id) and identifiers_match(tax_id, invoice.tax_id)
            keyword_score = 0
            if tax_id_match:
                reasons.append("Tax ID match with issuer")
            elif direct_debit:
                keyword_score = keyword_match_score(movement.description, invoice.name, invoice.note)
                if keyword_score < MIN_KEYWORD_SCORE:
                    continue
                reasons.append(f"Keyword match (score: {keyword_score})")
                reasons.append("Direct debit without tax ID")
            else:
                continue

            hits.append(
                _InvoiceHit(
                    invoice=invoice,
                    distance=distance,
                    tax_id_match=tax_id_match,
                    keyword_score=keyword_score,
                    cross_currency=comparison.is_cross_currency,
                    exact_amount=True,
                    reasons=reasons,
                )
            )

        hits.sort(key=lambda hit: (not hit.tax_id_match, -hit.keyword_score, hit.distance))
        return hits

    def _client_invoice_hits(
        self,
        amount: Money,
        bank_dates: list[FinancialDate],
        tax_id: str | None,
        invoices: list[Invoice],
        withholdings: list[Withholding],
    ) -> list[_InvoiceHit]:
        """
        Issued invoices a credit could collect.

        The credit may fall short of the invoice total by the withholdings
        the client applied; those are added back when the plain amount fails.
        """
        hits = []

        for invoice in invoices:
            distance = _document_distance(bank_dates, invoice.issue_date)
            if distance is None:
                continue

            used: list[Withholding] = []
            comparison = self._compare(invoice, amount)
            if not comparison.matches:
                related = self.related_withholdings(invoice, withholdings)
                withheld = sum((withholding.amount for withholding in related), Money.zero())
                if withheld.is_zero():
                    continue
                comparison = self._compare(invoice, amount + withheld)
                if not comparison.matches:
                    continue
                used = related

            reasons = ["Amount + withholdings match" if used else "Exact amount match", "Date within range"]
            if comparison.is_cross_currency:
                reasons.append("Cross-currency match (USD->ARS)")

            tax_id_match = bool(tax_id) and identifiers_match(tax_id, invoice.tax_id)
            if tax_id_match:
                reasons.append("Tax ID match with client")

            hits.append(
                _InvoiceHit(
                    invoice=invoice,
                    distance=distance,
                    tax_id_match=tax_id_match,
                    keyword_score=0,
                    cross_currency=comparison.is_cross_currency,
                    exact_amount=not used,
                    reasons=reasons,
                    withholdings=used,
                )
            )

        hits.sort(key=lambda hit: (not hit.tax_id_match, hit.distance, not hit.exact_amount))
        return hits

    def _compare(self, invoice: Invoice, amount: Money):
        return self.rates.amounts_match_cross_currency(
            invoice.total,
            invoice.currency,
            invoice.issue_date,
            amount,
            tolerance_percent=self.tolerance_percent,
            amount_tolerance=self.amount_tolerance,
        )

    def _closest_receipt(
        self, amount: Money, bank_dates: list[FinancialDate], receipts: list[Receipt]
    ) -> Receipt | None:
        tolerance = Money.from_decimal(self.amount_tolerance)
        best: tuple[Receipt, int] | None = None
        for receipt in receipts:
            if not receipt.net_total.within(amount, tolerance):
                continue
            distance = _document_distance(bank_dates, receipt.pay_date)
            if distance is None:
                continue
            if best is None or distance < best[1]:
                best = (receipt, distance)
        return best[0] if best else None


@dataclass
class Books:
    """One side of the books, as the movement matcher sees it."""

    invoices: list[Invoice] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    receipts: list[Receipt] = field(default_factory=list)
    withholdings: list[Withholding] = field(default_factory=list)


@dataclass(frozen=True)
class MovementMatchWrite:
    """Annotation to write on a movement row."""

    movement_row: int
    match_type: MovementMatchType
    matched_id: str
    confidence: MatchConfidence
    detail: str

    def to_values(self) -> dict[str, Any]:
        return {
            "detail": self.detail,
            "matched_document_id": self.matched_id,
            "match_confidence": self.confidence.value,
        }


@dataclass
class MovementMatchBatch:
    """Outcome of matching a batch of movements."""

    writes: list[MovementMatchWrite] = field(default_factory=list)
    unmatched: dict[int, list[str]] = field(default_factory=dict)
    by_type: Counter = field(default_factory=Counter)
    credits: int = 0
    kept: int = 0
    skipped: int = 0


def _document_facts(document: Any) -> tuple[FinancialDate | None, str, bool]:
    """Date, counterparty tax ID and whether the document is itself linked."""
    if isinstance(document, Invoice):
        return document.issue_date, document.tax_id, document.is_matched
    if isinstance(document, Payment):
        tax_ids = document.counterparty_tax_ids
        return document.date, tax_ids[0] if tax_ids else "", bool(document.matched_document_id)
    return document.pay_date, document.employee_tax_id, False


def document_quality(document: Any, movement: BankMovement, confidence: MatchConfidence) -> MovementMatchQuality:
    """Quality of pairing a movement with an invoice, payment or receipt."""
    document_date, document_tax_id, linked = _document_facts(document)
    movement_date = movement.effective_date
    distance = (
        days_between(document_date, movement_date)
        if document_date is not None and movement_date is not None
        else UNKNOWN_PROXIMITY_DAYS
    )
    extracted = extract_tax_id_from_text(movement.description)
    return MovementMatchQuality(
        confidence=confidence,
        tax_id_match=bool(extracted) and identifiers_match(extracted, document_tax_id),
        date_distance=distance,
        has_linked_document=linked,
    )


def match_movements(
    movements: list[BankMovement],
    outgoing: Books,
    incoming: Books,
    matcher: BankMovementMatcher | None = None,
    force: bool = False,
) -> MovementMatchBatch:
    """
    Match a batch of movements against both sides of the books.

    Rows described by hand (a detail but no matched document) are skipped.
    A row that already holds a match is only rewritten when the new match is
    strictly better; with force, every row is matched afresh.
    """
    matcher = matcher or BankMovementMatcher()
    batch = MovementMatchBatch()

    documents: dict[str, Any] = {}
    for books in (outgoing, incoming):
        for document in [*books.invoices, *books.payments, *books.receipts]:
            documents.setdefault(document.file_id, document)

    for movement in movements:
        if not force and movement.detail and not movement.matched_document_id:
            batch.skipped += 1
            continue

        if movement.is_debit or is_bank_fee(movement.description):
            match = matcher.match_debit(movement, outgoing.invoices, outgoing.receipts, outgoing.payments)
        elif movement.is_credit:
            match = matcher.match_credit(movement, incoming.invoices, incoming.payments, incoming.withholdings)
        else:
            batch.skipped += 1
            continue

        if not match.matched:
            batch.unmatched[movement.row] = match.reasons
            logger.debug("Movement row %d unmatched: %s", movement.row, "; ".join(match.reasons))
            continue

        if not force and movement.matched_document_id and not _replaces(movement, match, documents):
            batch.kept += 1
            continue

        batch.by_type[match.match_type] += 1
        if not movement.is_debit and movement.is_credit:
            batch.credits += 1
        batch.writes.append(
            MovementMatchWrite(
                movement_row=movement.row,
                match_type=match.match_type,
                matched_id=match.matched_id,
                confidence=match.confidence,
                detail=match.detail,
            )
        )

    logger.info(
        f"Matched {len(batch.writes)} bank movements ({batch.credits} credits), "
        f"{len(batch.unmatched)} unmatched, {batch.kept} kept, {batch.skipped} skipped"
    )
    return batch


def _replaces(movement: BankMovement, match: MovementMatch, documents: dict[str, Any]) -> bool:
    """Whether a new match should overwrite the movement's stored one."""
    existing = documents.get(movement.matched_document_id)
    if existing is None:
        logger.warning(
            f"Stored match {movement.matched_document_id} on movement row {movement.row} "
            "no longer exists, keeping it"
        )
        return False

    candidate = documents.get(match.matched_id)
    if candidate is None:
        return False

    existing_quality = document_quality(existing, movement, movement.match_confidence or MatchConfidence.HIGH)
    return document_quality(candidate, movement, match.confidence) > existing_quality


def write_movement_matches(store, batch: MovementMatchBatch, sheet: str = MOVEMENTS_SHEET) -> ProcessingResult:
    """
    Write each matched movement's detail, matched document and confidence.

    Failed writes are logged and counted; the remaining writes still run.
    """
    outcome = ProcessingResult()
    for write in batch.writes:
        written = store.update_row(sheet, write.movement_row, write.to_values())
        outcome.record(written.ok, written.error)
        if not written.ok:
            logger.warning(f"Failed to write match on {sheet} row {write.movement_row}: {written.error}")
    return outcome
