#!/usr/bin/env python3
"""
Core Data Models for Bookkeeping Reconciliation

Document types shared by every matcher. Documents are immutable snapshots of
a row in the row store; the only fields the engine ever changes are the match
annotations, and those changes are emitted as row updates rather than applied
to the objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Any

from .dates import FinancialDate, parse_regional_date
from .money import Money

_TRUTHY = {"si", "sí", "true", "yes", "1", "x"}


class Currency(Enum):
    """Document currencies. ARS is the local currency."""

    ARS = "ARS"
    USD = "USD"

    @classmethod
    def from_value(cls, value: Any) -> "Currency":
        """Parse a stored currency code, defaulting to ARS."""
        if isinstance(value, Currency):
            return value
        text = str(value or "").strip().upper()
        if text in ("USD", "U$S", "US$"):
            return cls.USD
        return cls.ARS


class MatchConfidence(Enum):
    """Confidence tier attached to every accepted match."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Numeric rank used for ordering (HIGH=3, MEDIUM=2, LOW=1)."""
        return _CONFIDENCE_RANK[self]

    @classmethod
    def from_value(cls, value: Any) -> "MatchConfidence | None":
        """Parse a stored confidence, returning None for blank or unknown values."""
        if isinstance(value, MatchConfidence):
            return value
        text = str(value or "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            return None


_CONFIDENCE_RANK = {
    MatchConfidence.HIGH: 3,
    MatchConfidence.MEDIUM: 2,
    MatchConfidence.LOW: 1,
}


class InvoiceKind(Enum):
    """Invoice letter or note type."""

    A = "A"
    B = "B"
    C = "C"
    E = "E"
    NC = "NC"  # credit note
    ND = "ND"  # debit note

    @property
    def is_note(self) -> bool:
        return self in (InvoiceKind.NC, InvoiceKind.ND)

    @classmethod
    def from_value(cls, value: Any) -> "InvoiceKind":
        if isinstance(value, InvoiceKind):
            return value
        text = str(value or "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            return cls.A


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return _text(value).lower() in _TRUTHY


def _money(value: Any) -> Money:
    return Money.from_text(value) or Money.zero()


def _optional_money(value: Any) -> Money | None:
    return Money.from_text(value)


def _row(data: dict[str, Any]) -> int:
    return int(data.get("row") or 0)


@dataclass(frozen=True)
class Invoice:
    """
    Invoice, credit note or debit note.

    The counterparty is whoever is on the other side of the transaction:
    the client for issued invoices, the supplier for received ones.
    """

    file_id: str
    row: int
    kind: InvoiceKind
    number: str
    issue_date: FinancialDate | None
    tax_id: str
    name: str
    total: Money
    currency: Currency = Currency.ARS
    note: str = ""

    # Stored match annotation
    matched_payment_id: str = ""
    match_confidence: MatchConfidence | None = None
    has_identifier_match: bool = False
    settled: bool = False

    @property
    def is_matched(self) -> bool:
        return bool(self.matched_payment_id)

    @property
    def document_date(self) -> FinancialDate | None:
        return self.issue_date

    @property
    def is_credit_note(self) -> bool:
        return self.kind is InvoiceKind.NC

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Invoice":
        """Create Invoice from a row dictionary."""
        return cls(
            file_id=_text(data.get("file_id")),
            row=_row(data),
            kind=InvoiceKind.from_value(data.get("kind")),
            number=_text(data.get("number")),
            issue_date=parse_regional_date(data.get("issue_date")),
            tax_id=_text(data.get("tax_id")),
            name=_text(data.get("name")),
            total=_money(data.get("total")),
            currency=Currency.from_value(data.get("currency")),
            note=_text(data.get("note")),
            matched_payment_id=_text(data.get("matched_payment_id")),
            match_confidence=MatchConfidence.from_value(data.get("match_confidence")),
            has_identifier_match=_flag(data.get("has_identifier_match")),
            settled=_flag(data.get("settled")),
        )


@dataclass(frozen=True)
class Payment:
    """Bank payment slip, incoming or outgoing. Always in local currency."""

    file_id: str
    row: int
    date: FinancialDate | None
    amount: Money
    currency: Currency = Currency.ARS
    payer_tax_id: str = ""
    payer_name: str = ""
    beneficiary_tax_id: str = ""
    beneficiary_name: str = ""
    reference: str = ""
    note: str = ""

    # Stored match annotation
    matched_document_id: str = ""
    match_confidence: MatchConfidence | None = None

    @property
    def counterparty_tax_ids(self) -> list[str]:
        """Beneficiary first, then payer; blanks removed."""
        return [tax_id for tax_id in (self.beneficiary_tax_id, self.payer_tax_id) if tax_id]

    @property
    def counterparty_names(self) -> list[str]:
        """Beneficiary first, then payer; blanks removed."""
        return [name for name in (self.beneficiary_name, self.payer_name) if name]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Payment":
        """Create Payment from a row dictionary."""
        return cls(
            file_id=_text(data.get("file_id")),
            row=_row(data),
            date=parse_regional_date(data.get("date")),
            amount=_money(data.get("amount")),
            currency=Currency.from_value(data.get("currency")),
            payer_tax_id=_text(data.get("payer_tax_id")),
            payer_name=_text(data.get("payer_name")),
            beneficiary_tax_id=_text(data.get("beneficiary_tax_id")),
            beneficiary_name=_text(data.get("beneficiary_name")),
            reference=_text(data.get("reference")),
            note=_text(data.get("note")),
            matched_document_id=_text(data.get("matched_document_id")),
            match_confidence=MatchConfidence.from_value(data.get("match_confidence")),
        )


@dataclass(frozen=True)
class Receipt:
    """Salary receipt (regular pay or final settlement)."""

    file_id: str
    row: int
    pay_date: FinancialDate | None
    net_total: Money
    employee_name: str
    employee_tax_id: str

    # Stored match annotation
    matched_payment_id: str = ""
    match_confidence: MatchConfidence | None = None
    has_identifier_match: bool = False

    @property
    def is_matched(self) -> bool:
        return bool(self.matched_payment_id)

    @property
    def document_date(self) -> FinancialDate | None:
        return self.pay_date

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Receipt":
        """Create Receipt from a row dictionary."""
        return cls(
            file_id=_text(data.get("file_id")),
            row=_row(data),
            pay_date=parse_regional_date(data.get("pay_date")),
            net_total=_money(data.get("net_total")),
            employee_name=_text(data.get("employee_name")),
            employee_tax_id=_text(data.get("employee_tax_id")),
            matched_payment_id=_text(data.get("matched_payment_id")),
            match_confidence=MatchConfidence.from_value(data.get("match_confidence")),
            has_identifier_match=_flag(data.get("has_identifier_match")),
        )


@dataclass(frozen=True)
class CollectionEntry:
    """Expected incoming payment from the sales sub-ledger."""

    row: int
    collection_date: FinancialDate | None
    invoice_date: FinancialDate | None
    invoice_number: str
    client: str
    tax_id: str
    total: Money
    note: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CollectionEntry":
        """Create CollectionEntry from a row dictionary."""
        return cls(
            row=_row(data),
            collection_date=parse_regional_date(data.get("collection_date")),
            invoice_date=parse_regional_date(data.get("invoice_date")),
            invoice_number=_text(data.get("invoice_number")),
            client=_text(data.get("client")),
            tax_id=_text(data.get("tax_id")),
            total=_money(data.get("total")),
            note=_text(data.get("note")),
        )


@dataclass(frozen=True)
class BankMovement:
    """Row of a bank account statement."""

    row: int
    date: str
    value_date: str
    description: str
    credit: Money | None
    debit: Money | None
    detail: str = ""

    # Stored match annotation
    matched_document_id: str = ""
    match_confidence: MatchConfidence | None = None

    @property
    def effective_date(self) -> FinancialDate | None:
        """Transaction date, falling back to the value date when it does not parse."""
        return parse_regional_date(self.date) or parse_regional_date(self.value_date)

    @property
    def is_credit(self) -> bool:
        return self.credit is not None and not self.credit.is_zero()

    @property
    def is_debit(self) -> bool:
        return self.debit is not None and not self.debit.is_zero()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BankMovement":
        """Create BankMovement from a row dictionary."""
        return cls(
            row=_row(data),
            date=_text(data.get("date")),
            value_date=_text(data.get("value_date")),
            description=_text(data.get("description")),
            credit=_optional_money(data.get("credit")),
            debit=_optional_money(data.get("debit")),
            detail=_text(data.get("detail")),
            matched_document_id=_text(data.get("matched_document_id")),
            match_confidence=MatchConfidence.from_value(data.get("match_confidence")),
        )


@dataclass(frozen=True)
class Withholding:
    """Tax withheld by a client from one of our invoices (certificate received)."""

    file_id: str
    row: int
    issue_date: FinancialDate | None
    agent_tax_id: str
    agent_name: str
    amount: Money

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Withholding":
        """Create Withholding from a row dictionary."""
        return cls(
            file_id=_text(data.get("file_id")),
            row=_row(data),
            issue_date=parse_regional_date(data.get("issue_date")),
            agent_tax_id=_text(data.get("agent_tax_id")),
            agent_name=_text(data.get("agent_name")),
            amount=_money(data.get("amount")),
        )


@total_ordering
@dataclass(frozen=True)
class MatchQuality:
    """
    Comparable quality of a proposed pairing.

    Ordered by confidence tier, then identifier match, then date proximity
    (closer is better). A greater MatchQuality is a better match.
    """

    confidence: MatchConfidence
    identifier_match: bool
    date_proximity_days: int

    def _key(self) -> tuple[int, int, int]:
        return (self.confidence.rank, int(self.identifier_match), -self.date_proximity_days)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MatchQuality):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "MatchQuality") -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())


@dataclass(frozen=True)
class CrossCurrencyResult:
    """Outcome of comparing a foreign-currency amount with a local payment."""

    matches: bool
    is_cross_currency: bool
    rate: Any = None  # Decimal sell rate, when known
    expected_amount: Money | None = None
    cache_miss: bool = False


@dataclass
class MatchCandidate:
    """
    Proposed pairing produced by a matcher.

    Candidates are rebuilt on every search and never persisted; only the
    accepted one is written back as a match annotation.
    """

    target: Any  # Invoice, Receipt or Payment
    target_id: str
    target_row: int
    confidence: MatchConfidence
    identifier_match: bool
    date_proximity_days: int
    name_match: bool = False
    reasons: list[str] = field(default_factory=list)

    # Cross-currency details
    cross_currency: bool = False
    exchange_rate: Any = None
    expected_amount: Money | None = None

    # Set when the target already holds a stored match
    is_upgrade: bool = False
    existing_match_id: str = ""
    existing_confidence: MatchConfidence | None = None

    @property
    def quality(self) -> MatchQuality:
        return MatchQuality(
            confidence=self.confidence,
            identifier_match=self.identifier_match,
            date_proximity_days=self.date_proximity_days,
        )


@dataclass
class ProcessingResult:
    """
    Result of pushing a batch of row updates to the row store.

    Contains summary counts and the error text of each failed write.
    """

    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.total_processed == 0:
            return 0.0
        return (self.successful / self.total_processed) * 100

    def record(self, ok: bool, error: str | None = None) -> None:
        self.total_processed += 1
        if ok:
            self.successful += 1
        else:
            self.failed += 1
            if error:
                self.errors.append(error)
