"""
Bookkeeping Reconciliation - Document Matching Engine

Links the documents of a small firm's books to each other: supplier invoices
and salary receipts to the payments that settled them, bank credit movements
to expected collections, and credit notes to the invoices they cancel.

Domain Packages:
- core: Money, dates, tax identifiers, document models, configuration
- rates: Historical USD/ARS exchange rates
- matching: Invoice and receipt matchers, credit notes, match displacement
- bank: Bank movement reconciliation against collections
- storage: Row store collaborator and CSV import
- cli: Command-line interface

Example Usage:
    from bookkeeping.matching import DisplacementController, InvoiceMatcher
    from bookkeeping.storage import JsonRowStore
"""

__version__ = "0.3.0"

from .core.config import Environment, get_config
from .core.models import Invoice, MatchConfidence, Payment, Receipt
from .core.money import Money

__all__ = [
    # Core models
    "Invoice",
    "MatchConfidence",
    "Money",
    "Payment",
    "Receipt",
    # Configuration
    "Environment",
    "get_config",
]
