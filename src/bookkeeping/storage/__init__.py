"""
Storage Package

Row store interface, in-memory and JSON-file stores, and CSV import.
"""

from .loader import load_csv_rows
from .row_store import InMemoryRowStore, JsonRowStore, RowStore, WriteResult

__all__ = [
    "InMemoryRowStore",
    "JsonRowStore",
    "RowStore",
    "WriteResult",
    "load_csv_rows",
]
