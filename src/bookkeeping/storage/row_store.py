#!/usr/bin/env python3
"""
Row Store

The storage collaborator the matchers read snapshots from and write match
annotations to. A store is a set of named sheets, each a list of rows; every
row carries a "row" handle used for targeted writes (header is row 1, so data
starts at row 2).

Reads raise StorageError. Writes return a WriteResult so a batch can carry on
past a single failed write.
"""

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from ..core.errors import StorageError
from ..core.json_utils import read_json, write_json

logger = logging.getLogger(__name__)

FIRST_DATA_ROW = 2

INVOICES_SHEET = "invoices"
PAYMENTS_SHEET = "payments"
RECEIPTS_SHEET = "receipts"
COLLECTIONS_SHEET = "collections"
MOVEMENTS_SHEET = "bank_movements"
ISSUED_INVOICES_SHEET = "issued_invoices"
INCOMING_PAYMENTS_SHEET = "incoming_payments"
WITHHOLDINGS_SHEET = "withholdings"


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a single row write."""

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> "WriteResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> "WriteResult":
        return cls(ok=False, error=error)


class RowStore(Protocol):
    """Snapshot reads and targeted row writes."""

    def read_rows(self, sheet: str) -> list[dict[str, Any]]:
        ...

    def update_row(self, sheet: str, row: int, values: dict[str, Any]) -> WriteResult:
        ...


def number_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Assign row handles to rows that do not have one yet."""
    numbered = []
    for index, row in enumerate(rows):
        row = dict(row)
        row.setdefault("row", index + FIRST_DATA_ROW)
        numbered.append(row)
    return numbered


class InMemoryRowStore:
    """Row store held in a dictionary of sheets."""

    def __init__(self, sheets: dict[str, list[dict[str, Any]]] | None = None):
        self.sheets: dict[str, list[dict[str, Any]]] = {
            name: number_rows(rows) for name, rows in (sheets or {}).items()
        }

    def read_rows(self, sheet: str) -> list[dict[str, Any]]:
        """
        Snapshot of a sheet's rows.

        Raises:
            StorageError: If the sheet does not exist
        """
        if sheet not in self.sheets:
            raise StorageError(f"Sheet not found: {sheet}", sheet=sheet)
        return copy.deepcopy(self.sheets[sheet])

    def update_row(self, sheet: str, row: int, values: dict[str, Any]) -> WriteResult:
        """Merge values into a row; fails if the sheet or row does not exist."""
        rows = self.sheets.get(sheet)
        if rows is None:
            return WriteResult.failure(f"Sheet not found: {sheet}")

        for existing in rows:
            if existing.get("row") == row:
                existing.update(values)
                return WriteResult.success()

        return WriteResult.failure(f"Row {row} not found in {sheet}")

    def replace_sheet(self, sheet: str, rows: list[dict[str, Any]]) -> None:
        self.sheets[sheet] = number_rows(rows)

    def sheet_names(self) -> list[str]:
        return sorted(self.sheets)


class JsonRowStore(InMemoryRowStore):
    """
    Row store persisted as one JSON file of {sheet: [rows]}.

    Every successful write is flushed to disk.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        sheets: dict[str, list[dict[str, Any]]] = {}

        if self.path.exists():
            try:
                data = read_json(self.path)
            except (OSError, ValueError) as e:
                raise StorageError(f"Failed to read row store {self.path}: {e}") from e
            if not isinstance(data, dict):
                raise StorageError(f"Row store {self.path} is not a JSON object of sheets")
            sheets = data

        super().__init__(sheets)

    def update_row(self, sheet: str, row: int, values: dict[str, Any]) -> WriteResult:
        result = super().update_row(sheet, row, values)
        if not result.ok:
            return result
        return self.save()

    def replace_sheet(self, sheet: str, rows: list[dict[str, Any]]) -> None:
        super().replace_sheet(sheet, rows)
        result = self.save()
        if not result.ok:
            raise StorageError(result.error or f"Failed to save {self.path}", sheet=sheet)

    def save(self) -> WriteResult:
        try:
            write_json(self.path, self.sheets)
        except OSError as e:
            logger.warning(f"Failed to save row store {self.path}: {e}")
            return WriteResult.failure(f"Failed to save row store: {e}")
        return WriteResult.success()
