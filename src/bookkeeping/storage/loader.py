#!/usr/bin/env python3
"""
CSV Sheet Loader

Imports a CSV export of one sheet into row dictionaries. Cells are kept as
text so amounts in Argentine notation ("1.234,56") and DD/MM/YYYY dates reach
the document parsers untouched.
"""

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from ..core.errors import StorageError
from .row_store import FIRST_DATA_ROW

logger = logging.getLogger(__name__)


def load_csv_rows(path: str | Path) -> list[dict[str, Any]]:
    """
    Load a CSV sheet export as row dictionaries.

    Column headers become keys (stripped), empty cells become None, and rows
    are numbered from 2 because the header occupies row 1.

    Args:
        path: CSV file path

    Returns:
        List of row dictionaries with a "row" handle

    Raises:
        StorageError: If the file is missing or cannot be parsed
    """
    path = Path(path)
    if not path.exists():
        raise StorageError(f"CSV file not found: {path}")

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise StorageError(f"Failed to load {path}: {e}") from e

    df.columns = [str(column).strip() for column in df.columns]

    rows: list[dict[str, Any]] = []
    for index, record in enumerate(df.to_dict(orient="records")):
        row = {key: (value.strip() or None) if isinstance(value, str) else value for key, value in record.items()}
        row["row"] = index + FIRST_DATA_ROW
        rows.append(row)

    logger.info(f"Loaded {len(rows)} rows from {path.name}")
    return rows
