from __future__ import annotations

import io
import math
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..models.import_row import ImportRow

"""Spreadsheet decoder for the bulk agent import.

The first sheet's first row is the header; header cell text becomes the column
key exactly as written (no case folding, no trimming). Every following
non-empty row becomes an ImportRow whose row_number is the spreadsheet row
(header = 1). Blank cells are left out of the row instead of being mapped to an
empty string.

Cells are kept as text: the validator works on raw strings, so numbers typed
into the sheet (mobile numbers, pin codes) come back without a trailing ``.0``
and dates come back as ISO text.
"""

__all__ = [
    "MalformedWorkbookError",
    "decode_workbook",
    "read_first_sheet",
]


class MalformedWorkbookError(Exception):
    """Raised when the upload cannot be parsed as a workbook or has no header row."""


def read_first_sheet(buffer: bytes) -> pd.DataFrame:
    """Read the first sheet of a workbook buffer without header inference.

    ``keep_default_na=False`` keeps literal texts such as ``NA`` or ``None``
    as values; only truly empty cells become NaN.
    """
    if not buffer:
        raise MalformedWorkbookError("workbook is empty")
    try:
        xls = pd.ExcelFile(io.BytesIO(buffer))
        if not xls.sheet_names:
            raise MalformedWorkbookError("workbook has no sheets")
        return xls.parse(xls.sheet_names[0], header=None, dtype=object, keep_default_na=False)
    except MalformedWorkbookError:
        raise
    except Exception as e:
        raise MalformedWorkbookError(f"cannot read workbook: {e}") from e


def _cell_text(value: Any) -> str | None:
    """Convert one cell to its raw text, or None when the cell is blank."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (datetime, pd.Timestamp)):
        if pd.isna(value):
            return None
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value)
    if text.strip() == "":
        return None
    return text


def decode_workbook(buffer: bytes) -> list[ImportRow]:
    """Decode a workbook buffer into ordered ImportRows.

    Raises:
        MalformedWorkbookError: unparsable buffer, or no header row
    """
    df = read_first_sheet(buffer)
    if df.shape[0] == 0:
        raise MalformedWorkbookError("workbook has no header row")

    header: list[str | None] = [_cell_text(c) for c in df.iloc[0].tolist()]
    if not any(h is not None for h in header):
        raise MalformedWorkbookError("workbook has no header row")

    rows: list[ImportRow] = []
    for position in range(1, df.shape[0]):
        values: dict[str, str] = {}
        for column, raw in zip(header, df.iloc[position].tolist(), strict=False):
            if column is None:
                continue  # unnamed column
            text = _cell_text(raw)
            if text is not None:
                values[column] = text
        if not values:
            continue  # fully blank row
        rows.append(ImportRow(row_number=position + 1, values=values))
    return rows
