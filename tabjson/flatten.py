"""
Spreadsheet flattening.

Each sheet's used range is re-rendered as comma-delimited text with
RFC-4180 quoting, so spreadsheets go through the same tokenizer and
table builder as delimited text:

- cells containing a comma, a quote or a line break are wrapped in quotes
- quotes inside a wrapped cell are doubled
"""

from __future__ import annotations

import os
import zipfile
from dataclasses import dataclass
from datetime import date, datetime, time
from io import BytesIO
from typing import Any, List, Sequence, Union

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import InvalidSourceError
from .rules import FLATTEN_DELIMITER, QUOTE_CHAR


@dataclass(frozen=True)
class SheetGrid:
    name: str
    grid: List[List[Any]]


def cell_text(value: Any) -> str:
    """Displayable text for one cell value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        # Excel stores plain dates as midnight datetimes
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def quote_cell(text: str) -> str:
    if any(c in text for c in (FLATTEN_DELIMITER, QUOTE_CHAR, "\n", "\r")):
        doubled = text.replace(QUOTE_CHAR, QUOTE_CHAR * 2)
        return f"{QUOTE_CHAR}{doubled}{QUOTE_CHAR}"
    return text


def flatten_sheet(cell_grid: Sequence[Sequence[Any]]) -> List[str]:
    return [
        FLATTEN_DELIMITER.join(quote_cell(cell_text(value)) for value in row)
        for row in cell_grid
    ]


def read_workbook(source: Union[bytes, str, os.PathLike]) -> List[SheetGrid]:
    """
    Read every worksheet's used range, in workbook order.

    Cached formula results are used (data_only); a sheet with no values
    yields an empty grid.
    """
    if source is None:
        raise InvalidSourceError("No workbook provided.")

    target = BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    try:
        wb = load_workbook(filename=target, data_only=True)
    except FileNotFoundError as e:
        raise InvalidSourceError(f"Workbook not found: {source}") from e
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise InvalidSourceError(f"Could not read workbook: {e}") from e

    sheets: List[SheetGrid] = []
    for ws in wb.worksheets:
        rows = [
            list(row)
            for row in ws.iter_rows(
                min_row=ws.min_row,
                max_row=ws.max_row,
                min_col=ws.min_column,
                max_col=ws.max_column,
                values_only=True,
            )
        ]
        if all(value is None for row in rows for value in row):
            rows = []
        sheets.append(SheetGrid(name=str(ws.title), grid=rows))
    wb.close()
    return sheets
