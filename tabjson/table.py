from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

import pandas as pd

from .errors import EmptyInputError, InvalidSourceError, MalformedRowError


@dataclass
class Table:
    """
    Column names plus positionally aligned rows.

    Works for:
    - delimited text (every cell a string)
    - spreadsheet sheets, after flattening
    - pandas DataFrames (cells keep their native type)
    """
    columns: List[str]
    rows: List[List[Any]] = field(default_factory=list)

    def __post_init__(self):
        rows, self.rows = self.rows, []
        for row in rows:
            self.append_row(row)

    @property
    def width(self) -> int:
        return len(self.columns)

    def append_row(self, row: Sequence[Any], line_number: Optional[int] = None) -> None:
        if len(row) != self.width:
            where = f"Row {line_number}" if line_number is not None else "Row"
            raise MalformedRowError(
                f"{where} has {len(row)} fields, expected {self.width} "
                f"to match the column count.",
                line_number=line_number,
                expected=self.width,
                actual=len(row),
            )
        self.rows.append(list(row))


def build_table(rows: Iterable[Sequence[Any]], has_header_line: bool = True) -> Table:
    """
    Assemble a Table from tokenized rows.

    With a header line the first row names the columns verbatim. Without
    one, columns are named by position ("0", "1", ...) and the first row is
    kept as data: it only also tells us how many columns there are.
    """
    iterator = iter(rows)
    first = next(iterator, None)
    if first is None:
        raise EmptyInputError("No rows found to build a table from.")

    if has_header_line:
        table = Table(columns=[str(name) for name in first])
    else:
        table = Table(columns=[str(i) for i in range(len(first))], rows=[first])

    for line_number, row in enumerate(iterator, start=2):
        table.append_row(row, line_number=line_number)
    return table


def table_from_dataframe(df: pd.DataFrame) -> Table:
    if not isinstance(df, pd.DataFrame):
        raise InvalidSourceError(
            f"Expected a pandas DataFrame, got {type(df).__name__}."
        )

    # object dtype unboxes numpy scalars; missing values become None
    values = df.astype(object).to_numpy(copy=True)
    values[df.isna().to_numpy()] = None
    return Table(
        columns=[str(c) for c in df.columns],
        rows=values.tolist(),
    )
