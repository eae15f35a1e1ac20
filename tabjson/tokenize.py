from __future__ import annotations

import csv
from typing import Iterable, Iterator, List, Optional

from .errors import MalformedRowError
from .rules import QUOTE_CHAR


def _reader_options(delimiter: str, quoted: bool) -> dict:
    return {
        "delimiter": delimiter,
        "quotechar": QUOTE_CHAR if quoted else None,
        "doublequote": True,
        "quoting": csv.QUOTE_MINIMAL if quoted else csv.QUOTE_NONE,
        "strict": True,
    }


def tokenize_line(
    line: str,
    delimiter: str,
    quoted: bool = False,
    line_number: Optional[int] = None,
) -> List[str]:
    """
    Split one line into fields.

    With quoting on, a field wrapped in double quotes may contain the
    delimiter and doubled quotes as literal text.
    """
    if line == "":
        # one empty field, as a single-column row with a blank cell renders
        return [""]
    where = f" at line {line_number}" if line_number is not None else ""
    try:
        fields = next(csv.reader([line], **_reader_options(delimiter, quoted)), [])
    except csv.Error as e:
        raise MalformedRowError(
            f"Malformed quoting{where}: {e}", line_number=line_number
        ) from e
    return fields


def tokenize_lines(
    lines: Iterable[str], delimiter: str, quoted: bool = False
) -> Iterator[List[str]]:
    for i, line in enumerate(lines, start=1):
        yield tokenize_line(line, delimiter, quoted, line_number=i)
