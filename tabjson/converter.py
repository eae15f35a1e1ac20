"""
Conversion entry points.

Flow:
Source → (decode | flatten) → Sniff → Tokenize → Build Table → Project rows

Every public method either raises the specific ConversionError, or, when
the converter was built with ignore_errors, logs it and returns the empty
document instead. There is no partial success: one bad row aborts the
whole conversion.
"""

from __future__ import annotations

import logging
import os
from typing import IO, Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .config import ConverterConfig
from .errors import ConversionError, EmptyInputError, InvalidSourceError
from .flatten import flatten_sheet, read_workbook
from .logger import RequestTimer, log_event
from .normalize import decode_bytes, text_to_lines
from .project import project_rows
from .rules import EMPTY_DOCUMENT, FLATTEN_DELIMITER, QUOTE_CHAR
from .sniff import Dialect, sniff_dialect, strip_transport_envelope
from .table import Table, build_table, table_from_dataframe
from .tokenize import tokenize_lines

Document = List[Dict[str, Any]]


def resolve_delimiter(delimiter: str) -> str:
    if delimiter == "\\t":
        return "\t"
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        raise InvalidSourceError(
            f"Delimiter must be a single character, got {delimiter!r}."
        )
    return delimiter


def _non_blank(lines: Sequence[str]) -> List[str]:
    return [line for line in lines if line.strip()]


class TabularConverter:
    """
    Converts delimited text, spreadsheets and DataFrames into lists of
    row dicts ready for JSON encoding.
    """

    def __init__(self, config: Optional[ConverterConfig] = None, **overrides: Any):
        config = config or ConverterConfig()
        if overrides:
            config = ConverterConfig(**{**config.model_dump(), **overrides})
        self.config = config

    # --------------------------------------------------
    # Error policy
    # --------------------------------------------------
    def _run(self, source: str, convert: Callable[[], Any], empty: Callable[[], Any]) -> Any:
        timer = RequestTimer()
        log_event("CONVERSION_STARTED", {"source": source})
        try:
            result = convert()
        except ConversionError as e:
            log_event("CONVERSION_FAILED", {
                "source": source,
                "error": type(e).__name__,
                "message": str(e),
                "duration_seconds": timer.duration(),
            }, level=logging.WARNING)
            if not self.config.ignore_errors:
                raise
            log_event("CONVERSION_SUPPRESSED", {"source": source, "error": type(e).__name__})
            return empty()

        documents = result if source == "workbook" else [result]
        log_event("CONVERSION_COMPLETED", {
            "source": source,
            "documents": len(documents),
            "rows": [len(doc) for doc in documents],
            "columns": [list(doc[0]) if doc else [] for doc in documents],
            "duration_seconds": timer.duration(),
        })
        return result

    def _single(self, source: str, convert: Callable[[], Document]) -> Document:
        return self._run(source, convert, lambda: list(EMPTY_DOCUMENT))

    # --------------------------------------------------
    # Pipeline
    # --------------------------------------------------
    def _dialect(
        self,
        lines: List[str],
        delimiter: Optional[str],
        quoted: Optional[bool],
        strip_envelope: bool,
    ) -> Tuple[List[str], Dialect]:
        if delimiter is not None:
            lines = _non_blank(lines)
            if len(lines) < 2:
                raise EmptyInputError(
                    "No data found in provided input: need a header line and at least one data line."
                )
            delimiter = resolve_delimiter(delimiter)
            if quoted and delimiter == QUOTE_CHAR:
                raise InvalidSourceError("The quote character cannot also be the delimiter.")
            return lines, Dialect(delimiter, bool(quoted))

        if strip_envelope:
            lines = strip_transport_envelope(lines)
        lines = _non_blank(lines)
        dialect = sniff_dialect(lines)
        if quoted is not None:
            dialect = Dialect(dialect.delimiter, quoted)
        log_event("DELIMITER_SNIFFED", {
            "delimiter": dialect.delimiter,
            "quoted": dialect.quoted,
        })
        return lines, dialect

    def _to_document(self, table: Table) -> Document:
        return list(project_rows(table, self.config.duplicate_columns))

    def _convert_lines(
        self,
        lines: Optional[Sequence[str]],
        delimiter: Optional[str],
        has_header_line: bool,
        quoted: Optional[bool],
    ) -> Document:
        if lines is None:
            raise InvalidSourceError("No lines provided, check the calling code and retry.")
        lines, dialect = self._dialect(list(lines), delimiter, quoted, strip_envelope=True)
        table = build_table(
            tokenize_lines(lines, dialect.delimiter, dialect.quoted),
            has_header_line=has_header_line,
        )
        return self._to_document(table)

    def _workbook(self, load: Callable[[], Union[bytes, str, os.PathLike]]) -> List[Document]:
        return self._run(
            "workbook",
            lambda: [self._convert_sheet(sheet.grid) for sheet in read_workbook(load())],
            lambda: [list(EMPTY_DOCUMENT)],
        )

    def _convert_sheet(self, grid: List[List[Any]]) -> Document:
        if not grid:
            return list(EMPTY_DOCUMENT)
        lines = flatten_sheet(grid)
        if self.config.sniff_flattened_sheets:
            lines, dialect = self._dialect(lines, None, None, strip_envelope=False)
        elif len(lines) < 2:
            raise EmptyInputError("Sheet has a header row but no data rows.")
        else:
            dialect = Dialect(FLATTEN_DELIMITER, quoted=True)
        table = build_table(tokenize_lines(lines, dialect.delimiter, dialect.quoted))
        return self._to_document(table)

    # --------------------------------------------------
    # Entry points
    # --------------------------------------------------
    def convert_delimited(
        self,
        lines: Sequence[str],
        delimiter: Optional[str] = None,
        has_header_line: bool = True,
        quoted: Optional[bool] = None,
    ) -> Document:
        """
        Convert delimited text lines to row dicts.

        Without a delimiter, one is sniffed from the first data line and
        quoting is enabled when the header line contains a double quote.
        With a delimiter, quoting is off unless `quoted` is passed.
        """
        return self._single(
            "delimited",
            lambda: self._convert_lines(lines, delimiter, has_header_line, quoted),
        )

    def convert_text(
        self,
        source: Union[str, bytes, IO[bytes]],
        delimiter: Optional[str] = None,
        has_header_line: bool = True,
        quoted: Optional[bool] = None,
    ) -> Document:
        """
        Convert text, raw bytes or a binary stream. Streams are read from the
        start, the way an uploaded file is handed over.
        """
        def convert() -> Document:
            if source is None:
                raise InvalidSourceError("No text provided, check the calling code and retry.")
            text = source
            if hasattr(source, "read"):
                if source.seekable():
                    source.seek(0)
                text = source.read()
            if isinstance(text, (bytes, bytearray)):
                text = decode_bytes(bytes(text))[0]
            return self._convert_lines(text_to_lines(text), delimiter, has_header_line, quoted)

        return self._single("text", convert)

    def convert_file(
        self,
        path: Union[str, os.PathLike],
        delimiter: Optional[str] = None,
        has_header_line: bool = True,
        quoted: Optional[bool] = None,
    ) -> Document:
        def convert() -> Document:
            raw = _read_bytes(path)
            text, _ = decode_bytes(raw)
            return self._convert_lines(text_to_lines(text), delimiter, has_header_line, quoted)

        return self._single("file", convert)

    def convert_tabular_object(self, table: Union[pd.DataFrame, Table]) -> Document:
        def convert() -> Document:
            if table is None:
                raise InvalidSourceError("No table provided, check the calling code and retry.")
            if isinstance(table, Table):
                return self._to_document(table)
            return self._to_document(table_from_dataframe(table))

        return self._single("tabular_object", convert)

    def convert_workbook(self, source: Union[bytes, str, os.PathLike]) -> List[Document]:
        """
        Convert every sheet of an .xlsx workbook, one document per sheet in
        sheet order. A failing sheet fails the whole workbook.
        """
        return self._workbook(lambda: source)

    def convert_workbook_file(self, path: Union[str, os.PathLike]) -> List[Document]:
        return self._workbook(lambda: _read_bytes(path))

    @staticmethod
    def flatten_sheet(cell_grid: Sequence[Sequence[Any]]) -> List[str]:
        return flatten_sheet(cell_grid)


def _read_bytes(path: Union[str, os.PathLike]) -> bytes:
    if path is None:
        raise InvalidSourceError("No path provided, check the calling code and retry.")
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError as e:
        raise InvalidSourceError(f"Could not find the provided file. Path given: {path}") from e
    except OSError as e:
        raise InvalidSourceError(f"Could not read the provided file. Path given: {path}: {e}") from e
