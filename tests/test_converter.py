from io import BytesIO

import pandas as pd
import pytest
from openpyxl import Workbook
from pydantic import ValidationError

from tabjson import converter as converter_module
from tabjson.config import ConverterConfig, ConverterSettings
from tabjson.converter import TabularConverter
from tabjson.errors import (
    DuplicateColumnError,
    EmptyInputError,
    InvalidSourceError,
    MalformedRowError,
    NoDelimiterFoundError,
)
from tabjson.project import DuplicateColumnPolicy
from tabjson.table import Table


@pytest.fixture
def events(monkeypatch):
    recorded = []
    monkeypatch.setattr(
        converter_module, "log_event", lambda event_type, payload, **kw: recorded.append((event_type, payload))
    )
    return recorded


def _xlsx_bytes(*sheets):
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets:
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    out = BytesIO()
    wb.save(out)
    return out.getvalue()


# --------------------------------------------------
# Delimited text
# --------------------------------------------------
def test_semicolon_sniffed():
    assert TabularConverter().convert_delimited(["a;b;c", "1;2;3"]) == [{"a": "1", "b": "2", "c": "3"}]


def test_headerless_keeps_first_row():
    out = TabularConverter().convert_delimited(["x,y", "10,20"], delimiter=",", has_header_line=False)
    assert out == [{"0": "x", "1": "y"}, {"0": "10", "1": "20"}]


def test_short_data_row_is_malformed():
    with pytest.raises(MalformedRowError):
        TabularConverter().convert_delimited(["a,b,c", "1,2,3", "4,5"])


def test_output_keys_match_header_for_every_row():
    lines = ["id|name|city", "1|Ann|Oslo", "2|Bo|Lima", "3|Cy|Rome"]
    out = TabularConverter().convert_delimited(lines, delimiter="|")
    assert len(out) == 3
    assert all(list(row) == ["id", "name", "city"] for row in out)


def test_exactly_two_lines_succeeds():
    assert TabularConverter().convert_delimited(["a", "1"], delimiter=",") == [{"a": "1"}]


@pytest.mark.parametrize("lines", [[], ["a,b"]])
def test_fewer_than_two_lines(lines):
    with pytest.raises(EmptyInputError):
        TabularConverter().convert_delimited(lines)
    with pytest.raises(EmptyInputError):
        TabularConverter().convert_delimited(lines, delimiter=",")


def test_blank_lines_are_skipped():
    out = TabularConverter().convert_delimited(["a,b", "", "1,2", "   ", "3,4"])
    assert out == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}]


def test_quoted_header_enables_quote_parsing():
    lines = ['"name","quote"', '"Ann","He said ""hi"", ok"']
    out = TabularConverter().convert_delimited(lines)
    assert out == [{"name": "Ann", "quote": 'He said "hi", ok'}]


def test_supplied_delimiter_defaults_to_no_quoting():
    out = TabularConverter().convert_delimited(['a,b', '"x",y'], delimiter=",")
    assert out == [{"a": '"x"', "b": "y"}]
    out = TabularConverter().convert_delimited(['a,b', '"x",y'], delimiter=",", quoted=True)
    assert out == [{"a": "x", "b": "y"}]


def test_escaped_tab_delimiter():
    out = TabularConverter().convert_delimited(["a\tb", "1\t2"], delimiter="\\t")
    assert out == [{"a": "1", "b": "2"}]


def test_multi_character_delimiter_is_rejected():
    with pytest.raises(InvalidSourceError):
        TabularConverter().convert_delimited(["a::b", "1::2"], delimiter="::")


def test_no_delimiter_found():
    with pytest.raises(NoDelimiterFoundError):
        TabularConverter().convert_delimited(["value", "42"])


def test_none_lines():
    with pytest.raises(InvalidSourceError):
        TabularConverter().convert_delimited(None)


def test_multipart_envelope_is_removed_before_sniffing():
    text = (
        "------boundary123\r\n"
        'Content-Disposition: form-data; name="file"; filename="a.csv"\r\n'
        "\r\n"
        "a;b\r\n"
        "1;2\r\n"
        "------boundary123--\r\n"
    )
    assert TabularConverter().convert_text(text) == [{"a": "1", "b": "2"}]


def test_convert_text_decodes_bytes_with_bom():
    raw = "name,city\nPaul,Montréal\n".encode("utf-8-sig")
    assert TabularConverter().convert_text(raw) == [{"name": "Paul", "city": "Montréal"}]


def test_convert_file(tmp_path):
    path = tmp_path / "data.csv"
    path.write_bytes(b"a,b\r\n1,2\r\n")
    assert TabularConverter().convert_file(path) == [{"a": "1", "b": "2"}]


def test_convert_missing_file():
    with pytest.raises(InvalidSourceError):
        TabularConverter().convert_file("/nonexistent/data.csv")


# --------------------------------------------------
# Error suppression
# --------------------------------------------------
def test_ignore_errors_returns_empty_document(events):
    converter = TabularConverter(ignore_errors=True)
    assert converter.convert_delimited(["only"]) == []
    assert converter.convert_delimited(["a,b,c", "1,2"]) == []
    assert converter.convert_delimited(None) == []
    assert converter.convert_workbook(b"garbage") == [[]]
    suppressed = [p for e, p in events if e == "CONVERSION_SUPPRESSED"]
    assert [p["error"] for p in suppressed] == [
        "EmptyInputError",
        "MalformedRowError",
        "InvalidSourceError",
        "InvalidSourceError",
    ]


def test_errors_propagate_by_default(events):
    with pytest.raises(MalformedRowError):
        TabularConverter().convert_delimited(["a,b,c", "1,2"])
    assert "CONVERSION_FAILED" in [e for e, _ in events]
    assert "CONVERSION_SUPPRESSED" not in [e for e, _ in events]


def test_sniffed_dialect_is_logged(events):
    TabularConverter().convert_delimited(["a;b", "1;2"])
    assert ("DELIMITER_SNIFFED", {"delimiter": ";", "quoted": False}) in events


def test_config_is_fixed_per_instance():
    base = ConverterConfig(duplicate_columns=DuplicateColumnPolicy.SUFFIX)
    converter = TabularConverter(base, ignore_errors=True)
    assert converter.config.ignore_errors is True
    assert converter.config.duplicate_columns is DuplicateColumnPolicy.SUFFIX
    assert base.ignore_errors is False


# --------------------------------------------------
# Duplicate columns
# --------------------------------------------------
def test_duplicate_columns_last_write_wins_by_default():
    out = TabularConverter().convert_delimited(["a,a", "1,2"])
    assert out == [{"a": "2"}]


def test_duplicate_columns_error_policy():
    converter = TabularConverter(duplicate_columns="error")
    with pytest.raises(DuplicateColumnError):
        converter.convert_delimited(["a,a", "1,2"])


def test_duplicate_columns_suffix_policy():
    converter = TabularConverter(duplicate_columns=DuplicateColumnPolicy.SUFFIX)
    assert converter.convert_delimited(["a,a", "1,2"]) == [{"a": "1", "a_2": "2"}]


# --------------------------------------------------
# Tabular objects
# --------------------------------------------------
def test_convert_dataframe_keeps_types():
    df = pd.DataFrame({"ID": [1, 2, 3], "Name": ["John Doe", "Jane Smith", "Timothy James"], "Age": [30, 25, 40]})
    out = TabularConverter().convert_tabular_object(df)
    assert out[0] == {"ID": 1, "Name": "John Doe", "Age": 30}
    assert len(out) == 3


def test_convert_table_object():
    table = Table(columns=["a"], rows=[[1], [None]])
    assert TabularConverter().convert_tabular_object(table) == [{"a": 1}, {"a": None}]


def test_convert_tabular_object_rejects_other_types():
    with pytest.raises(InvalidSourceError):
        TabularConverter().convert_tabular_object({"a": [1]})
    with pytest.raises(InvalidSourceError):
        TabularConverter().convert_tabular_object(None)


# --------------------------------------------------
# Workbooks
# --------------------------------------------------
def test_workbook_sheets_convert_in_order():
    raw = _xlsx_bytes(
        ("One", [["name", "note"], ["Ann", 'He said "hi", ok']]),
        ("Two", [["n"], [1], [2]]),
    )
    docs = TabularConverter().convert_workbook(raw)
    assert docs == [
        [{"name": "Ann", "note": 'He said "hi", ok'}],
        [{"n": "1"}, {"n": "2"}],
    ]


def test_workbook_quoted_cell_without_quoted_header():
    raw = _xlsx_bytes(("S", [["a", "b"], ["x,y", "z"]]))
    assert TabularConverter().convert_workbook(raw) == [[{"a": "x,y", "b": "z"}]]


def test_workbook_blank_sheet_yields_empty_document():
    raw = _xlsx_bytes(("Data", [["a"], ["1"]]), ("Blank", []))
    assert TabularConverter().convert_workbook(raw) == [[{"a": "1"}], []]


def test_workbook_sheet_with_header_only_fails():
    raw = _xlsx_bytes(("Data", [["a", "b"]]))
    with pytest.raises(EmptyInputError):
        TabularConverter().convert_workbook(raw)


def test_workbook_sheets_can_be_sniffed():
    raw = _xlsx_bytes(("S", [["a", "b"], ["1", "2"]]))
    converter = TabularConverter(sniff_flattened_sheets=True)
    assert converter.convert_workbook(raw) == [[{"a": "1", "b": "2"}]]


def test_convert_workbook_file(tmp_path):
    path = tmp_path / "book.xlsx"
    path.write_bytes(_xlsx_bytes(("S", [["k"], ["v"]])))
    assert TabularConverter().convert_workbook_file(path) == [[{"k": "v"}]]


def test_flatten_sheet_entry_point():
    assert TabularConverter.flatten_sheet([["a", 'b"c'], [1, None]]) == ['a,"b""c"', "1,"]


def test_quote_char_cannot_be_quoted_delimiter():
    with pytest.raises(InvalidSourceError):
        TabularConverter().convert_delimited(['a"b', '1"2'], delimiter='"', quoted=True)


# --------------------------------------------------
# Environment settings
# --------------------------------------------------
def test_settings_defaults(monkeypatch):
    for name in ("TABJSON_IGNORE_ERRORS", "TABJSON_DUPLICATE_COLUMNS", "TABJSON_SNIFF_SHEETS"):
        monkeypatch.delenv(name, raising=False)
    assert ConverterSettings().to_config() == ConverterConfig()


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("TABJSON_IGNORE_ERRORS", "true")
    monkeypatch.setenv("TABJSON_DUPLICATE_COLUMNS", "suffix")
    monkeypatch.setenv("TABJSON_SNIFF_SHEETS", "1")
    config = ConverterSettings().to_config()
    assert config.ignore_errors is True
    assert config.duplicate_columns is DuplicateColumnPolicy.SUFFIX
    assert config.sniff_flattened_sheets is True


@pytest.mark.parametrize(
    "name, value",
    [
        ("TABJSON_IGNORE_ERRORS", "ture"),
        ("TABJSON_DUPLICATE_COLUMNS", "first_wins"),
        ("TABJSON_SNIFF_SHEETS", "maybe"),
    ],
)
def test_settings_reject_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        ConverterSettings()


def test_config_does_not_read_environment(monkeypatch):
    monkeypatch.setenv("TABJSON_IGNORE_ERRORS", "true")
    assert TabularConverter().config.ignore_errors is False


# --------------------------------------------------
# Streams, line breaks in cells, completion events
# --------------------------------------------------
def test_convert_text_reads_binary_stream():
    stream = BytesIO(b"a;b\n1;2\n")
    stream.read()
    assert TabularConverter().convert_text(stream) == [{"a": "1", "b": "2"}]


def test_workbook_cell_with_line_break():
    raw = _xlsx_bytes(("S", [["name", "address"], ["Ann", "1 Main St\nOslo"]]))
    assert TabularConverter().convert_workbook(raw) == [[{"name": "Ann", "address": "1 Main St\nOslo"}]]


def test_completed_event_reports_rows_and_columns(events):
    TabularConverter().convert_delimited(["a;b", "1;2", "3;4"])
    (payload,) = [p for e, p in events if e == "CONVERSION_COMPLETED"]
    assert payload["documents"] == 1
    assert payload["rows"] == [2]
    assert payload["columns"] == [["a", "b"]]
