"""
Deterministic conversion rules.

This file exists to make the fixed parts of the dialect explicit.
"""

TARGET_ENCODING = "utf-8"

# Spreadsheet rows are re-rendered with this dialect before tokenizing.
FLATTEN_DELIMITER = ","
QUOTE_CHAR = '"'

# Multipart form uploads start and end with a boundary line containing this run.
ENVELOPE_MARKER = "-----"

# Returned in place of a document when errors are suppressed.
EMPTY_DOCUMENT: list = []
