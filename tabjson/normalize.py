"""
Byte decoding for delimited text.

Responsibilities:
- encoding detection + decoding
- newline normalization
- splitting into lines for the sniffer and tokenizer
"""

from __future__ import annotations

import hashlib
from typing import Any, Dict, List, Tuple

from charset_normalizer import from_bytes

from .rules import TARGET_ENCODING


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def decode_bytes(raw: bytes) -> Tuple[str, Dict[str, Any]]:
    """
    Decode input bytes to text with LF newlines.

    Rules:
    - Detect encoding best-effort via charset-normalizer.
    - A UTF-8 BOM is consumed, never kept as part of the first header.
    - If decoding with the detected encoding fails, try UTF-8, then fall
      back to UTF-8 with replacement characters and report it.
    """
    detected = None
    match = from_bytes(raw).best()
    if match is not None:
        detected = match.encoding

    decode_used = detected or TARGET_ENCODING
    if raw.startswith(b"\xef\xbb\xbf") and (decode_used.lower().replace("-", "_") in ("utf_8", "utf8")):
        decode_used = "utf-8-sig"

    decode_fallback = False
    try:
        text = raw.decode(decode_used)
    except (UnicodeDecodeError, LookupError):
        decode_fallback = True
        try:
            text = raw.decode(TARGET_ENCODING)
            decode_used = TARGET_ENCODING
        except UnicodeDecodeError:
            # Last resort: decode with replacement so the conversion stays deterministic
            text = raw.decode(TARGET_ENCODING, errors="replace")
            decode_used = TARGET_ENCODING

    newlines = {
        "crlf": text.count("\r\n"),
        "cr": text.count("\r") - text.count("\r\n"),
        "lf": text.count("\n") - text.count("\r\n"),
    }
    text = text.replace("\r\n", "\n").replace("\r", "\n")

    report = {
        "sha256": _sha256_hex(raw),
        "detected": detected,
        "decode_used": decode_used,
        "decode_fallback": decode_fallback,
        "newlines": newlines,
    }
    return text, report


def text_to_lines(text: str) -> List[str]:
    text = text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    lines = text.split("\n")
    # a final newline terminates the last line, it does not open a new one
    if lines and lines[-1] == "":
        lines.pop()
    return lines
