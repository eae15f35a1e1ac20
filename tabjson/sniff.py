"""
Delimiter and quote-policy inference.

The first data line (not the header) is sampled: every character that
directly follows a letter or digit and is not itself one is a delimiter
candidate. The most frequent candidate wins; ties go to the candidate
seen first. Whether fields are quoted is read off the header line.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .errors import EmptyInputError, NoDelimiterFoundError
from .rules import ENVELOPE_MARKER, QUOTE_CHAR


@dataclass(frozen=True)
class Dialect:
    delimiter: str
    quoted: bool = False


def strip_transport_envelope(lines: Sequence[str]) -> List[str]:
    """
    Drop a multipart form envelope around the payload.

    An envelope is recognised when both the first and the last line carry a
    boundary marker. The preamble (boundary + part headers) runs up to the
    first blank line; the closing boundary is discarded. Blank lines inside
    the payload are dropped too.
    """
    lines = list(lines)
    if not lines:
        return lines
    if ENVELOPE_MARKER not in lines[0] or ENVELOPE_MARKER not in lines[-1]:
        return lines

    content: List[str] = []
    in_payload = False
    for line in lines[:-1]:
        if not in_payload:
            if not line.strip():
                in_payload = True
            continue
        if line.strip():
            content.append(line)
    return content


def _count_candidates(sample: str) -> Dict[str, Tuple[int, int]]:
    # char -> (count, first-seen position)
    counts: Dict[str, Tuple[int, int]] = {}
    for i in range(len(sample) - 1):
        current, following = sample[i], sample[i + 1]
        if current.isalnum() and not following.isalnum():
            count, first_seen = counts.get(following, (0, i))
            counts[following] = (count + 1, first_seen)
    return counts


def sniff_dialect(lines: Sequence[str]) -> Dialect:
    if len(lines) < 2:
        raise EmptyInputError(
            "No data found in provided input: need a header line and at least one data line."
        )

    header, sample = lines[0], lines[1].replace(QUOTE_CHAR, "")
    counts = _count_candidates(sample)
    if not counts:
        raise NoDelimiterFoundError(
            f"No delimiter detected in sample line {sample!r}. Supply the delimiter explicitly."
        )

    # highest count first, earliest first-seen position breaks ties
    delimiter = min(counts, key=lambda c: (-counts[c][0], counts[c][1]))
    return Dialect(delimiter=delimiter, quoted=QUOTE_CHAR in header)
