from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterator, List

from .errors import DuplicateColumnError
from .table import Table


class DuplicateColumnPolicy(str, Enum):
    """
    What to do when two columns share a name.

    LAST_WRITE_WINS: the key keeps its first position and the last value.
    ERROR: refuse to project the table.
    SUFFIX: repeats become name_2, name_3, ... in column order.
    """
    LAST_WRITE_WINS = "last_write_wins"
    ERROR = "error"
    SUFFIX = "suffix"


def _suffixed(columns: List[str]) -> List[str]:
    keys: List[str] = []
    seen_counts: Dict[str, int] = {}
    taken = set(columns)
    for name in columns:
        if name not in seen_counts:
            seen_counts[name] = 1
            keys.append(name)
            continue
        n = seen_counts[name]
        candidate = name
        while candidate in taken:
            n += 1
            candidate = f"{name}_{n}"
        seen_counts[name] = n
        taken.add(candidate)
        keys.append(candidate)
    return keys


def output_keys(
    columns: List[str],
    policy: DuplicateColumnPolicy = DuplicateColumnPolicy.LAST_WRITE_WINS,
) -> List[str]:
    policy = DuplicateColumnPolicy(policy)
    if policy is DuplicateColumnPolicy.SUFFIX:
        return _suffixed(columns)

    if policy is DuplicateColumnPolicy.ERROR:
        seen = set()
        duplicates = []
        for name in columns:
            if name in seen and name not in duplicates:
                duplicates.append(name)
            seen.add(name)
        if duplicates:
            raise DuplicateColumnError(f"Duplicate column names: {duplicates}")
    return list(columns)


def project_rows(
    table: Table,
    duplicate_columns: DuplicateColumnPolicy = DuplicateColumnPolicy.LAST_WRITE_WINS,
) -> Iterator[Dict[str, Any]]:
    """
    Yield one ordered mapping per row, keyed by column name.

    Values are passed through untouched. Duplicate names are resolved once,
    before the first row is yielded.
    """
    keys = output_keys(table.columns, duplicate_columns)
    return (dict(zip(keys, row)) for row in table.rows)
