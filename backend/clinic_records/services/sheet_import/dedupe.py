from __future__ import annotations

from typing import Sequence

from clinic_records.services.sheet_import.normalize import normalize_cell
from clinic_records.services.sheet_import.types import DedupeResult, DuplicateRow, RowRecord

__all__ = ["KEY_SEPARATOR", "build_exact_row_key", "dedupe_exact_rows"]

KEY_SEPARATOR = "\x1f"


def build_exact_row_key(headers: Sequence[str], row: RowRecord) -> str:
    return KEY_SEPARATOR.join(normalize_cell(row.get(header)) for header in headers)


def dedupe_exact_rows(headers: Sequence[str], rows: Sequence[RowRecord]) -> DedupeResult:
    """Split rows into first occurrences and exact repeats.

    Keys use ``normalize_cell`` rather than match-normalization, so rows that
    differ only in diacritics or letter forms are both kept.
    """
    result = DedupeResult()
    first_seen: dict[str, int] = {}
    for index, row in enumerate(rows):
        key = build_exact_row_key(headers, row)
        first_index = first_seen.get(key)
        if first_index is None:
            first_seen[key] = index
            result.unique.append((index, row))
        else:
            result.duplicates.append(DuplicateRow(row_index=index, first_index=first_index))
    return result
