"""Field resolution chains.

Every field a pipeline writes is resolved through an ordered chain of
sources. The first source yielding a non-blank value wins:

- ``file``: the value read (and resolved) from the imported row;
- ``snapshot``: the same column on the most recent stored episode for the
  row's business key;
- ``default``: a run-level default held by the ReconciliationContext.

The tables below are the single place where that precedence is declared.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from clinic_records.services.sheet_import.headers import FieldKey
from clinic_records.services.sheet_import.normalize import (
    combine_date_time,
    normalize_cell,
    parse_timestamp,
)


class Source(str, enum.Enum):
    file = "file"
    snapshot = "snapshot"
    default = "default"


@dataclass(frozen=True)
class FieldChain:
    column: str
    sources: tuple[Source, ...]


FILE = Source.file
SNAPSHOT = Source.snapshot
DEFAULT = Source.default


def _chains(*chains: FieldChain) -> dict[str, FieldChain]:
    return {chain.column: chain for chain in chains}


# New episodes (admissions pipeline, and episodes created by the discharges
# pipeline). The department is critical: a missing or unknown name falls back
# to the default department.
EPISODE_CHAINS = _chains(
    FieldChain("department_id", (FILE, DEFAULT)),
)

# Ancillary events borrow demographics from the latest episode when the row
# is thin. The patient name placeholder is the last resort.
ANCILLARY_CHAINS = _chains(
    FieldChain("patient_name", (FILE, SNAPSHOT, DEFAULT)),
    FieldChain("national_id", (FILE, SNAPSHOT)),
    FieldChain("phone", (FILE, SNAPSHOT)),
    FieldChain("age", (FILE, SNAPSHOT)),
    FieldChain("gender", (FILE, SNAPSHOT)),
    FieldChain("marital_status", (FILE, SNAPSHOT)),
    FieldChain("occupation_id", (FILE, SNAPSHOT)),
    FieldChain("governorate_id", (FILE, SNAPSHOT)),
    FieldChain("district_id", (FILE, SNAPSHOT)),
    FieldChain("station_id", (FILE, SNAPSHOT)),
    FieldChain("address_details", (FILE, SNAPSHOT)),
    FieldChain("department_id", (FILE, SNAPSHOT)),
)

# Timestamp columns that a file may provide combined or split in two.
FILE_TIMESTAMP_CHAINS: dict[str, tuple[tuple[str, ...], ...]] = {
    "admission_at": (
        (FieldKey.admission_date,),
        (FieldKey.admission_day, FieldKey.admission_time),
    ),
    "discharge_at": (
        (FieldKey.discharge_date,),
        (FieldKey.discharge_day, FieldKey.discharge_time),
    ),
}


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def resolve_chain(
    chain: FieldChain,
    *,
    file_value: Any = None,
    snapshot: Mapping[str, Any] | None = None,
    default: Any = None,
) -> Any:
    for source in chain.sources:
        if source is Source.file:
            candidate = file_value
        elif source is Source.snapshot:
            candidate = snapshot.get(chain.column) if snapshot else None
        else:
            candidate = default
        if not is_blank(candidate):
            return candidate
    return None


def resolve_file_timestamp(record: Mapping[str, Any], name: str) -> tuple[datetime | None, bool]:
    """Resolve a timestamp from the file columns declared for ``name``.

    Returns ``(value, unparseable)`` where ``unparseable`` is true when a
    column was filled in but no step produced a timestamp.
    """
    present = False
    for step in FILE_TIMESTAMP_CHAINS[name]:
        first = record.get(step[0])
        if not normalize_cell(first):
            continue
        present = True
        if len(step) == 1:
            parsed = parse_timestamp(first)
        else:
            parsed = combine_date_time(first, record.get(step[1]))
        if parsed is not None:
            return parsed, False
    return None, present
