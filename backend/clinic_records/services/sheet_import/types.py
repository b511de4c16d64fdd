from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Mapping

from pydantic import BaseModel, ConfigDict, Field

from clinic_records.services.sheet_import.headers import FIELD_ALIASES, canonicalize
from clinic_records.services.sheet_import.normalize import normalize_cell, parse_timestamp
from clinic_records.services.sheet_import.resolution import resolve_file_timestamp

RowRecord = dict[str, Any]


class EntityKind(str, enum.Enum):
    episode = "episode"
    closure = "closure"
    emergency_visit = "emergency_visit"
    procedure = "procedure"
    endoscopy = "endoscopy"


class ImportKind(str, enum.Enum):
    admissions = "admissions"
    discharges = "discharges"
    services = "services"


class RowState(str, enum.Enum):
    pending = "pending"
    validated = "validated"
    resolved = "resolved"
    matched = "matched"
    unmatched = "unmatched"
    written = "written"
    failed = "failed"


TERMINAL_STATES = frozenset({RowState.written, RowState.failed})


@dataclass(frozen=True)
class ParsedSheet:
    headers: list[str]
    rows: list[RowRecord]
    sheet_name: str | None = None


@dataclass(frozen=True)
class DuplicateRow:
    row_index: int
    first_index: int


@dataclass(frozen=True)
class RowFailure:
    row_index: int
    reason: str
    code: str = "unexpected"


@dataclass
class DedupeResult:
    unique: list[tuple[int, RowRecord]] = field(default_factory=list)
    duplicates: list[DuplicateRow] = field(default_factory=list)


@dataclass
class ImportResult:
    kind: str
    total_rows: int = 0
    inserted_counts: dict[str, int] = field(default_factory=dict)
    updated_counts: dict[str, int] = field(default_factory=dict)
    skipped_counts: dict[str, int] = field(default_factory=dict)
    failed: list[RowFailure] = field(default_factory=list)
    duplicates: list[DuplicateRow] = field(default_factory=list)

    @property
    def processed_rows(self) -> int:
        return self.total_rows - len(self.failed)

    def count_inserted(self, kind: EntityKind, amount: int = 1) -> None:
        _bump(self.inserted_counts, kind, amount)

    def count_updated(self, kind: EntityKind, amount: int = 1) -> None:
        _bump(self.updated_counts, kind, amount)

    def count_skipped(self, kind: EntityKind, amount: int = 1) -> None:
        _bump(self.skipped_counts, kind, amount)

    def as_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["processed_rows"] = self.processed_rows
        return data


@dataclass
class ImportPreview:
    kind: str
    headers: list[str]
    to_import: list[int] = field(default_factory=list)
    duplicates: list[DuplicateRow] = field(default_factory=list)
    errors: list[RowFailure] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def _bump(counts: dict[str, int], kind: EntityKind, amount: int) -> None:
    if amount <= 0:
        return
    key = kind.value
    counts[key] = counts.get(key, 0) + amount


def extra_fields(record: Mapping[str, Any]) -> dict[str, Any]:
    """Cells whose header has no canonical key, kept for display only."""
    return {
        label: value
        for label, value in record.items()
        if label not in FIELD_ALIASES and canonicalize(label) is None
    }


class SheetRow(BaseModel):
    """Typed view of one ``RowRecord`` read by canonical field key.

    Text fields hold ``normalize_cell`` output (empty string when absent).
    Fields listed in ``timestamp_fields`` are parsed; a present but
    unparseable value is recorded in ``unparseable``.
    """

    model_config = ConfigDict(frozen=True)

    timestamp_fields: ClassVar[tuple[str, ...]] = ()

    row_index: int
    extra: dict[str, Any] = Field(default_factory=dict)
    unparseable: tuple[str, ...] = ()

    @classmethod
    def from_record(cls, row_index: int, record: Mapping[str, Any]):
        values: dict[str, Any] = {}
        unparseable: list[str] = []
        for name in cls.model_fields:
            if name in SheetRow.model_fields:
                continue
            raw = record.get(name)
            if name in cls.timestamp_fields:
                parsed = parse_timestamp(raw)
                if parsed is None and normalize_cell(raw):
                    unparseable.append(name)
                values[name] = parsed
            else:
                values[name] = normalize_cell(raw)
        values.update(cls.derive(record, unparseable))
        return cls(
            row_index=row_index,
            extra=extra_fields(record),
            unparseable=tuple(unparseable),
            **values,
        )

    @classmethod
    def derive(cls, record: Mapping[str, Any], unparseable: list[str]) -> dict[str, Any]:
        return {}


class DemographicFields(SheetRow):
    unified_number: str = ""
    internal_number: str = ""
    patient_name: str = ""
    national_id: str = ""
    phone: str = ""
    gender: str = ""
    marital_status: str = ""
    age: str = ""
    occupation: str = ""
    governorate: str = ""
    district: str = ""
    station: str = ""
    address_details: str = ""


class AdmissionRow(DemographicFields):
    timestamp_fields: ClassVar[tuple[str, ...]] = ("created_at",)

    department: str = ""
    diagnosis: str = ""
    doctor: str = ""
    admission_status: str = ""
    admission_date: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def derive(cls, record: Mapping[str, Any], unparseable: list[str]) -> dict[str, Any]:
        admission_date, bad = resolve_file_timestamp(record, "admission_at")
        if bad:
            unparseable.append("admission_date")
        return {"admission_date": admission_date}


class DischargeRow(SheetRow):
    unified_number: str = ""
    internal_number: str = ""
    patient_name: str = ""
    national_id: str = ""
    phone: str = ""
    discharge_status: str = ""
    finance_source: str = ""
    discharge_department: str = ""
    discharge_diagnosis: str = ""
    secondary_diagnosis: str = ""
    discharge_doctor: str = ""
    hospital: str = ""
    child_national_id: str = ""
    admission_at: datetime | None = None
    discharge_at: datetime | None = None

    @classmethod
    def derive(cls, record: Mapping[str, Any], unparseable: list[str]) -> dict[str, Any]:
        admission_at, admission_bad = resolve_file_timestamp(record, "admission_at")
        discharge_at, discharge_bad = resolve_file_timestamp(record, "discharge_at")
        if admission_bad:
            unparseable.append("admission_at")
        if discharge_bad:
            unparseable.append("discharge_at")
        return {"admission_at": admission_at, "discharge_at": discharge_at}


class ServiceRow(DemographicFields):
    timestamp_fields: ClassVar[tuple[str, ...]] = ("event_date", "endoscopy_discharge_date")

    event_type: str = ""
    department: str = ""
    diagnosis: str = ""
    discharge_diagnosis: str = ""
    secondary_diagnosis: str = ""
    doctor: str = ""
    hospital: str = ""
    event_date: datetime | None = None
    procedure_type: str = ""
    procedure_status: str = ""
    transferred_from_department: str = ""
    endoscopy_discharge_date: datetime | None = None
    endoscopy_discharge_status: str = ""
    endoscopy_discharge_status_other: str = ""
