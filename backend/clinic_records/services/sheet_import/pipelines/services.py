from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from clinic_records.services.sheet_import.errors import ReferenceMissError, RowValidationError
from clinic_records.services.sheet_import.normalize import normalize_for_match, parse_digits, parse_int
from clinic_records.services.sheet_import.pipelines.admissions import EPISODE_TABLE
from clinic_records.services.sheet_import.pipelines.base import (
    ReconciliationPipeline,
    RowWork,
    business_key,
    check_secondary_diagnosis,
    exact_digits,
)
from clinic_records.services.sheet_import.resolution import ANCILLARY_CHAINS, resolve_chain
from clinic_records.services.sheet_import.store import Row
from clinic_records.services.sheet_import.types import EntityKind, ImportKind, ServiceRow
from clinic_records.services.sheet_import.vocabulary import (
    EVENT_TYPES,
    GENDERS,
    MARITAL_STATUSES,
    PROCEDURE_TYPES,
    UNSUPPORTED_EVENT_TYPES,
    lookup_value,
)

PLACEHOLDER_NAME = "-"


@dataclass(frozen=True)
class VariantSpec:
    kind: EntityKind
    table: str
    timestamp_column: str
    # Columns, besides the unified number and the timestamp, that identify an
    # event when no internal number is given.
    match_columns: tuple[str, ...]
    # Columns that must be filled after snapshot back-fill.
    required_columns: tuple[str, ...]
    missing_reason: str
    extra_columns: Callable[["ServicesPipeline", RowWork], dict[str, Any]]


def _emergency_columns(pipeline: "ServicesPipeline", work: RowWork) -> dict[str, Any]:
    return {}


def _procedure_columns(pipeline: "ServicesPipeline", work: RowWork) -> dict[str, Any]:
    row: ServiceRow = work.row
    return {
        "procedure_type": work.values["procedure_type"],
        "procedure_status": row.procedure_status or None,
        "hospital_id": pipeline.context.resolve_reference("hospitals", row.hospital),
        "transferred_from_department_id": pipeline.context.resolve_reference(
            "departments", row.transferred_from_department
        ),
    }


def _endoscopy_columns(pipeline: "ServicesPipeline", work: RowWork) -> dict[str, Any]:
    row: ServiceRow = work.row
    values = work.values
    return {
        "discharge_date": row.endoscopy_discharge_date,
        "discharge_status": row.endoscopy_discharge_status or None,
        "discharge_status_other": row.endoscopy_discharge_status_other or None,
        "discharge_department_id": values["department_id"],
        "discharge_diagnosis_id": values["primary_diagnosis_id"],
        "discharge_doctor_id": values["doctor_id"],
    }


VARIANTS: dict[EntityKind, VariantSpec] = {
    EntityKind.emergency_visit: VariantSpec(
        kind=EntityKind.emergency_visit,
        table="emergencies",
        timestamp_column="visit_date",
        match_columns=(),
        required_columns=("national_id", "phone"),
        missing_reason="Emergency visit requires national id and phone",
        extra_columns=_emergency_columns,
    ),
    EntityKind.procedure: VariantSpec(
        kind=EntityKind.procedure,
        table="procedures",
        timestamp_column="procedure_date",
        match_columns=("procedure_type",),
        required_columns=("national_id", "phone", "gender", "marital_status", "age"),
        missing_reason=(
            "Procedure requires national id, phone, gender, marital status and age "
            "(check the patient has an earlier admission)"
        ),
        extra_columns=_procedure_columns,
    ),
    EntityKind.endoscopy: VariantSpec(
        kind=EntityKind.endoscopy,
        table="endoscopies",
        timestamp_column="procedure_date",
        match_columns=(),
        required_columns=(),
        missing_reason="",
        extra_columns=_endoscopy_columns,
    ),
}

_REFERENCE_FILE_VALUES = (
    ("occupation_id", "occupations", "occupation"),
    ("governorate_id", "governorates", "governorate"),
    ("district_id", "districts", "district"),
    ("station_id", "stations", "station"),
    ("department_id", "departments", "department"),
)


class ServicesPipeline(ReconciliationPipeline):
    """Logs ancillary events (emergency visits, procedures, endoscopies).

    Thin rows borrow demographics from the patient's most recent episode.
    An event matches on its internal number when one is given, else on the
    unified number, the event time and, for procedures, the procedure type.
    """

    kind = ImportKind.services
    row_model = ServiceRow

    def validate(self, work: RowWork) -> None:
        row: ServiceRow = work.row
        unified_number = business_key(row)
        event_key = normalize_for_match(row.event_type)
        if event_key in UNSUPPORTED_EVENT_TYPES:
            raise RowValidationError(f"Unsupported event type: {row.event_type}")
        kind = EVENT_TYPES.get(event_key)
        if kind is None:
            if not event_key:
                raise RowValidationError("Missing event type")
            raise RowValidationError(f"Unknown event type: {row.event_type}")
        variant = VARIANTS[kind]
        if row.event_date is None:
            raise RowValidationError("Invalid or missing event date")

        work.variant = variant
        work.values = {
            "unified_number": unified_number,
            "internal_number": parse_digits(row.internal_number),
            variant.timestamp_column: row.event_date,
        }
        if kind is EntityKind.procedure:
            procedure_type = lookup_value(PROCEDURE_TYPES, row.procedure_type)
            if procedure_type is None:
                raise RowValidationError("Unknown or missing procedure type")
            work.values["procedure_type"] = procedure_type
        if kind is EntityKind.endoscopy and "endoscopy_discharge_date" in row.unparseable:
            raise RowValidationError("Invalid endoscopy discharge date")

    def resolve(self, work: RowWork) -> None:
        row: ServiceRow = work.row
        variant: VariantSpec = work.variant
        values = work.values
        snapshot = self._snapshot(values["unified_number"])

        file_values: dict[str, Any] = {
            "patient_name": row.patient_name,
            "national_id": exact_digits(row.national_id, self.settings.import_national_id_length),
            "phone": exact_digits(row.phone, self.settings.import_phone_length),
            "age": parse_int(row.age),
            "gender": lookup_value(GENDERS, row.gender),
            "marital_status": lookup_value(MARITAL_STATUSES, row.marital_status),
            "address_details": row.address_details,
        }
        for column, table, attr in _REFERENCE_FILE_VALUES:
            file_values[column] = self.context.resolve_reference(table, getattr(row, attr))

        for column, chain in ANCILLARY_CHAINS.items():
            values[column] = resolve_chain(
                chain,
                file_value=file_values.get(column),
                snapshot=snapshot,
                default=PLACEHOLDER_NAME if column == "patient_name" else None,
            )

        if values["department_id"] is None:
            raise ReferenceMissError("Missing department")
        if any(values.get(column) is None for column in variant.required_columns):
            raise RowValidationError(variant.missing_reason)

        values["diagnosis_id"] = self.context.resolve_reference("diagnoses", row.diagnosis)
        values["primary_diagnosis_id"] = (
            self.context.resolve_reference("diagnoses", row.discharge_diagnosis) or values["diagnosis_id"]
        )
        values["secondary_diagnosis_id"] = self.context.resolve_reference("diagnoses", row.secondary_diagnosis)
        values["doctor_id"] = self.context.resolve_reference("doctors", row.doctor)

    def check_invariants(self, work: RowWork) -> None:
        row: ServiceRow = work.row
        check_secondary_diagnosis(
            row.discharge_diagnosis or row.diagnosis,
            row.secondary_diagnosis,
            work.values.get("primary_diagnosis_id"),
            work.values.get("secondary_diagnosis_id"),
        )

    def locate(self, work: RowWork) -> Row | None:
        variant: VariantSpec = work.variant
        values = work.values
        filters: dict[str, Any] = {"unified_number": values["unified_number"]}
        if values["internal_number"] is not None:
            filters["internal_number"] = values["internal_number"]
        else:
            filters[variant.timestamp_column] = values[variant.timestamp_column]
            for column in variant.match_columns:
                filters[column] = values[column]
        rows = self.store.select_where(variant.table, filters, order_by=("-created_at",), limit=1)
        return rows[0] if rows else None

    def apply_match(self, work: RowWork) -> None:
        variant: VariantSpec = work.variant
        self.patch_existing(variant.kind, variant.table, work.existing, self._payload(work))
        self.written(work)

    def apply_insert(self, work: RowWork) -> None:
        variant: VariantSpec = work.variant
        values = work.values
        if values["internal_number"] is not None:
            self.claim(work, variant.kind, values["unified_number"], values["internal_number"])
        else:
            self.claim(
                work,
                variant.kind,
                values["unified_number"],
                values[variant.timestamp_column],
                *(values[column] for column in variant.match_columns),
            )
        self.enqueue(work, variant.kind, variant.table, self._payload(work))

    def _payload(self, work: RowWork) -> dict[str, Any]:
        variant: VariantSpec = work.variant
        values = work.values
        payload = {
            column: values[column]
            for column in (
                "unified_number",
                "internal_number",
                variant.timestamp_column,
                *ANCILLARY_CHAINS,
                "diagnosis_id",
                "secondary_diagnosis_id",
                "doctor_id",
            )
        }
        payload.update(variant.extra_columns(self, work))
        return payload

    def _snapshot(self, unified_number: str) -> Row | None:
        rows = self.store.select_where(
            EPISODE_TABLE, {"unified_number": unified_number}, order_by=("-created_at",), limit=1
        )
        return rows[0] if rows else None
