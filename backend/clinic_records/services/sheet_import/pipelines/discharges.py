from __future__ import annotations

from typing import Any

from clinic_records.models import AdmissionStatus
from clinic_records.services.sheet_import.errors import RowValidationError
from clinic_records.services.sheet_import.normalize import digits_only, parse_digits, parse_int
from clinic_records.services.sheet_import.pipelines.admissions import EPISODE_TABLE
from clinic_records.services.sheet_import.pipelines.base import (
    ReconciliationPipeline,
    RowWork,
    business_key,
    check_secondary_diagnosis,
    exact_digits,
)
from clinic_records.services.sheet_import.resolution import EPISODE_CHAINS, resolve_chain
from clinic_records.services.sheet_import.store import Row
from clinic_records.services.sheet_import.types import DischargeRow, EntityKind, ImportKind
from clinic_records.services.sheet_import.vocabulary import (
    DISCHARGE_STATUSES,
    FINANCE_SOURCES,
    lookup_value,
)

CLOSURE_TABLE = "discharges"
PLACEHOLDER_NAME = "-"

CLOSURE_REFERENCES = (
    ("discharge_department_id", "departments", "discharge_department"),
    ("discharge_diagnosis_id", "diagnoses", "discharge_diagnosis"),
    ("secondary_discharge_diagnosis_id", "diagnoses", "secondary_diagnosis"),
    ("discharge_doctor_id", "doctors", "discharge_doctor"),
    ("hospital_id", "hospitals", "hospital"),
)


class DischargesPipeline(ReconciliationPipeline):
    """Closes episodes from a discharges sheet.

    The target episode is the first one admitted under the unified number. A
    missing episode is created as a placeholder. When the sheet states an
    admission time that differs from the first episode, the episode admitted
    at that time is used, or created, so earlier stays are never rewritten.
    The discharge itself is matched on ``(admission_id, discharge_date)``.
    """

    kind = ImportKind.discharges
    row_model = DischargeRow

    def validate(self, work: RowWork) -> None:
        row: DischargeRow = work.row
        unified_number = business_key(row)
        if row.discharge_at is None:
            raise RowValidationError("Invalid or missing discharge date")
        status = lookup_value(DISCHARGE_STATUSES, row.discharge_status)
        if status is None:
            raise RowValidationError("Unknown or missing discharge status")
        finance_source = lookup_value(FINANCE_SOURCES, row.finance_source)
        if finance_source is None and row.finance_source:
            raise RowValidationError(f"Unknown finance source: {row.finance_source}")
        if "admission_at" in row.unparseable:
            raise RowValidationError("Invalid admission date")

        work.values = {
            "unified_number": unified_number,
            "internal_number": parse_digits(row.internal_number),
            "discharge_date": row.discharge_at,
            "discharge_status": status,
            "finance_source": finance_source,
            "child_national_id": digits_only(row.child_national_id) or None,
        }

    def resolve(self, work: RowWork) -> None:
        row: DischargeRow = work.row
        for column, table, attr in CLOSURE_REFERENCES:
            work.values[column] = self.context.resolve_reference(table, getattr(row, attr))

    def check_invariants(self, work: RowWork) -> None:
        row: DischargeRow = work.row
        check_secondary_diagnosis(
            row.discharge_diagnosis,
            row.secondary_diagnosis,
            work.values.get("discharge_diagnosis_id"),
            work.values.get("secondary_discharge_diagnosis_id"),
        )

    def locate(self, work: RowWork) -> Row | None:
        work.parent = self._target_episode(work)
        rows = self.store.select_where(
            CLOSURE_TABLE,
            {"admission_id": work.parent["id"], "discharge_date": work.values["discharge_date"]},
            limit=1,
        )
        return rows[0] if rows else None

    def apply_match(self, work: RowWork) -> None:
        updates = self._closure_columns(work)
        self.patch_existing(EntityKind.closure, CLOSURE_TABLE, work.existing, updates)
        self._mark_discharged(work.parent, work.existing.get("internal_number") or updates["internal_number"])
        self.written(work)

    def apply_insert(self, work: RowWork) -> None:
        episode = work.parent
        self.claim(work, EntityKind.closure, episode["id"], work.values["discharge_date"])
        payload = self._closure_columns(work)
        payload["admission_id"] = episode["id"]
        internal_number = payload["internal_number"]
        self.enqueue(
            work,
            EntityKind.closure,
            CLOSURE_TABLE,
            payload,
            after=lambda: self._mark_discharged(episode, internal_number),
        )

    def _closure_columns(self, work: RowWork) -> dict[str, Any]:
        values = work.values
        columns = {
            column: values[column]
            for column in (
                "discharge_date",
                "discharge_status",
                "finance_source",
                "child_national_id",
                *(ref[0] for ref in CLOSURE_REFERENCES),
            )
        }
        columns["internal_number"] = values["internal_number"] or work.parent.get("internal_number")
        return columns

    def _target_episode(self, work: RowWork) -> Row:
        unified_number = work.values["unified_number"]
        admission_at = work.row.admission_at
        first = self.store.select_where(
            EPISODE_TABLE,
            {"unified_number": unified_number},
            order_by=("admission_date", "created_at"),
            limit=1,
        )
        if first and (admission_at is None or first[0]["admission_date"] == admission_at):
            episode = first[0]
        elif first:
            same_stay = self.store.select_where(
                EPISODE_TABLE,
                {"unified_number": unified_number, "admission_date": admission_at},
                order_by=("created_at",),
                limit=1,
            )
            if not same_stay:
                return self._create_episode(work, admission_at)
            episode = same_stay[0]
        else:
            return self._create_episode(work, admission_at)

        self.patch_existing(
            EntityKind.episode,
            EPISODE_TABLE,
            episode,
            self._episode_demographics(work),
            count_skipped=False,
        )
        return episode

    def _episode_demographics(self, work: RowWork) -> dict[str, Any]:
        row: DischargeRow = work.row
        return {
            "patient_name": row.patient_name or None,
            "national_id": exact_digits(row.national_id, self.settings.import_national_id_length),
            "phone": exact_digits(row.phone, self.settings.import_phone_length),
        }

    def _create_episode(self, work: RowWork, admission_at) -> Row:
        demographics = self._episode_demographics(work)
        payload = {
            "unified_number": work.values["unified_number"],
            "patient_name": demographics["patient_name"] or PLACEHOLDER_NAME,
            "national_id": demographics["national_id"],
            "phone": demographics["phone"],
            "department_id": resolve_chain(
                EPISODE_CHAINS["department_id"],
                file_value=work.values["discharge_department_id"],
                default=self.context.default_for("departments"),
            ),
            "admission_status": AdmissionStatus.reserved,
            "admission_date": admission_at,
        }
        return self.insert_now(EntityKind.episode, EPISODE_TABLE, payload)

    def _mark_discharged(self, episode: Row, internal_number: int | None) -> None:
        patch = {"admission_status": AdmissionStatus.discharged}
        if internal_number is not None and episode.get("internal_number") != internal_number:
            patch["internal_number"] = internal_number
        if episode.get("admission_status") is AdmissionStatus.discharged and len(patch) == 1:
            return
        self.store.update_by_id(EPISODE_TABLE, episode["id"], patch)
