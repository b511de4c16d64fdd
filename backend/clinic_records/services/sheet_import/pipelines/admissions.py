from __future__ import annotations

from clinic_records.models import AdmissionStatus
from clinic_records.services.sheet_import.errors import RowValidationError
from clinic_records.services.sheet_import.normalize import parse_digits, parse_int
from clinic_records.services.sheet_import.pipelines.base import (
    ReconciliationPipeline,
    RowWork,
    business_key,
    exact_digits,
)
from clinic_records.services.sheet_import.resolution import EPISODE_CHAINS, resolve_chain
from clinic_records.services.sheet_import.store import Row
from clinic_records.services.sheet_import.types import AdmissionRow, EntityKind, ImportKind
from clinic_records.services.sheet_import.vocabulary import (
    ADMISSION_STATUSES,
    GENDERS,
    MARITAL_STATUSES,
    lookup_value,
)

EPISODE_TABLE = "admissions"

# Reference columns resolved with the optional policy: a miss stores NULL.
OPTIONAL_REFERENCES = (
    ("occupation_id", "occupations", "occupation"),
    ("governorate_id", "governorates", "governorate"),
    ("district_id", "districts", "district"),
    ("station_id", "stations", "station"),
    ("diagnosis_id", "diagnoses", "diagnosis"),
    ("doctor_id", "doctors", "doctor"),
)


class AdmissionsPipeline(ReconciliationPipeline):
    """Creates or patches episodes from an admissions sheet.

    An episode matches when it has the same unified number and the same
    admission timestamp. A row without an admission timestamp matches the
    latest undated episode, else the latest one still reserved.
    """

    kind = ImportKind.admissions
    row_model = AdmissionRow

    def validate(self, work: RowWork) -> None:
        row: AdmissionRow = work.row
        unified_number = business_key(row)
        name_tokens = row.patient_name.split()
        if len(name_tokens) < self.settings.import_min_name_tokens:
            raise RowValidationError(
                f"Patient name must have at least {self.settings.import_min_name_tokens} parts"
            )
        if "admission_date" in row.unparseable:
            raise RowValidationError("Invalid admission date")

        work.values = {
            "unified_number": unified_number,
            "internal_number": parse_digits(row.internal_number),
            "patient_name": row.patient_name,
            # Malformed ids and phones are dropped, not fatal.
            "national_id": exact_digits(row.national_id, self.settings.import_national_id_length),
            "phone": exact_digits(row.phone, self.settings.import_phone_length),
            "age": parse_int(row.age),
            "gender": lookup_value(GENDERS, row.gender),
            "marital_status": lookup_value(MARITAL_STATUSES, row.marital_status),
            "address_details": row.address_details or None,
            "admission_status": lookup_value(ADMISSION_STATUSES, row.admission_status),
            "admission_date": row.admission_date,
        }

    def resolve(self, work: RowWork) -> None:
        row: AdmissionRow = work.row
        values = work.values
        for column, table, attr in OPTIONAL_REFERENCES:
            values[column] = self.context.resolve_reference(table, getattr(row, attr))
        values["department_id"] = self.context.resolve_reference("departments", row.department)

    def locate(self, work: RowWork) -> Row | None:
        unified_number = work.values["unified_number"]
        rows = self._latest({"unified_number": unified_number, "admission_date": work.values["admission_date"]})
        if not rows and work.values["admission_date"] is None:
            rows = self._latest({"unified_number": unified_number, "admission_status": AdmissionStatus.reserved})
        return rows[0] if rows else None

    def _latest(self, filters: dict) -> list[Row]:
        return self.store.select_where(
            EPISODE_TABLE, filters, order_by=("-admission_date", "-created_at"), limit=1
        )

    def apply_match(self, work: RowWork) -> None:
        updates = dict(work.values)
        # A closed episode is never reopened by a sheet that still lists it as reserved.
        if (
            updates["admission_status"] is AdmissionStatus.reserved
            and work.existing["admission_status"] is not AdmissionStatus.reserved
        ):
            updates["admission_status"] = None
        self.patch_existing(EntityKind.episode, EPISODE_TABLE, work.existing, updates)
        self.written(work)

    def apply_insert(self, work: RowWork) -> None:
        values = work.values
        self.claim(work, EntityKind.episode, values["unified_number"], values["admission_date"])
        payload = dict(values)
        payload["department_id"] = resolve_chain(
            EPISODE_CHAINS["department_id"],
            file_value=values["department_id"],
            default=self.context.default_for("departments"),
        )
        payload["admission_status"] = values["admission_status"] or AdmissionStatus.reserved
        created_at = work.row.created_at
        if created_at is not None:
            payload["created_at"] = created_at
        self.enqueue(work, EntityKind.episode, EPISODE_TABLE, payload)
