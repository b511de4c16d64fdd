"""Closed value sets read from spreadsheet cells.

Each table maps the match-normalized spellings clinics use (Arabic and
English) to one enum member. Lookups return ``None`` for blank or unknown
values; the calling pipeline decides whether that fails the row.
"""

from __future__ import annotations

import enum
from typing import Mapping, TypeVar

from clinic_records.models import (
    AdmissionStatus,
    DischargeStatus,
    FinanceSource,
    Gender,
    MaritalStatus,
    ProcedureType,
)
from clinic_records.services.sheet_import.normalize import normalize_for_match
from clinic_records.services.sheet_import.types import EntityKind

E = TypeVar("E", bound=enum.Enum)

# Source-system event type for staff loans; recognized so it can be rejected
# with a specific reason.
UNSUPPORTED_EVENT_TYPES = frozenset({normalize_for_match("استعارات"), "loans", "loan"})


def _table(enum_cls: type[E], spellings: Mapping[E, tuple[str, ...]]) -> dict[str, E]:
    table: dict[str, E] = {}
    for member in enum_cls:
        for spelling in (member.value, member.value.replace("_", " "), *spellings.get(member, ())):
            table[normalize_for_match(spelling)] = member
    return table


ADMISSION_STATUSES = _table(
    AdmissionStatus,
    {
        AdmissionStatus.reserved: ("محجوز", "حجز", "حجوز"),
        AdmissionStatus.discharged: ("خروج",),
        AdmissionStatus.deceased: ("متوفى", "وفاة", "وفاه", "dead"),
        AdmissionStatus.transferred: ("تحويل", "transfer"),
    },
)

DISCHARGE_STATUSES = _table(
    DischargeStatus,
    {
        DischargeStatus.improved: ("تحسن",),
        DischargeStatus.transferred: ("تحويل", "transfer"),
        DischargeStatus.deceased: ("وفاة", "وفاه", "متوفى", "dead"),
        DischargeStatus.absconded: ("هروب",),
        DischargeStatus.refused_treatment: ("رفض العلاج", "رفض العلاج حسب الطلب", "حسب الطلب"),
    },
)

FINANCE_SOURCES = _table(
    FinanceSource,
    {
        FinanceSource.health_insurance: ("تأمين صحي", "insurance"),
        FinanceSource.state_funded: ("علاج على نفقة الدولة", "نفقة الدولة"),
        FinanceSource.private: ("خاص",),
    },
)

GENDERS = _table(
    Gender,
    {
        Gender.male: ("ذكر",),
        Gender.female: ("أنثى",),
    },
)

MARITAL_STATUSES = _table(
    MaritalStatus,
    {
        MaritalStatus.single: ("أعزب",),
        MaritalStatus.married: ("متزوج",),
        MaritalStatus.divorced: ("مطلق",),
        MaritalStatus.widowed: ("أرمل",),
    },
)

PROCEDURE_TYPES = _table(
    ProcedureType,
    {
        ProcedureType.paracentesis: ("بذل",),
        ProcedureType.reception: ("استقبال",),
        ProcedureType.renal: ("كلي", "كلى"),
    },
)

EVENT_TYPES: dict[str, EntityKind] = {
    normalize_for_match(spelling): kind
    for kind, spellings in (
        (EntityKind.emergency_visit, ("طوارئ", "emergency", "emergency_visit")),
        (EntityKind.procedure, ("إجراءات", "procedure", "procedures")),
        (EntityKind.endoscopy, ("مناظير", "endoscopy", "endoscopies")),
    )
    for spelling in spellings
}


def lookup_value(table: Mapping[str, E], raw: object) -> E | None:
    key = normalize_for_match(raw)
    if not key:
        return None
    return table.get(key)
