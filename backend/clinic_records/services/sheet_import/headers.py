from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from clinic_records.services.sheet_import.normalize import normalize_for_match

__all__ = [
    "FIELD_ALIASES",
    "HEADER_INDEX",
    "FieldKey",
    "build_header_index",
    "canonicalize",
]


class FieldKey:
    unified_number = "unified_number"
    internal_number = "internal_number"
    patient_name = "patient_name"
    national_id = "national_id"
    gender = "gender"
    occupation = "occupation"
    marital_status = "marital_status"
    phone = "phone"
    age = "age"
    governorate = "governorate"
    district = "district"
    address_details = "address_details"
    station = "station"
    department = "department"
    diagnosis = "diagnosis"
    doctor = "doctor"
    admission_status = "admission_status"
    admission_date = "admission_date"
    admission_day = "admission_day"
    admission_time = "admission_time"
    created_at = "created_at"
    discharge_date = "discharge_date"
    discharge_day = "discharge_day"
    discharge_time = "discharge_time"
    discharge_status = "discharge_status"
    finance_source = "finance_source"
    discharge_department = "discharge_department"
    discharge_diagnosis = "discharge_diagnosis"
    secondary_diagnosis = "secondary_diagnosis"
    discharge_doctor = "discharge_doctor"
    hospital = "hospital"
    child_national_id = "child_national_id"
    event_type = "event_type"
    event_date = "event_date"
    procedure_type = "procedure_type"
    procedure_status = "procedure_status"
    transferred_from_department = "transferred_from_department"
    endoscopy_discharge_date = "endoscopy_discharge_date"
    endoscopy_discharge_status = "endoscopy_discharge_status"
    endoscopy_discharge_status_other = "endoscopy_discharge_status_other"


# Canonical key -> header spellings seen in clinic files. Spellings are
# compared after match-normalization, so hamza/teh-marbuta/case variants of a
# listed spelling do not need their own entry.
FIELD_ALIASES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        FieldKey.unified_number: (
            "الرقم الموحد",
            "رقم موحد",
            "الرقم الموحد للمريض",
            "unified number",
            "unified no",
            "unified_number",
            "mrn",
        ),
        FieldKey.internal_number: (
            "الرقم الداخلي",
            "رقم داخلي",
            "internal number",
            "internal no",
            "internal_number",
        ),
        FieldKey.patient_name: (
            "اسم المريض",
            "الاسم",
            "اسم المريض رباعي",
            "patient name",
            "patient_name",
            "name",
        ),
        FieldKey.national_id: (
            "الرقم القومي",
            "رقم قومي",
            "رقم البطاقة",
            "national id",
            "national_id",
            "nid",
        ),
        FieldKey.gender: ("النوع", "الجنس", "gender", "sex"),
        FieldKey.occupation: ("المهنة", "الوظيفة", "occupation"),
        FieldKey.marital_status: ("الحالة الاجتماعية", "marital status", "marital_status"),
        FieldKey.phone: ("رقم الهاتف", "الهاتف", "رقم الموبايل", "phone", "mobile"),
        FieldKey.age: ("السن", "العمر", "age"),
        FieldKey.governorate: ("المحافظة", "governorate"),
        FieldKey.district: ("القسم أو المركز", "المركز", "district"),
        FieldKey.address_details: ("العنوان تفصيلي", "العنوان", "address", "address details"),
        FieldKey.station: ("المحطة اللي جاي منها", "المحطة", "station"),
        FieldKey.department: ("القسم", "department"),
        FieldKey.diagnosis: ("التشخيص", "diagnosis"),
        FieldKey.doctor: ("الطبيب", "doctor"),
        FieldKey.admission_status: ("الحالة", "status", "admission status"),
        FieldKey.admission_date: (
            "تاريخ ووقت الدخول",
            "تاريخ الحجز",
            "admission date",
            "admission_date",
        ),
        FieldKey.admission_day: ("تاريخ الدخول", "admission day"),
        FieldKey.admission_time: ("وقت الدخول", "admission time"),
        FieldKey.created_at: ("تاريخ الإنشاء", "created at", "created_at"),
        FieldKey.discharge_date: (
            "تاريخ ووقت الخروج",
            "discharge date",
            "discharge_date",
        ),
        FieldKey.discharge_day: ("تاريخ الخروج", "discharge day"),
        FieldKey.discharge_time: ("وقت الخروج", "discharge time"),
        FieldKey.discharge_status: ("حالة الخروج", "discharge status", "discharge_status"),
        FieldKey.finance_source: ("مصدر التمويل", "finance source", "funding"),
        FieldKey.discharge_department: ("قسم الخروج", "discharge department"),
        FieldKey.discharge_diagnosis: ("تشخيص الخروج", "discharge diagnosis"),
        FieldKey.secondary_diagnosis: (
            "تشخيص مصاحب",
            "التشخيص المصاحب",
            "secondary diagnosis",
        ),
        FieldKey.discharge_doctor: ("طبيب الخروج", "discharge doctor"),
        FieldKey.hospital: ("مستشفى التحويل", "hospital", "referral hospital"),
        FieldKey.child_national_id: ("رقم قومي طفل", "child national id"),
        FieldKey.event_type: ("نوع الحدث", "event type", "event_type"),
        FieldKey.event_date: ("تاريخ ووقت الحدث", "event date", "event_date"),
        FieldKey.procedure_type: ("نوع الإجراء", "procedure type"),
        FieldKey.procedure_status: ("حالة الإجراء", "procedure status"),
        FieldKey.transferred_from_department: ("قسم التحويل من", "transferred from department"),
        FieldKey.endoscopy_discharge_date: ("تاريخ ووقت خروج المنظار", "endoscopy discharge date"),
        FieldKey.endoscopy_discharge_status: ("حالة خروج المنظار", "endoscopy discharge status"),
        FieldKey.endoscopy_discharge_status_other: (
            "حالة خروج المنظار الأخرى",
            "endoscopy discharge status other",
        ),
    }
)


def build_header_index(aliases: Mapping[str, tuple[str, ...]]) -> dict[str, str]:
    """Invert an alias table into ``normalized label -> canonical key``.

    Raises ``ValueError`` when one normalized label would map to two keys.
    """
    index: dict[str, str] = {}
    for key, spellings in aliases.items():
        for spelling in (key, *spellings):
            normalized = normalize_for_match(spelling)
            if not normalized:
                raise ValueError(f"Empty header alias for {key!r}")
            existing = index.get(normalized)
            if existing is not None and existing != key:
                raise ValueError(
                    f"Header alias {spelling!r} maps to both {existing!r} and {key!r}"
                )
            index[normalized] = key
    return index


HEADER_INDEX: Mapping[str, str] = MappingProxyType(build_header_index(FIELD_ALIASES))


def canonicalize(label: object) -> str | None:
    """Return the canonical field key for a header label, or ``None``."""
    normalized = normalize_for_match(label)
    if not normalized:
        return None
    return HEADER_INDEX.get(normalized) or HEADER_INDEX.get(normalized.replace("_", " "))
