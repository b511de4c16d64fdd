from __future__ import annotations

import io
from datetime import datetime

from openpyxl import Workbook

from clinic_records.services.sheet_import.types import ImportKind

ADMISSIONS_TEMPLATE = (
    "الرقم الموحد",
    "اسم المريض",
    "الرقم القومي",
    "النوع",
    "المهنة",
    "الحالة الاجتماعية",
    "رقم الهاتف",
    "السن",
    "المحافظة",
    "القسم أو المركز",
    "العنوان تفصيلي",
    "المحطة اللي جاي منها",
    "القسم",
    "التشخيص",
    "الطبيب",
    "الحالة",
    "تاريخ الحجز",
    "تاريخ الإنشاء",
    "الرقم الداخلي",
)

DISCHARGES_TEMPLATE = (
    "الرقم الموحد",
    "اسم المريض",
    "الرقم القومي",
    "رقم الهاتف",
    "تاريخ ووقت الدخول",
    "تاريخ ووقت الخروج",
    "حالة الخروج",
    "مصدر التمويل",
    "قسم الخروج",
    "تشخيص الخروج",
    "تشخيص مصاحب",
    "طبيب الخروج",
    "مستشفى التحويل",
    "رقم قومي طفل",
    "الرقم الداخلي",
    # Split date and time, used when the combined columns are empty.
    "تاريخ الدخول",
    "وقت الدخول",
    "تاريخ الخروج",
    "وقت الخروج",
)

SERVICES_TEMPLATE = (
    "نوع الحدث",
    "الرقم الموحد",
    "اسم المريض",
    "الرقم القومي",
    "النوع",
    "رقم الهاتف",
    "السن",
    "الحالة الاجتماعية",
    "المهنة",
    "المحافظة",
    "القسم أو المركز",
    "المحطة اللي جاي منها",
    "العنوان تفصيلي",
    "القسم",
    "التشخيص",
    "تشخيص الخروج",
    "تشخيص مصاحب",
    "الطبيب",
    "تاريخ ووقت الحدث",
    "الرقم الداخلي",
    "نوع الإجراء",
    "حالة الإجراء",
    "قسم التحويل من",
    "مستشفى التحويل",
    "تاريخ ووقت خروج المنظار",
    "حالة خروج المنظار",
    "حالة خروج المنظار الأخرى",
)

TEMPLATES: dict[ImportKind, tuple[str, ...]] = {
    ImportKind.admissions: ADMISSIONS_TEMPLATE,
    ImportKind.discharges: DISCHARGES_TEMPLATE,
    ImportKind.services: SERVICES_TEMPLATE,
}

TEMPLATE_NOTES = (
    "اكتب البيانات تحت العناوين مباشرة.",
    "لا تغيّر أسماء الأعمدة.",
)


def template_headers(kind: ImportKind) -> list[str]:
    return list(TEMPLATES[kind])


def build_template_workbook(kind: ImportKind, generated_at: datetime | None = None) -> bytes:
    """Blank import workbook: a data sheet with the headers and a notes sheet."""
    workbook = Workbook()
    data = workbook.active
    data.title = "data"
    data.append(template_headers(kind))

    notes = workbook.create_sheet("notes")
    notes.append(["ملاحظات"])
    for note in TEMPLATE_NOTES:
        notes.append([f"- {note}"])
    notes.append([])
    notes.append(["generated_at", (generated_at or datetime.now()).isoformat(timespec="seconds")])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
