from datetime import datetime

from clinic_records.models import AdmissionStatus, DischargeStatus, FinanceSource
from clinic_records.services.sheet_import.importer import import_sheet

ADMISSION_HEADERS = ["الرقم الموحد", "اسم المريض", "القسم", "تاريخ الحجز", "الرقم الداخلي"]

DISCHARGE_HEADERS = [
    "الرقم الموحد",
    "اسم المريض",
    "رقم الهاتف",
    "تاريخ ووقت الدخول",
    "تاريخ ووقت الخروج",
    "حالة الخروج",
    "مصدر التمويل",
    "قسم الخروج",
    "تشخيص الخروج",
    "تشخيص مصاحب",
    "الرقم الداخلي",
]


def _discharge(
    unified="1001",
    name="",
    phone="",
    admitted="",
    discharged="10/01/2024 12:00",
    status="تحسن",
    finance="تأمين صحي",
    department="الكبد",
    diagnosis="تليف كبدي",
    secondary="",
    internal="",
):
    return [unified, name, phone, admitted, discharged, status, finance, department, diagnosis, secondary, internal]


def _admit(store, settings, unified="1001", admitted="05/01/2024 10:00", internal=""):
    result = import_sheet(
        store,
        "admissions",
        [ADMISSION_HEADERS, [unified, "أحمد علي محمد حسن", "الكبد", admitted, internal]],
        settings=settings,
    )
    assert result.failed == []


def _import(store, settings, *rows):
    return import_sheet(store, "discharges", [DISCHARGE_HEADERS, *rows], settings=settings)


def test_discharge_without_episode_creates_placeholder(store, lookup_ids, import_settings):
    result = _import(store, import_settings, _discharge(unified="5005"))

    assert result.failed == []
    assert result.inserted_counts == {"episode": 1, "closure": 1}
    episode = store.select_all("admissions")[0]
    assert episode["unified_number"] == "5005"
    assert episode["patient_name"] == "-"
    assert episode["department_id"] == lookup_ids["departments"]["الكبد"]
    assert episode["admission_status"] is AdmissionStatus.discharged

    closure = store.select_all("discharges")[0]
    assert closure["admission_id"] == episode["id"]
    assert closure["discharge_date"] == datetime(2024, 1, 10, 12, 0)
    assert closure["discharge_status"] is DischargeStatus.improved
    assert closure["finance_source"] is FinanceSource.health_insurance
    assert closure["discharge_diagnosis_id"] == lookup_ids["diagnoses"]["تليف كبدي"]


def test_discharge_closes_existing_episode(store, lookup_ids, import_settings):
    _admit(store, import_settings, internal="77")
    result = _import(store, import_settings, _discharge(phone="01012345678"))

    assert result.inserted_counts == {"closure": 1}
    assert result.updated_counts == {"episode": 1}
    episodes = store.select_all("admissions")
    assert len(episodes) == 1
    assert episodes[0]["admission_status"] is AdmissionStatus.discharged
    assert episodes[0]["phone"] == "01012345678"
    assert store.select_all("discharges")[0]["internal_number"] == 77


def test_internal_number_is_copied_to_the_episode(store, lookup_ids, import_settings):
    _admit(store, import_settings)
    _import(store, import_settings, _discharge(internal="88"))
    assert store.select_all("admissions")[0]["internal_number"] == 88


def test_differing_admission_date_creates_new_episode(store, lookup_ids, import_settings):
    _admit(store, import_settings, admitted="05/01/2024 10:00")
    result = _import(
        store,
        import_settings,
        _discharge(admitted="01/03/2024 09:00", discharged="04/03/2024 12:00"),
    )

    assert result.inserted_counts == {"episode": 1, "closure": 1}
    episodes = sorted(store.select_all("admissions"), key=lambda row: row["id"])
    assert [episode["admission_status"] for episode in episodes] == [
        AdmissionStatus.reserved,
        AdmissionStatus.discharged,
    ]
    assert episodes[1]["admission_date"] == datetime(2024, 3, 1, 9, 0)
    assert store.select_all("discharges")[0]["admission_id"] == episodes[1]["id"]


def test_reimport_is_idempotent(store, lookup_ids, import_settings):
    rows = [
        _discharge(unified="5005"),
        _discharge(unified="6006", admitted="01/03/2024 09:00", discharged="04/03/2024 12:00"),
    ]
    _import(store, import_settings, *rows)
    result = _import(store, import_settings, *rows)

    assert result.failed == []
    assert result.inserted_counts == {}
    assert result.updated_counts == {}
    assert result.skipped_counts == {"closure": 2}
    assert len(store.select_all("admissions")) == 2
    assert len(store.select_all("discharges")) == 2


def test_secondary_diagnosis_equal_to_primary_fails_without_writes(store, lookup_ids, import_settings):
    result = _import(store, import_settings, _discharge(unified="5005", secondary="تليف كبدى"))

    assert [(failure.reason, failure.code) for failure in result.failed] == [
        ("Secondary diagnosis cannot equal the primary diagnosis", "invariant")
    ]
    assert store.select_all("admissions") == []
    assert store.select_all("discharges") == []


def test_validation_failures(store, lookup_ids, import_settings):
    result = _import(
        store,
        import_settings,
        _discharge(discharged=""),
        _discharge(unified="1002", status="غير معروف"),
        _discharge(unified="1003", finance="منحة"),
        _discharge(unified="1004", admitted="later"),
    )

    assert [failure.reason for failure in result.failed] == [
        "Invalid or missing discharge date",
        "Unknown or missing discharge status",
        "Unknown finance source: منحة",
        "Invalid admission date",
    ]
    assert store.select_all("admissions") == []


def test_split_date_and_time_columns(store, lookup_ids, import_settings):
    headers = ["الرقم الموحد", "تاريخ الخروج", "وقت الخروج", "حالة الخروج"]
    result = import_sheet(
        store,
        "discharges",
        [headers, ["7007", "10/01/2024", "14:30", "وفاة"]],
        settings=import_settings,
    )

    assert result.failed == []
    closure = store.select_all("discharges")[0]
    assert closure["discharge_date"] == datetime(2024, 1, 10, 14, 30)
    assert closure["discharge_status"] is DischargeStatus.deceased
    episode = store.select_all("admissions")[0]
    assert episode["department_id"] == lookup_ids["departments"]["العناية العامة"]
