from datetime import datetime

from clinic_records.models import AdmissionStatus, Gender
from clinic_records.services.sheet_import.importer import import_sheet

HEADERS = [
    "الرقم الموحد",
    "اسم المريض",
    "الرقم القومي",
    "رقم الهاتف",
    "النوع",
    "المحافظة",
    "القسم",
    "الطبيب",
    "الحالة",
    "تاريخ الحجز",
]


def _row(
    unified="1001",
    name="أحمد علي محمد حسن",
    national_id="29801011234567",
    phone="01012345678",
    gender="ذكر",
    governorate="القاهرة",
    department="الكبد",
    doctor="د. أحمد سمير",
    status="محجوز",
    admitted="05/01/2024 10:00",
):
    return [unified, name, national_id, phone, gender, governorate, department, doctor, status, admitted]


def _import(store, settings, *rows):
    return import_sheet(store, "admissions", [HEADERS, *rows], settings=settings)


def test_new_episode_is_inserted(store, lookup_ids, import_settings):
    result = _import(store, import_settings, _row())

    assert result.inserted_counts == {"episode": 1}
    assert result.failed == []
    episode = store.select_all("admissions")[0]
    assert episode["unified_number"] == "1001"
    assert episode["national_id"] == "29801011234567"
    assert episode["gender"] is Gender.male
    assert episode["department_id"] == lookup_ids["departments"]["الكبد"]
    assert episode["governorate_id"] == lookup_ids["governorates"]["القاهرة"]
    assert episode["doctor_id"] == lookup_ids["doctors"]["د. أحمد سمير"]
    assert episode["admission_status"] is AdmissionStatus.reserved
    assert episode["admission_date"] == datetime(2024, 1, 5, 10, 0)


def test_malformed_national_id_and_phone_are_dropped(store, lookup_ids, import_settings):
    result = _import(
        store,
        import_settings,
        _row(unified="12345", name="Ahmed Ali Mohamed Hassan", national_id="1234567890", phone="1234567890"),
    )

    assert result.failed == []
    episode = store.select_all("admissions")[0]
    assert episode["unified_number"] == "12345"
    assert episode["patient_name"] == "Ahmed Ali Mohamed Hassan"
    assert episode["national_id"] is None
    assert episode["phone"] is None


def test_unknown_department_falls_back_to_default(store, lookup_ids, import_settings):
    _import(store, import_settings, _row(department="قسم مجهول"))
    episode = store.select_all("admissions")[0]
    assert episode["department_id"] == lookup_ids["departments"]["العناية العامة"]


def test_unknown_optional_reference_is_stored_as_null(store, lookup_ids, import_settings):
    result = _import(store, import_settings, _row(doctor="د. غير معروف"))
    assert result.failed == []
    assert store.select_all("admissions")[0]["doctor_id"] is None


def test_short_name_and_missing_unified_number_fail(store, lookup_ids, import_settings):
    result = _import(
        store,
        import_settings,
        _row(name="أحمد علي"),
        _row(unified="", national_id="29801011234568"),
        _row(unified="1003", admitted="yesterday"),
    )

    assert [(failure.row_index, failure.reason, failure.code) for failure in result.failed] == [
        (0, "Patient name must have at least 4 parts", "validation"),
        (1, "Missing unified number", "validation"),
        (2, "Invalid admission date", "validation"),
    ]
    assert store.select_all("admissions") == []
    assert result.processed_rows == 0


def test_matching_episode_is_patched_not_duplicated(store, lookup_ids, import_settings):
    _import(store, import_settings, _row(phone=""))
    result = _import(store, import_settings, _row(phone="01099999999", national_id=""))

    assert result.inserted_counts == {}
    assert result.updated_counts == {"episode": 1}
    episodes = store.select_all("admissions")
    assert len(episodes) == 1
    assert episodes[0]["phone"] == "01099999999"
    assert episodes[0]["national_id"] == "29801011234567"


def test_reimport_is_idempotent(store, lookup_ids, import_settings):
    rows = [_row(), _row(unified="1002", admitted="")]
    _import(store, import_settings, *rows)
    result = _import(store, import_settings, *rows)

    assert result.inserted_counts == {}
    assert result.updated_counts == {}
    assert result.skipped_counts == {"episode": 2}
    assert len(store.select_all("admissions")) == 2


def test_reserved_sheet_does_not_reopen_discharged_episode(store, lookup_ids, import_settings):
    _import(store, import_settings, _row())
    episode = store.select_all("admissions")[0]
    store.update_by_id("admissions", episode["id"], {"admission_status": AdmissionStatus.discharged})

    _import(store, import_settings, _row(status="محجوز"))
    assert store.select_all("admissions")[0]["admission_status"] is AdmissionStatus.discharged


def test_same_episode_twice_in_one_file(store, lookup_ids, import_settings):
    result = _import(store, import_settings, _row(), _row(phone="01099999999"))

    assert result.inserted_counts == {"episode": 1}
    assert [(failure.row_index, failure.code) for failure in result.failed] == [(1, "duplicate")]
