from datetime import datetime

import pytest

from clinic_records.services.sheet_import.errors import (
    StoreError,
    StoreErrorCategory,
    describe_store_error,
)


def _episode(**overrides):
    payload = {
        "unified_number": "1001",
        "patient_name": "أحمد علي محمد حسن",
        "department_id": 1,
        "admission_status": "reserved",
    }
    payload.update(overrides)
    return payload


def test_insert_one_returns_stored_row(store, lookup_ids):
    department_id = lookup_ids["departments"]["الكبد"]
    row = store.insert_one("admissions", _episode(department_id=department_id))

    assert row["id"] is not None
    assert row["department_id"] == department_id
    assert row["created_at"] is not None


def test_select_where_filters_and_orders(store, lookup_ids):
    early = datetime(2024, 1, 1, 8, 0)
    late = datetime(2024, 3, 1, 8, 0)
    store.insert_many(
        "admissions",
        [
            _episode(admission_date=early),
            _episode(admission_date=None),
            _episode(admission_date=late),
            _episode(unified_number="2002", admission_date=late),
        ],
    )

    newest = store.select_where("admissions", {"unified_number": "1001"}, order_by=("-admission_date",), limit=1)
    assert newest[0]["admission_date"] == late

    oldest = store.select_where("admissions", {"unified_number": "1001"}, order_by=("admission_date",))
    assert [row["admission_date"] for row in oldest] == [early, late, None]

    undated = store.select_where("admissions", {"unified_number": "1001", "admission_date": None})
    assert len(undated) == 1


def test_update_by_id(store, lookup_ids):
    row = store.insert_one("admissions", _episode())
    store.update_by_id("admissions", row["id"], {"phone": "01012345678"})
    store.update_by_id("admissions", row["id"], {})

    assert store.select_where("admissions", {"id": row["id"]})[0]["phone"] == "01012345678"


def test_foreign_key_violation_is_classified(store, lookup_ids):
    with pytest.raises(StoreError) as excinfo:
        store.insert_one("admissions", _episode(department_id=999))

    assert excinfo.value.category is StoreErrorCategory.foreign_key
    assert excinfo.value.table == "admissions"
    assert describe_store_error(excinfo.value) == "Reference to an unknown record"


def test_not_null_violation_names_the_column(store, lookup_ids):
    payload = _episode()
    payload["patient_name"] = None
    with pytest.raises(StoreError) as excinfo:
        store.insert_one("admissions", payload)

    assert excinfo.value.category is StoreErrorCategory.not_null
    assert excinfo.value.column == "patient_name"
    assert describe_store_error(excinfo.value) == "Missing required field (patient_name)"


def test_unique_violation_and_session_recovers(store, lookup_ids):
    with pytest.raises(StoreError) as excinfo:
        store.insert_one("departments", {"name": "الكبد"})
    assert excinfo.value.category is StoreErrorCategory.unique

    row = store.insert_one("departments", {"name": "الباطنة"})
    assert row["name"] == "الباطنة"


def test_failed_bulk_insert_writes_nothing(store, lookup_ids):
    with pytest.raises(StoreError):
        store.insert_many("admissions", [_episode(), _episode(department_id=999)])

    assert store.select_all("admissions") == []


def test_unknown_table(store):
    with pytest.raises(StoreError, match="Unknown table"):
        store.select_all("patients")


def test_transport_errors_keep_their_message():
    exc = StoreError("connection refused", StoreErrorCategory.transport)
    assert describe_store_error(exc) == "connection refused"
    assert describe_store_error(StoreError("boom")) == "Could not insert row"
