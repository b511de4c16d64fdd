import pytest

from clinic_records.core.settings import Settings
from clinic_records.services.sheet_import.context import (
    LookupMap,
    ReconciliationContext,
    canonical_department_name,
)
from clinic_records.services.sheet_import.errors import (
    ImportSetupError,
    ReferenceMissError,
    StoreError,
)


def test_default_department_is_lowest_id(context, lookup_ids):
    assert context.default_department_id == lookup_ids["departments"]["العناية العامة"]


def test_configured_default_department(store, lookup_ids):
    settings = Settings(database_url="sqlite://", IMPORT_DEFAULT_DEPARTMENT="الكبد")
    context = ReconciliationContext.load(store, settings)
    assert context.default_department_id == lookup_ids["departments"]["الكبد"]


def test_configured_default_department_missing(store, lookup_ids):
    settings = Settings(database_url="sqlite://", IMPORT_DEFAULT_DEPARTMENT="الجراحة")
    with pytest.raises(ImportSetupError, match="not found"):
        ReconciliationContext.load(store, settings)


def test_no_departments_is_a_setup_error(store, import_settings):
    with pytest.raises(ImportSetupError, match="No departments"):
        ReconciliationContext.load(store, import_settings)


def test_unreadable_store_is_a_setup_error(import_settings):
    class BrokenStore:
        def select_all(self, table, columns=None):
            raise StoreError("connection refused")

    with pytest.raises(ImportSetupError, match="connection refused"):
        ReconciliationContext.load(BrokenStore(), import_settings)


def test_lookup_is_loaded_once(store, lookup_ids, import_settings):
    context = ReconciliationContext.load(store, import_settings)
    store.insert_one("doctors", {"name": "د. منى حسن"})

    assert context.resolve_id("doctors", "د. منى حسن") is None
    assert len(context.lookups["doctors"]) == 1


def test_resolve_id_folds_spelling_variants(context, lookup_ids):
    assert context.resolve_id("diagnoses", "تليف  كبدى") == lookup_ids["diagnoses"]["تليف كبدي"]
    assert context.resolve_id("governorates", "الجيزه") == lookup_ids["governorates"]["الجيزة"]
    assert context.resolve_id("unknown_table", "x") is None


def test_department_aliases(context, lookup_ids):
    assert canonical_department_name("عناية عامة") == "العناية العامة"
    assert canonical_department_name("الكبد") == "الكبد"
    assert context.resolve_id("departments", "عناية عامه") == lookup_ids["departments"]["العناية العامة"]


def test_optional_reference_miss_is_none(context):
    assert context.resolve_reference("doctors", "د. غير معروف") is None
    assert context.resolve_reference("doctors", "") is None


def test_critical_department_falls_back_to_default(context):
    assert context.resolve_reference("departments", "قسم غير موجود", critical=True) == context.default_department_id
    assert context.resolve_reference("departments", "", critical=True) == context.default_department_id


def test_critical_reference_without_default_fails(context):
    with pytest.raises(ReferenceMissError, match="Unknown hospitals reference: مستشفى آخر"):
        context.resolve_reference("hospitals", "مستشفى آخر", critical=True)
    with pytest.raises(ReferenceMissError, match="Missing hospitals reference"):
        context.resolve_reference("hospitals", None, critical=True)


def test_lookup_map_keeps_first_id_for_folded_names():
    lookup = LookupMap.from_rows("doctors", [{"id": 3, "name": "أحمد"}, {"id": 9, "name": "احمد"}, {"id": 4, "name": ""}])
    assert lookup.get("احمد") == 3
    assert len(lookup) == 1
