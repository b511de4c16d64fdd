import pytest

from clinic_records.core.settings import Settings, validate_settings


def test_defaults():
    settings = Settings(database_url="sqlite://")
    assert settings.import_national_id_length == 14
    assert settings.import_phone_length == 11
    assert settings.import_min_name_tokens == 4
    assert settings.import_bulk_writes is True
    assert settings.import_default_department is None


def test_reads_import_settings_from_env(monkeypatch):
    monkeypatch.setenv("IMPORT_DEFAULT_DEPARTMENT", "الكبد")
    monkeypatch.setenv("IMPORT_PHONE_LENGTH", "10")
    monkeypatch.setenv("IMPORT_BULK_WRITES", "false")
    monkeypatch.setenv("IMPORT_PROGRESS_EVERY", "")

    settings = Settings(database_url="sqlite://")
    assert settings.import_default_department == "الكبد"
    assert settings.import_phone_length == 10
    assert settings.import_bulk_writes is False
    assert settings.import_progress_every == 0


def test_blank_default_department_is_unset(monkeypatch):
    monkeypatch.setenv("IMPORT_DEFAULT_DEPARTMENT", "   ")
    assert Settings(database_url="sqlite://").import_default_department is None


def test_validate_settings_rejects_bad_values():
    settings = Settings(
        database_url="sqlite://",
        IMPORT_NATIONAL_ID_LENGTH=0,
        IMPORT_PROGRESS_EVERY=-1,
    )
    with pytest.raises(RuntimeError) as excinfo:
        validate_settings(settings)
    message = str(excinfo.value)
    assert "IMPORT_NATIONAL_ID_LENGTH" in message
    assert "IMPORT_PROGRESS_EVERY" in message


def test_sqlite_is_fatal_only_in_production():
    validate_settings(Settings(app_env="development", database_url="sqlite://"))
    with pytest.raises(RuntimeError, match="SQLite"):
        validate_settings(Settings(app_env="production", database_url="sqlite://"))
