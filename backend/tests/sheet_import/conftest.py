import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_records.core.settings import Settings
from clinic_records.models import Base, Department, Diagnosis, Doctor, Governorate, Hospital
from clinic_records.services.sheet_import.context import ReconciliationContext
from clinic_records.services.sheet_import.store import SqlAlchemyStore

DEPARTMENTS = ("العناية العامة", "الكبد", "الطوارئ")
DIAGNOSES = ("التهاب رئوي", "فشل كلوي", "تليف كبدي")
DOCTORS = ("د. أحمد سمير",)
GOVERNORATES = ("القاهرة", "الجيزة")
HOSPITALS = ("مستشفى الحميات",)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def store(session):
    return SqlAlchemyStore(session)


@pytest.fixture
def import_settings():
    return Settings(
        app_env="test",
        database_url="sqlite://",
        IMPORT_DEFAULT_DEPARTMENT=None,
        IMPORT_BULK_WRITES=True,
        IMPORT_PROGRESS_EVERY=0,
    )


@pytest.fixture
def lookup_ids(session):
    ids: dict[str, dict[str, int]] = {}
    for model, names in (
        (Department, DEPARTMENTS),
        (Diagnosis, DIAGNOSES),
        (Doctor, DOCTORS),
        (Governorate, GOVERNORATES),
        (Hospital, HOSPITALS),
    ):
        rows = [model(name=name) for name in names]
        session.add_all(rows)
        session.flush()
        ids[model.__tablename__] = {row.name: row.id for row in rows}
    session.commit()
    return ids


@pytest.fixture
def context(store, lookup_ids, import_settings):
    return ReconciliationContext.load(store, import_settings)
