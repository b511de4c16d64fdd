from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from clinic_records.models.base import Base


class LookupMixin:
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    @declared_attr
    def name(cls) -> Mapped[str]:
        return mapped_column(String(200), nullable=False, unique=True)


class Department(Base, LookupMixin):
    __tablename__ = "departments"


class Diagnosis(Base, LookupMixin):
    __tablename__ = "diagnoses"


class Doctor(Base, LookupMixin):
    __tablename__ = "doctors"


class Governorate(Base, LookupMixin):
    __tablename__ = "governorates"


class District(Base, LookupMixin):
    __tablename__ = "districts"


class Station(Base, LookupMixin):
    __tablename__ = "stations"


class Occupation(Base, LookupMixin):
    __tablename__ = "occupations"


class Hospital(Base, LookupMixin):
    __tablename__ = "hospitals"


LOOKUP_MODELS = (
    Department,
    Diagnosis,
    Doctor,
    Governorate,
    District,
    Station,
    Occupation,
    Hospital,
)
