from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from clinic_records.models.base import Base, TimestampMixin


class AdmissionStatus(str, enum.Enum):
    reserved = "reserved"
    discharged = "discharged"
    deceased = "deceased"
    transferred = "transferred"


class Gender(str, enum.Enum):
    male = "male"
    female = "female"


class MaritalStatus(str, enum.Enum):
    single = "single"
    married = "married"
    divorced = "divorced"
    widowed = "widowed"


class DemographicsMixin:
    """Patient identity snapshot shared by episodes and ancillary events."""

    unified_number: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    internal_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    national_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender: Mapped[Gender | None] = mapped_column(Enum(Gender, name="gender"), nullable=True)
    marital_status: Mapped[MaritalStatus | None] = mapped_column(
        Enum(MaritalStatus, name="marital_status"), nullable=True
    )
    address_details: Mapped[str | None] = mapped_column(Text, nullable=True)

    @declared_attr
    def occupation_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("occupations.id"), nullable=True)

    @declared_attr
    def governorate_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("governorates.id"), nullable=True)

    @declared_attr
    def district_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("districts.id"), nullable=True)

    @declared_attr
    def station_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("stations.id"), nullable=True)

    @declared_attr
    def department_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("departments.id"), nullable=False)

    @declared_attr
    def diagnosis_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("diagnoses.id"), nullable=True)

    @declared_attr
    def doctor_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("doctors.id"), nullable=True)


class Admission(Base, DemographicsMixin, TimestampMixin):
    __tablename__ = "admissions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    admission_status: Mapped[AdmissionStatus] = mapped_column(
        Enum(AdmissionStatus, name="admission_status"),
        default=AdmissionStatus.reserved,
        nullable=False,
    )
    admission_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
