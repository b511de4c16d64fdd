from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from clinic_records.models.admission import DemographicsMixin
from clinic_records.models.base import Base, TimestampMixin


class ProcedureType(str, enum.Enum):
    paracentesis = "paracentesis"
    reception = "reception"
    renal = "renal"


class AncillaryEventMixin(DemographicsMixin):
    @declared_attr
    def secondary_diagnosis_id(cls) -> Mapped[int | None]:
        return mapped_column(ForeignKey("diagnoses.id"), nullable=True)


class EmergencyVisit(Base, AncillaryEventMixin, TimestampMixin):
    __tablename__ = "emergencies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    visit_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Procedure(Base, AncillaryEventMixin, TimestampMixin):
    __tablename__ = "procedures"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    procedure_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    procedure_type: Mapped[ProcedureType] = mapped_column(
        Enum(ProcedureType, name="procedure_type"), nullable=False
    )
    procedure_status: Mapped[str | None] = mapped_column(String(120), nullable=True)
    hospital_id: Mapped[int | None] = mapped_column(ForeignKey("hospitals.id"), nullable=True)
    transferred_from_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"), nullable=True
    )


class Endoscopy(Base, AncillaryEventMixin, TimestampMixin):
    __tablename__ = "endoscopies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    procedure_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    discharge_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    discharge_status: Mapped[str | None] = mapped_column(String(120), nullable=True)
    discharge_status_other: Mapped[str | None] = mapped_column(Text, nullable=True)
    discharge_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"), nullable=True
    )
    discharge_diagnosis_id: Mapped[int | None] = mapped_column(ForeignKey("diagnoses.id"), nullable=True)
    discharge_doctor_id: Mapped[int | None] = mapped_column(ForeignKey("doctors.id"), nullable=True)
