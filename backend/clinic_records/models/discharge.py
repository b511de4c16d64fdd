from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinic_records.models.base import Base, TimestampMixin


class DischargeStatus(str, enum.Enum):
    improved = "improved"
    transferred = "transferred"
    deceased = "deceased"
    absconded = "absconded"
    refused_treatment = "refused_treatment"


class FinanceSource(str, enum.Enum):
    health_insurance = "health_insurance"
    state_funded = "state_funded"
    private = "private"


class Discharge(Base, TimestampMixin):
    __tablename__ = "discharges"
    __table_args__ = (
        UniqueConstraint(
            "admission_id",
            "discharge_date",
            name="uq_discharges_admission_date",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    admission_id: Mapped[int] = mapped_column(ForeignKey("admissions.id"), nullable=False, index=True)
    internal_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    discharge_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    discharge_status: Mapped[DischargeStatus] = mapped_column(
        Enum(DischargeStatus, name="discharge_status"), nullable=False
    )
    finance_source: Mapped[FinanceSource | None] = mapped_column(
        Enum(FinanceSource, name="finance_source"), nullable=True
    )
    discharge_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id"), nullable=True
    )
    discharge_diagnosis_id: Mapped[int | None] = mapped_column(ForeignKey("diagnoses.id"), nullable=True)
    secondary_discharge_diagnosis_id: Mapped[int | None] = mapped_column(
        ForeignKey("diagnoses.id"), nullable=True
    )
    discharge_doctor_id: Mapped[int | None] = mapped_column(ForeignKey("doctors.id"), nullable=True)
    hospital_id: Mapped[int | None] = mapped_column(ForeignKey("hospitals.id"), nullable=True)
    child_national_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    admission = relationship("Admission", lazy="joined")
