"""initial schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-17 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

LOOKUP_TABLES = (
    "departments",
    "diagnoses",
    "doctors",
    "governorates",
    "districts",
    "stations",
    "occupations",
    "hospitals",
)

EVENT_TABLES = ("admissions", "emergencies", "procedures", "endoscopies")

gender_enum = sa.Enum("male", "female", name="gender")
marital_status_enum = sa.Enum("single", "married", "divorced", "widowed", name="marital_status")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=sa.text("now()")),
    ]


def _demographics() -> list[sa.Column]:
    return [
        sa.Column("unified_number", sa.String(length=32), nullable=False),
        sa.Column("internal_number", sa.Integer(), nullable=True),
        sa.Column("patient_name", sa.String(length=200), nullable=False),
        sa.Column("national_id", sa.String(length=32), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("gender", gender_enum, nullable=True),
        sa.Column("marital_status", marital_status_enum, nullable=True),
        sa.Column("address_details", sa.Text(), nullable=True),
        sa.Column("occupation_id", sa.Integer(), sa.ForeignKey("occupations.id"), nullable=True),
        sa.Column("governorate_id", sa.Integer(), sa.ForeignKey("governorates.id"), nullable=True),
        sa.Column("district_id", sa.Integer(), sa.ForeignKey("districts.id"), nullable=True),
        sa.Column("station_id", sa.Integer(), sa.ForeignKey("stations.id"), nullable=True),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=False),
        sa.Column("diagnosis_id", sa.Integer(), sa.ForeignKey("diagnoses.id"), nullable=True),
        sa.Column("doctor_id", sa.Integer(), sa.ForeignKey("doctors.id"), nullable=True),
    ]


def upgrade() -> None:
    for table in LOOKUP_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.UniqueConstraint("name"),
        )

    op.create_table(
        "admissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_demographics(),
        sa.Column(
            "admission_status",
            sa.Enum("reserved", "discharged", "deceased", "transferred", name="admission_status"),
            nullable=False,
        ),
        sa.Column("admission_date", sa.DateTime(timezone=False), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "discharges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("admission_id", sa.Integer(), sa.ForeignKey("admissions.id"), nullable=False),
        sa.Column("internal_number", sa.Integer(), nullable=True),
        sa.Column("discharge_date", sa.DateTime(timezone=False), nullable=False),
        sa.Column(
            "discharge_status",
            sa.Enum(
                "improved",
                "transferred",
                "deceased",
                "absconded",
                "refused_treatment",
                name="discharge_status",
            ),
            nullable=False,
        ),
        sa.Column(
            "finance_source",
            sa.Enum("health_insurance", "state_funded", "private", name="finance_source"),
            nullable=True,
        ),
        sa.Column("discharge_department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("discharge_diagnosis_id", sa.Integer(), sa.ForeignKey("diagnoses.id"), nullable=True),
        sa.Column(
            "secondary_discharge_diagnosis_id", sa.Integer(), sa.ForeignKey("diagnoses.id"), nullable=True
        ),
        sa.Column("discharge_doctor_id", sa.Integer(), sa.ForeignKey("doctors.id"), nullable=True),
        sa.Column("hospital_id", sa.Integer(), sa.ForeignKey("hospitals.id"), nullable=True),
        sa.Column("child_national_id", sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("admission_id", "discharge_date", name="uq_discharges_admission_date"),
    )
    op.create_index("ix_discharges_admission_id", "discharges", ["admission_id"])

    op.create_table(
        "emergencies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_demographics(),
        sa.Column("secondary_diagnosis_id", sa.Integer(), sa.ForeignKey("diagnoses.id"), nullable=True),
        sa.Column("visit_date", sa.DateTime(timezone=False), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "procedures",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_demographics(),
        sa.Column("secondary_diagnosis_id", sa.Integer(), sa.ForeignKey("diagnoses.id"), nullable=True),
        sa.Column("procedure_date", sa.DateTime(timezone=False), nullable=False),
        sa.Column(
            "procedure_type",
            sa.Enum("paracentesis", "reception", "renal", name="procedure_type"),
            nullable=False,
        ),
        sa.Column("procedure_status", sa.String(length=120), nullable=True),
        sa.Column("hospital_id", sa.Integer(), sa.ForeignKey("hospitals.id"), nullable=True),
        sa.Column(
            "transferred_from_department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True
        ),
        *_timestamps(),
    )

    op.create_table(
        "endoscopies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_demographics(),
        sa.Column("secondary_diagnosis_id", sa.Integer(), sa.ForeignKey("diagnoses.id"), nullable=True),
        sa.Column("procedure_date", sa.DateTime(timezone=False), nullable=False),
        sa.Column("discharge_date", sa.DateTime(timezone=False), nullable=True),
        sa.Column("discharge_status", sa.String(length=120), nullable=True),
        sa.Column("discharge_status_other", sa.Text(), nullable=True),
        sa.Column("discharge_department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("discharge_diagnosis_id", sa.Integer(), sa.ForeignKey("diagnoses.id"), nullable=True),
        sa.Column("discharge_doctor_id", sa.Integer(), sa.ForeignKey("doctors.id"), nullable=True),
        *_timestamps(),
    )

    for table in EVENT_TABLES:
        op.create_index(f"ix_{table}_unified_number", table, ["unified_number"])


def downgrade() -> None:
    for table in EVENT_TABLES:
        op.drop_index(f"ix_{table}_unified_number", table_name=table)
    op.drop_table("endoscopies")
    op.drop_table("procedures")
    op.drop_table("emergencies")
    op.drop_index("ix_discharges_admission_id", table_name="discharges")
    op.drop_table("discharges")
    op.drop_table("admissions")
    for table in reversed(LOOKUP_TABLES):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_name in (
        "procedure_type",
        "finance_source",
        "discharge_status",
        "admission_status",
        "marital_status",
        "gender",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
