from clinic_records.models.base import Base
from clinic_records.models.lookup import (
    LOOKUP_MODELS,
    Department,
    Diagnosis,
    District,
    Doctor,
    Governorate,
    Hospital,
    Occupation,
    Station,
)
from clinic_records.models.admission import Admission, AdmissionStatus, Gender, MaritalStatus
from clinic_records.models.discharge import Discharge, DischargeStatus, FinanceSource
from clinic_records.models.ancillary import EmergencyVisit, Endoscopy, Procedure, ProcedureType

__all__ = [
    "Base",
    "LOOKUP_MODELS",
    "Department",
    "Diagnosis",
    "District",
    "Doctor",
    "Governorate",
    "Hospital",
    "Occupation",
    "Station",
    "Admission",
    "AdmissionStatus",
    "Gender",
    "MaritalStatus",
    "Discharge",
    "DischargeStatus",
    "FinanceSource",
    "EmergencyVisit",
    "Endoscopy",
    "Procedure",
    "ProcedureType",
]
