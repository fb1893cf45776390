"""SQLModel tables. Importing this package registers every table on the metadata."""

from medrec.models.user import User, UserRole
from medrec.models.audit import AuditLog
from medrec.models.department import Department
from medrec.models.patient import Patient
from medrec.models.encounter import Encounter
from medrec.models.clinical_note import ClinicalNote
from medrec.models.order import Order, Result
from medrec.models.message import Message
from medrec.models.data_quality import DataQualityIssue

__all__ = [
    "User",
    "UserRole",
    "AuditLog",
    "Department",
    "Patient",
    "Encounter",
    "ClinicalNote",
    "Order",
    "Result",
    "Message",
    "DataQualityIssue",
]
