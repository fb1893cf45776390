from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from medrec.models.enums import EncounterStatus, EncounterType


class EncounterCreate(BaseModel):
    patient_id: UUID
    encounter_type: EncounterType
    department_id: Optional[UUID] = None
    attending_clinician_id: Optional[UUID] = None
    chief_complaint: Optional[str] = None


class EncounterUpdate(BaseModel):
    department_id: Optional[UUID] = None
    attending_clinician_id: Optional[UUID] = None
    chief_complaint: Optional[str] = None
    diagnosis: Optional[str] = None


class ClinicianAssign(BaseModel):
    clinician_id: UUID


class EncounterClose(BaseModel):
    diagnosis: Optional[str] = None
    disposition: str


class EncounterRead(BaseModel):
    id: UUID
    patient_id: UUID
    encounter_type: EncounterType
    status: EncounterStatus
    department_id: Optional[UUID] = None
    attending_clinician_id: Optional[UUID] = None
    chief_complaint: Optional[str] = None
    diagnosis: Optional[str] = None
    disposition: Optional[str] = None
    created_by: Optional[UUID] = None
    started_at: datetime
    closed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
