from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Vitals(BaseModel):
    temperature: Optional[float] = Field(default=None, ge=30, le=45)  # Celsius
    pulse: Optional[int] = Field(default=None, ge=30, le=250)  # bpm
    oxygen_saturation: Optional[float] = Field(default=None, ge=50, le=100)  # %
    respiratory_rate: Optional[int] = Field(default=None, ge=0, le=80)
    blood_pressure: Optional[str] = Field(default=None, pattern=r"^\d{2,3}/\d{2,3}$")
    weight: Optional[float] = Field(default=None, gt=0)


class ClinicalNoteCreate(BaseModel):
    encounter_id: UUID
    note_type: str = Field(min_length=1)
    content: str = Field(min_length=1)
    vitals: Optional[Vitals] = None


class ClinicalNoteUpdate(BaseModel):
    note_type: Optional[str] = None
    content: Optional[str] = None
    vitals: Optional[Vitals] = None


class ClinicalNoteRead(BaseModel):
    id: UUID
    encounter_id: UUID
    clinician_id: UUID
    note_type: str
    content: str
    vitals: Optional[dict] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
