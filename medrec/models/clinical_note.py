# medrec/models/clinical_note.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, Text
from datetime import datetime
from typing import Optional, Dict, Any
import uuid

from medrec.models.audit import JSONType
from medrec.models.user import utc_now


class ClinicalNote(SQLModel, table=True):
    __tablename__ = "clinical_notes"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    encounter_id: uuid.UUID = Field(foreign_key="encounters.id", nullable=False, index=True)

    # Author; only the author may edit the note
    clinician_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    # e.g. "progress", "admission", "discharge", "vitals"
    note_type: str = Field(nullable=False, index=True)
    content: str = Field(sa_column=Column(Text, nullable=False))

    # {"temperature": 37.1, "pulse": 80, "oxygen_saturation": 98, "blood_pressure": "120/80"}
    vitals: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
