# medrec/models/encounter.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime
from datetime import datetime
from typing import Optional
import uuid

from medrec.models.enums import EncounterStatus, EncounterType, enum_column
from medrec.models.user import utc_now


class Encounter(SQLModel, table=True):
    __tablename__ = "encounters"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    patient_id: uuid.UUID = Field(foreign_key="patients.id", nullable=False, index=True)

    encounter_type: EncounterType = Field(
        sa_column=Column(enum_column(EncounterType, "encounter_type"), nullable=False)
    )
    status: EncounterStatus = Field(
        default=EncounterStatus.Open,
        sa_column=Column(enum_column(EncounterStatus, "encounter_status"), nullable=False)
    )

    department_id: Optional[uuid.UUID] = Field(default=None, foreign_key="departments.id", index=True)
    attending_clinician_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    chief_complaint: Optional[str] = None
    diagnosis: Optional[str] = None
    disposition: Optional[str] = None

    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    started_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    closed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
