# medrec/models/patient.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Date, DateTime
from datetime import date, datetime
from typing import Optional
import uuid

from medrec.models.user import utc_now


class Patient(SQLModel, table=True):
    __tablename__ = "patients"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Medical Record Number, unique per hospital
    mrn: str = Field(nullable=False, index=True, unique=True)

    first_name: str = Field(nullable=False, index=True)
    last_name: str = Field(nullable=False, index=True)
    sex: str = Field(nullable=False)
    date_of_birth: date = Field(sa_column=Column(Date, nullable=False))

    phone: Optional[str] = None
    address: Optional[str] = None
    national_id: Optional[str] = Field(default=None, index=True)
    next_of_kin_name: Optional[str] = None
    next_of_kin_phone: Optional[str] = None

    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
