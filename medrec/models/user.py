# medrec/models/user.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, String
from datetime import datetime, timezone
import uuid
from enum import Enum
from typing import Optional

from medrec.models.enums import enum_column


class UserRole(str, Enum):
    Admin = "admin"
    RecordsStaff = "records_staff"
    Clinician = "clinician"
    LabTech = "lab_tech"
    Radiographer = "radiographer"
    DataManager = "data_manager"
    Viewer = "viewer"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    email: str = Field(nullable=False, index=True, unique=True)
    password_hash: str = Field(nullable=False)
    first_name: str = Field(nullable=False)
    last_name: str = Field(nullable=False)

    phone: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))
    position: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))

    role: UserRole = Field(
        sa_column=Column(enum_column(UserRole, "user_role"), nullable=False)
    )

    # Deactivated accounts keep their row so audit records stay resolvable
    is_active: bool = Field(default=True, nullable=False)

    last_login: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
