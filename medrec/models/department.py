# medrec/models/department.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, String
from datetime import datetime
from typing import Optional
import uuid

from medrec.models.user import utc_now


class Department(SQLModel, table=True):
    __tablename__ = "departments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    name: str = Field(
        sa_column=Column(String(128), nullable=False, unique=True)
    )
    code: Optional[str] = Field(
        default=None,
        sa_column=Column(String(32), nullable=True, unique=True)
    )
    description: Optional[str] = None

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
