#medrec/models/audit.py

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from typing import Optional, Any
from uuid import UUID, uuid4
from datetime import datetime

from medrec.models.user import utc_now

# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite). None is SQL NULL.
JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: UUID = Field(default_factory=uuid4, primary_key=True)

    # Who did it (null for anonymous events, like a login with an unknown email)
    actor_id: Optional[UUID] = Field(default=None, foreign_key="users.id", index=True)

    # Role snapshot at the time of the action
    actor_role: Optional[str] = None

    # e.g. "create", "update", "approve", "deactivate", "login"
    action: str = Field(index=True)

    # e.g. "patient", "clinical_note", "result", "auth"
    entity_type: str = Field(index=True)
    entity_id: Optional[str] = Field(default=None, index=True)

    before_value: Optional[Any] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    after_value: Optional[Any] = Field(default=None, sa_column=Column(JSONType, nullable=True))

    # Security context
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    timestamp: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
