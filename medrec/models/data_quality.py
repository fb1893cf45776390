# medrec/models/data_quality.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, Text
from datetime import datetime
from typing import Optional
import uuid

from medrec.models.enums import IssueSeverity, IssueStatus, enum_column
from medrec.models.user import utc_now


class DataQualityIssue(SQLModel, table=True):
    __tablename__ = "data_quality_issues"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # The record the issue was raised against, e.g. ("patient", "<uuid>")
    entity_type: str = Field(nullable=False, index=True)
    entity_id: Optional[str] = Field(default=None, index=True)

    issue_type: str = Field(nullable=False)  # "missing_field", "duplicate", "inconsistent"...
    description: str = Field(sa_column=Column(Text, nullable=False))

    severity: IssueSeverity = Field(
        default=IssueSeverity.Medium,
        sa_column=Column(enum_column(IssueSeverity, "issue_severity"), nullable=False)
    )
    status: IssueStatus = Field(
        default=IssueStatus.Open,
        sa_column=Column(enum_column(IssueStatus, "issue_status"), nullable=False, index=True)
    )

    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    assigned_to: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = Field(
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
