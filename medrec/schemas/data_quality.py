from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from medrec.models.enums import IssueSeverity, IssueStatus


class IssueCreate(BaseModel):
    entity_type: str = Field(min_length=1)
    entity_id: Optional[str] = None
    issue_type: str = Field(min_length=1)
    description: str = Field(min_length=1)
    severity: IssueSeverity = IssueSeverity.Medium


class IssueUpdate(BaseModel):
    issue_type: Optional[str] = None
    description: Optional[str] = None
    severity: Optional[IssueSeverity] = None


class IssueAssign(BaseModel):
    assignee_id: UUID


class IssueResolve(BaseModel):
    resolution: str = Field(min_length=1)


class IssueDismiss(BaseModel):
    reason: str = Field(min_length=1)


class IssueRead(BaseModel):
    id: UUID
    entity_type: str
    entity_id: Optional[str] = None
    issue_type: str
    description: str
    severity: IssueSeverity
    status: IssueStatus
    created_by: UUID
    assigned_to: Optional[UUID] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
