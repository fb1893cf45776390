# medrec/services/data_quality_service.py

import uuid
from typing import List, Optional

from sqlmodel import select
from sqlalchemy import case
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.core.exceptions import BadRequestError, NotFoundError, StateConflictError
from medrec.models.data_quality import DataQualityIssue
from medrec.models.enums import IssueSeverity, IssueStatus
from medrec.models.user import utc_now
from medrec.schemas.data_quality import IssueCreate, IssueUpdate
from medrec.services.user_service import get_user_by_id

TERMINAL_STATES = {IssueStatus.Resolved, IssueStatus.Dismissed}


async def get_issue(session: AsyncSession, issue_id: uuid.UUID) -> DataQualityIssue:
    issue = await session.get(DataQualityIssue, issue_id)
    if not issue:
        raise NotFoundError("Data quality issue not found")
    return issue


def _ensure_not_terminal(issue: DataQualityIssue) -> None:
    if issue.status in TERMINAL_STATES:
        raise StateConflictError(f"Issue is already {issue.status.value}", state=issue.status.value)


async def list_issues(
    session: AsyncSession,
    status: Optional[IssueStatus] = None,
    severity: Optional[IssueSeverity] = None,
    entity_type: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[DataQualityIssue]:
    query = (
        select(DataQualityIssue)
        .order_by(DataQualityIssue.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    if status:
        query = query.where(DataQualityIssue.status == status)
    if severity:
        query = query.where(DataQualityIssue.severity == severity)
    if entity_type:
        query = query.where(DataQualityIssue.entity_type == entity_type)
    if assigned_to:
        query = query.where(DataQualityIssue.assigned_to == assigned_to)

    result = await session.execute(query)
    return result.scalars().all()


async def create_issue(session: AsyncSession, data: IssueCreate, created_by: uuid.UUID) -> DataQualityIssue:
    issue = DataQualityIssue(**data.model_dump(), created_by=created_by)
    session.add(issue)
    await session.commit()
    await session.refresh(issue)
    return issue


async def _save(session: AsyncSession, issue: DataQualityIssue) -> DataQualityIssue:
    issue.updated_at = utc_now()
    session.add(issue)
    await session.commit()
    await session.refresh(issue)
    return issue


async def update_issue(session: AsyncSession, issue: DataQualityIssue, data: IssueUpdate) -> DataQualityIssue:
    _ensure_not_terminal(issue)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(issue, field, value)
    return await _save(session, issue)


async def assign_issue(session: AsyncSession, issue: DataQualityIssue, assignee_id: uuid.UUID) -> DataQualityIssue:
    _ensure_not_terminal(issue)

    assignee = await get_user_by_id(session, assignee_id)
    if not assignee or not assignee.is_active:
        raise BadRequestError("Assignee must be an active user")

    issue.assigned_to = assignee.id
    issue.status = IssueStatus.InProgress
    return await _save(session, issue)


async def resolve_issue(session: AsyncSession, issue: DataQualityIssue, resolution: str) -> DataQualityIssue:
    _ensure_not_terminal(issue)
    issue.status = IssueStatus.Resolved
    issue.resolution = resolution
    issue.resolved_at = utc_now()
    return await _save(session, issue)


async def dismiss_issue(session: AsyncSession, issue: DataQualityIssue, reason: str) -> DataQualityIssue:
    _ensure_not_terminal(issue)
    issue.status = IssueStatus.Dismissed
    issue.resolution = reason
    issue.resolved_at = utc_now()
    return await _save(session, issue)


async def list_assigned_to(session: AsyncSession, user_id: uuid.UUID) -> List[DataQualityIssue]:
    """Open work for one assignee: most severe first, then oldest."""
    rank = case(
        (DataQualityIssue.severity == IssueSeverity.Critical, 0),
        (DataQualityIssue.severity == IssueSeverity.High, 1),
        (DataQualityIssue.severity == IssueSeverity.Medium, 2),
        else_=3,
    )
    result = await session.execute(
        select(DataQualityIssue)
        .where(
            DataQualityIssue.assigned_to == user_id,
            DataQualityIssue.status.in_([IssueStatus.Open, IssueStatus.InProgress]),
        )
        .order_by(rank, DataQualityIssue.created_at.asc())
    )
    return result.scalars().all()
