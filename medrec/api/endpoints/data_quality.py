# medrec/api/endpoints/data_quality.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_current_user, get_db_session
from medrec.core.audit import audit_action
from medrec.core.rbac import RequirePermission
from medrec.models.data_quality import DataQualityIssue
from medrec.models.enums import IssueSeverity, IssueStatus
from medrec.models.user import User
from medrec.schemas.common import ApiResponse
from medrec.schemas.data_quality import (
    IssueAssign,
    IssueCreate,
    IssueDismiss,
    IssueRead,
    IssueResolve,
    IssueUpdate,
)
from medrec.services import data_quality_service

router = APIRouter(prefix="/api/data-quality", tags=["Data Quality"])


async def own_assignments(current_user: User = Depends(get_current_user)) -> dict:
    return {"owner_id": current_user.id}


@router.get("/", response_model=ApiResponse[List[IssueRead]])
async def list_issues(
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    severity: Optional[IssueSeverity] = Query(None),
    entity_type: Optional[str] = Query(None),
    assigned_to: Optional[UUID] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("dataQuality", "read")),
):
    issues = await data_quality_service.list_issues(
        session, status_filter, severity, entity_type, assigned_to, limit, offset
    )
    return ApiResponse(data=[IssueRead.model_validate(i) for i in issues])


@router.get("/my-issues", response_model=ApiResponse[List[IssueRead]])
async def my_issues(
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("assignedIssue", "read", context=own_assignments)),
):
    issues = await data_quality_service.list_assigned_to(session, current_user.id)
    return ApiResponse(data=[IssueRead.model_validate(i) for i in issues])


@router.get("/{issue_id}", response_model=ApiResponse[IssueRead])
async def get_issue(
    issue_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("dataQuality", "read")),
):
    issue = await data_quality_service.get_issue(session, issue_id)
    return ApiResponse(data=IssueRead.model_validate(issue))


@router.post("/", response_model=ApiResponse[IssueRead], status_code=status.HTTP_201_CREATED)
@audit_action("create", "dataQuality")
async def raise_issue(
    data: IssueCreate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("dataQuality", "create")),
):
    issue = await data_quality_service.create_issue(session, data, created_by=current_user.id)
    return ApiResponse(message="Issue raised", data=IssueRead.model_validate(issue))


@router.put("/{issue_id}", response_model=ApiResponse[IssueRead])
@audit_action("update", "dataQuality", id_param="issue_id", before=DataQualityIssue)
async def update_issue(
    issue_id: UUID,
    data: IssueUpdate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("dataQuality", "update")),
):
    issue = await data_quality_service.get_issue(session, issue_id)
    issue = await data_quality_service.update_issue(session, issue, data)
    return ApiResponse(message="Issue updated", data=IssueRead.model_validate(issue))


# -------------------------------------------------------------------
# WORKFLOW: open -> in_progress -> resolved | dismissed
# -------------------------------------------------------------------
@router.post("/{issue_id}/assign", response_model=ApiResponse[IssueRead])
@audit_action("assign", "dataQuality", id_param="issue_id", before=DataQualityIssue)
async def assign_issue(
    issue_id: UUID,
    data: IssueAssign,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("dataQuality", "update")),
):
    issue = await data_quality_service.get_issue(session, issue_id)
    issue = await data_quality_service.assign_issue(session, issue, data.assignee_id)
    return ApiResponse(message="Issue assigned", data=IssueRead.model_validate(issue))


@router.post("/{issue_id}/resolve", response_model=ApiResponse[IssueRead])
@audit_action("resolve", "dataQuality", id_param="issue_id", before=DataQualityIssue)
async def resolve_issue(
    issue_id: UUID,
    data: IssueResolve,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("dataQuality", "update")),
):
    issue = await data_quality_service.get_issue(session, issue_id)
    issue = await data_quality_service.resolve_issue(session, issue, data.resolution)
    return ApiResponse(message="Issue resolved", data=IssueRead.model_validate(issue))


@router.post("/{issue_id}/dismiss", response_model=ApiResponse[IssueRead])
@audit_action("dismiss", "dataQuality", id_param="issue_id", before=DataQualityIssue)
async def dismiss_issue(
    issue_id: UUID,
    data: IssueDismiss,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("dataQuality", "update")),
):
    issue = await data_quality_service.get_issue(session, issue_id)
    issue = await data_quality_service.dismiss_issue(session, issue, data.reason)
    return ApiResponse(message="Issue dismissed", data=IssueRead.model_validate(issue))
