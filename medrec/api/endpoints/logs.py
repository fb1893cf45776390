# medrec/api/endpoints/logs.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_db_session
from medrec.core.rbac import RequirePermission
from medrec.models.user import User
from medrec.schemas.audit import AuditLogRead
from medrec.schemas.common import ApiResponse
from medrec.services import audit_service

router = APIRouter(prefix="/api/audit-logs", tags=["Audit Logs"])


# -------------------------------------------------------------------
# VIEW AUDIT TRAIL (CRUD actions, logins, denials)
# -------------------------------------------------------------------
@router.get("/", response_model=ApiResponse[List[AuditLogRead]])
async def get_audit_logs(
    action: Optional[str] = Query(None, description="Filter by action, e.g. login, update"),
    entity_type: Optional[str] = Query(None, description="Filter by entity type, e.g. patient, auth"),
    actor_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("auditLog", "read")),
):
    logs = await audit_service.list_audit_logs(session, action, entity_type, actor_id, limit, offset)
    return ApiResponse(data=[AuditLogRead.model_validate(log) for log in logs])


@router.get("/entity/{entity_type}/{entity_id}", response_model=ApiResponse[List[AuditLogRead]])
async def get_entity_trail(
    entity_type: str,
    entity_id: str,
    limit: int = Query(50, ge=1, le=500),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("auditLog", "read")),
):
    """Full history of one record, newest first."""
    logs = await audit_service.get_entity_trail(session, entity_type, entity_id, limit)
    return ApiResponse(data=[AuditLogRead.model_validate(log) for log in logs])


@router.get("/user/{user_id}", response_model=ApiResponse[List[AuditLogRead]])
async def get_user_activity(
    user_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("auditLog", "read")),
):
    logs = await audit_service.get_user_activity(session, user_id, limit)
    return ApiResponse(data=[AuditLogRead.model_validate(log) for log in logs])
