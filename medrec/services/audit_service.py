# medrec/services/audit_service.py

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from loguru import logger
from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medrec.core.database import AsyncSessionLocal
from medrec.core.rate_limiter import get_real_ip
from medrec.models.audit import AuditLog

AUTH_ENTITY = "auth"
REDACTED = "[REDACTED]"

# Keys never allowed into a before/after snapshot
SENSITIVE_KEYS = frozenset({
    "password",
    "password_hash",
    "current_password",
    "new_password",
    "old_password",
    "token",
    "access_token",
    "refresh_token",
    "secret",
    "authorization",
})


def redact(value: Any) -> Any:
    """Recursively mask credential fields in a JSON-compatible snapshot."""
    if isinstance(value, dict):
        return {
            k: (REDACTED if str(k).lower() in SENSITIVE_KEYS else redact(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def snapshot(value: Any) -> Any:
    """JSON-encode a model/dict for storage and strip credentials."""
    if value is None:
        return None
    return redact(jsonable_encoder(value))


@dataclass
class AuditEntry:
    action: str
    entity_type: str
    actor_id: Optional[UUID] = None
    actor_role: Optional[str] = None
    entity_id: Optional[str] = None
    before_value: Any = None
    after_value: Any = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditRecorder:
    """
    Writes audit records in a session of its own.
    Persisting is best effort: a failed write is logged and swallowed so the
    action being recorded is never rolled back or failed by it.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record(self, entry: AuditEntry) -> None:
        try:
            log_entry = AuditLog(
                actor_id=entry.actor_id,
                actor_role=entry.actor_role,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=str(entry.entity_id) if entry.entity_id is not None else None,
                before_value=snapshot(entry.before_value),
                after_value=snapshot(entry.after_value),
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
            )
            await self._persist(log_entry)
        except Exception:
            logger.exception(
                f"AUDIT LOG ERROR: failed to record {entry.action} "
                f"{entry.entity_type}/{entry.entity_id} by {entry.actor_id}"
            )

    async def _persist(self, log_entry: AuditLog) -> None:
        async with self.session_factory() as session:
            try:
                session.add(log_entry)
                await session.commit()
            except Exception:
                # Keep the connection healthy before re-raising to record()
                await session.rollback()
                raise


audit_recorder = AuditRecorder(AsyncSessionLocal)


def request_origin(request: Optional[Request]) -> Dict[str, Optional[str]]:
    if request is None:
        return {"ip_address": None, "user_agent": None}
    return {
        "ip_address": get_real_ip(request),
        "user_agent": request.headers.get("user-agent"),
    }


# ------------------------------------------------------------
# Authentication events (separate from CRUD interception)
# ------------------------------------------------------------
async def log_auth_event(
    actor_id: Optional[UUID],
    action: str,
    success: bool,
    request: Optional[Request] = None,
    details: Optional[Dict[str, Any]] = None,
    actor_role: Optional[str] = None,
) -> None:
    await audit_recorder.record(
        AuditEntry(
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            entity_type=AUTH_ENTITY,
            after_value={"success": success, "details": details},
            **request_origin(request),
        )
    )


async def log_access_denied(principal, resource: str, action: str, reason: str, request: Optional[Request] = None) -> None:
    await log_auth_event(
        principal.id,
        "access_denied",
        False,
        request,
        details={"resource": resource, "action": action, "reason": reason},
        actor_role=principal.role.value,
    )


# ------------------------------------------------------------
# Queries
# ------------------------------------------------------------
async def list_audit_logs(
    session: AsyncSession,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    actor_id: Optional[UUID] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[AuditLog]:
    query = select(AuditLog).order_by(AuditLog.timestamp.desc()).offset(offset).limit(limit)

    if action:
        query = query.where(AuditLog.action == action)
    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)
    if actor_id:
        query = query.where(AuditLog.actor_id == actor_id)

    result = await session.execute(query)
    return result.scalars().all()


async def get_entity_trail(session: AsyncSession, entity_type: str, entity_id: str, limit: int = 50) -> List[AuditLog]:
    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.timestamp.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def get_user_activity(session: AsyncSession, user_id: UUID, limit: int = 100) -> List[AuditLog]:
    return await list_audit_logs(session, actor_id=user_id, limit=limit)


async def count_actor_records(session: AsyncSession, user_id: UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(AuditLog).where(AuditLog.actor_id == user_id)
    )
    return result.scalar_one()
