# medrec/core/audit.py

"""
Audit interception for mutating endpoints.

    @router.put("/{patient_id}", response_model=ApiResponse[PatientRead])
    @audit_action("update", "patient", id_param="patient_id", before=Patient)
    async def update_patient(...): ...

The decorator runs the endpoint and inspects what it returned. A normal
return value (or a Response below 400) schedules exactly one audit record as
a background task. A raised error, or an error Response, records nothing.
The endpoint itself never touches the audit trail.
"""

import functools
import inspect
import json
import uuid
from typing import Any, Optional, Tuple, Type

from fastapi import BackgroundTasks, Request
from fastapi.encoders import jsonable_encoder
from loguru import logger
from sqlmodel import SQLModel
from starlette.responses import Response

from medrec.core.database import AsyncSessionLocal
from medrec.services import audit_service
from medrec.services.audit_service import AuditEntry, request_origin

_REQUEST_PARAM = "request"
_TASKS_PARAM = "audit_background_tasks"


async def load_before_snapshot(model: Type[SQLModel], entity_id: Optional[str]) -> Any:
    if not entity_id:
        return None
    try:
        key = uuid.UUID(str(entity_id))
    except ValueError:
        return None

    try:
        async with AsyncSessionLocal() as session:
            entity = await session.get(model, key)
            return entity.model_dump() if entity is not None else None
    except Exception:
        logger.exception(f"Failed to capture before state for {model.__name__} {entity_id}")
        return None


def _unwrap(encoded: Any) -> Tuple[bool, Any]:
    if isinstance(encoded, dict) and "data" in encoded:
        if encoded.get("success") is False:
            return False, None
        return True, encoded["data"]
    return True, encoded


def extract_outcome(result: Any) -> Tuple[bool, Any]:
    """Return (succeeded, payload) for whatever the endpoint returned."""
    if isinstance(result, Response):
        if result.status_code >= 400:
            return False, None
        body = getattr(result, "body", None)
        if body and result.media_type == "application/json":
            return _unwrap(json.loads(body))
        return True, None

    return _unwrap(jsonable_encoder(result))


def resolve_entity_id(payload: Any, path_id: Optional[str]) -> Optional[str]:
    if isinstance(payload, dict) and payload.get("id") is not None:
        return str(payload["id"])
    return path_id


def audit_action(
    action: str,
    entity_type: str,
    *,
    id_param: Optional[str] = None,
    before: Optional[Type[SQLModel]] = None,
):
    """
    Audit a successful call of the decorated endpoint as (action, entity_type).

    id_param: path parameter used as entity id when the payload has none.
    before:   model class whose current row is captured as before_value.
    """

    def decorator(endpoint):
        signature = inspect.signature(endpoint)
        wants_request = _REQUEST_PARAM in signature.parameters

        params = list(signature.parameters.values())
        if not wants_request:
            params.append(inspect.Parameter(
                _REQUEST_PARAM, inspect.Parameter.KEYWORD_ONLY, annotation=Request
            ))
        params.append(inspect.Parameter(
            _TASKS_PARAM, inspect.Parameter.KEYWORD_ONLY, annotation=BackgroundTasks
        ))

        @functools.wraps(endpoint)
        async def wrapper(*args, **kwargs):
            request: Request = kwargs[_REQUEST_PARAM] if wants_request else kwargs.pop(_REQUEST_PARAM)
            tasks: BackgroundTasks = kwargs.pop(_TASKS_PARAM)

            path_id = request.path_params.get(id_param) if id_param else None
            before_value = await load_before_snapshot(before, path_id) if before else None

            result = await endpoint(*args, **kwargs)

            succeeded, payload = extract_outcome(result)
            principal = getattr(request.state, "principal", None)
            if succeeded and principal is not None:
                tasks.add_task(
                    audit_service.audit_recorder.record,
                    AuditEntry(
                        actor_id=principal.id,
                        actor_role=principal.role.value,
                        action=action,
                        entity_type=entity_type,
                        entity_id=resolve_entity_id(payload, path_id),
                        before_value=before_value,
                        after_value=payload,
                        **request_origin(request),
                    ),
                )
            return result

        wrapper.__signature__ = signature.replace(parameters=params)
        wrapper.audit_labels = (action, entity_type)
        return wrapper

    return decorator
