# medrec/api/endpoints/users.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_db_session
from medrec.core.audit import audit_action
from medrec.core.exceptions import BadRequestError
from medrec.core.rbac import RequirePermission
from medrec.models.user import User, UserRole
from medrec.schemas.common import ApiResponse
from medrec.schemas.user import PasswordReset, UserCreate, UserRead, UserUpdate
from medrec.services import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


# -------------------------------------------------------------------
# List / get users (Admin only)
# -------------------------------------------------------------------
@router.get("/", response_model=ApiResponse[List[UserRead]])
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("user", "read")),
):
    users = await user_service.list_users(session, role, is_active, search)
    return ApiResponse(data=[UserRead.model_validate(u) for u in users])


@router.get("/{user_id}", response_model=ApiResponse[UserRead])
async def get_user(
    user_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("user", "read")),
):
    user = await user_service.get_user_or_404(session, user_id)
    return ApiResponse(data=UserRead.model_validate(user))


# -------------------------------------------------------------------
# Create ANY user (Admin only)
# -------------------------------------------------------------------
@router.post("/", response_model=ApiResponse[UserRead], status_code=status.HTTP_201_CREATED)
@audit_action("create", "user")
async def create_user(
    data: UserCreate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("user", "create")),
):
    user = await user_service.create_user(session, data)
    return ApiResponse(message="User created", data=UserRead.model_validate(user))


@router.put("/{user_id}", response_model=ApiResponse[UserRead])
@audit_action("update", "user", id_param="user_id", before=User)
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("user", "update")),
):
    user = await user_service.get_user_or_404(session, user_id)
    user = await user_service.update_user(session, user, data)
    return ApiResponse(message="User updated", data=UserRead.model_validate(user))


@router.post("/{user_id}/reset-password", response_model=ApiResponse[UserRead])
@audit_action("reset_password", "user", id_param="user_id")
async def reset_password(
    user_id: UUID,
    data: PasswordReset,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("user", "update")),
):
    user = await user_service.get_user_or_404(session, user_id)
    user = await user_service.set_password(session, user, data.new_password)
    return ApiResponse(message="Password reset", data=UserRead.model_validate(user))


# -------------------------------------------------------------------
# Soft: deactivate / activate (row kept, audit trail stays resolvable)
# -------------------------------------------------------------------
@router.post("/{user_id}/deactivate", response_model=ApiResponse[UserRead])
@audit_action("deactivate", "user", id_param="user_id", before=User)
async def deactivate_user(
    user_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("user", "update")),
):
    if user_id == current_user.id:
        raise BadRequestError("You cannot deactivate your own account")

    user = await user_service.get_user_or_404(session, user_id)
    user = await user_service.set_active(session, user, False)
    return ApiResponse(message="User deactivated", data=UserRead.model_validate(user))


@router.post("/{user_id}/activate", response_model=ApiResponse[UserRead])
@audit_action("activate", "user", id_param="user_id", before=User)
async def activate_user(
    user_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("user", "update")),
):
    user = await user_service.get_user_or_404(session, user_id)
    user = await user_service.set_active(session, user, True)
    return ApiResponse(message="User activated", data=UserRead.model_validate(user))


# -------------------------------------------------------------------
# Hard delete (only accounts with no audit history)
# -------------------------------------------------------------------
@router.delete("/{user_id}", response_model=ApiResponse[None])
@audit_action("delete", "user", id_param="user_id", before=User)
async def delete_user(
    user_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("user", "delete")),
):
    if user_id == current_user.id:
        raise BadRequestError("You cannot delete your own account")

    user = await user_service.get_user_or_404(session, user_id)
    await user_service.delete_user(session, user)
    return ApiResponse(message="User deleted")
