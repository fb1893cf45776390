# medrec/api/endpoints/auth.py

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import bearer_scheme, get_current_user, get_db_session
from medrec.core.audit import audit_action
from medrec.core.config import settings
from medrec.core.rate_limiter import limiter
from medrec.core.rbac import RequirePermission
from medrec.models.user import User
from medrec.schemas.auth import (
    AccessToken,
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    TokenWithUser,
)
from medrec.schemas.common import ApiResponse
from medrec.schemas.user import ProfileUpdate, UserRead
from medrec.services import auth_service, user_service

router = APIRouter(prefix="/api/auth", tags=["Auth"])


async def own_profile(current_user: User = Depends(get_current_user)) -> dict:
    """/me always targets the caller's own account."""
    return {"owner_id": current_user.id}


# -------------------------------------------------------------------
# LOGIN
# -------------------------------------------------------------------
@router.post("/login", response_model=ApiResponse[TokenWithUser])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
):
    tokens = await auth_service.login(session, payload.email, payload.password, request)
    return ApiResponse(message="Login successful", data=tokens)


# -------------------------------------------------------------------
# REFRESH ACCESS TOKEN
# -------------------------------------------------------------------
@router.post("/refresh", response_model=ApiResponse[AccessToken])
async def refresh_token(
    request: Request,
    payload: RefreshRequest,
    session: AsyncSession = Depends(get_db_session),
):
    token = await auth_service.refresh(session, payload.refresh_token, request)
    return ApiResponse(data=token)


# -------------------------------------------------------------------
# LOGOUT
# -------------------------------------------------------------------
@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
):
    # Token is resolved here, not by a dependency, so failed attempts are audited too
    token = credentials.credentials if credentials else None
    await auth_service.logout(session, token, request)
    return ApiResponse(message="Logged out")


# -------------------------------------------------------------------
# OWN PROFILE
# -------------------------------------------------------------------
@router.get("/me", response_model=ApiResponse[UserRead])
async def get_me(
    current_user: User = Depends(RequirePermission("profile", "read", context=own_profile)),
):
    return ApiResponse(data=UserRead.model_validate(current_user))


@router.put("/me", response_model=ApiResponse[UserRead])
@audit_action("update_profile", "user")
async def update_me(
    data: ProfileUpdate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("profile", "update", context=own_profile)),
):
    user = await user_service.update_user(session, current_user, data)
    return ApiResponse(message="Profile updated", data=UserRead.model_validate(user))


@router.post("/change-password", response_model=ApiResponse[UserRead])
@audit_action("change_password", "user")
async def change_password(
    data: ChangePasswordRequest,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("profile", "update", context=own_profile)),
):
    user = await auth_service.change_password(
        session, current_user, data.current_password, data.new_password
    )
    return ApiResponse(message="Password changed", data=UserRead.model_validate(user))
