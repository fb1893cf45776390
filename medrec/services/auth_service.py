# medrec/services/auth_service.py

from typing import Optional

import jwt
from fastapi import Request
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.core.config import settings
from medrec.core.exceptions import BadRequestError, UnauthenticatedError
from medrec.core.security import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from medrec.models.user import User
from medrec.schemas.auth import AccessToken, TokenWithUser
from medrec.schemas.user import UserRead
from medrec.services.audit_service import log_auth_event
from medrec.services.user_service import get_user_by_email, get_user_by_id, set_password, touch_last_login

# Same message for unknown email and wrong password
INVALID_CREDENTIALS = "Invalid email or password"


def _access_token_for(user: User) -> str:
    return create_access_token(
        subject=str(user.id),
        data={"role": user.role.value},
    )


# ============================================================================
# LOGIN
# ============================================================================
async def login(session: AsyncSession, email: str, password: str, request: Optional[Request] = None) -> TokenWithUser:
    """
    Check credentials and issue a token pair.
    Every attempt writes exactly one `login` auth event, success or not.
    """
    user = await get_user_by_email(session, email)

    if not user or not verify_password(password, user.password_hash):
        await log_auth_event(
            user.id if user else None,
            "login",
            False,
            request,
            details={"email": email, "reason": "invalid credentials"},
            actor_role=user.role.value if user else None,
        )
        logger.info(f"Failed login attempt for {email}")
        raise UnauthenticatedError(INVALID_CREDENTIALS, code="INVALID_CREDENTIALS")

    if not user.is_active:
        await log_auth_event(
            user.id, "login", False, request,
            details={"email": email, "reason": "account inactive"},
            actor_role=user.role.value,
        )
        raise UnauthenticatedError(
            "User account is inactive. Please contact administrator.", code="ACCOUNT_INACTIVE"
        )

    await touch_last_login(session, user)
    await log_auth_event(user.id, "login", True, request, actor_role=user.role.value)

    return TokenWithUser(
        access_token=_access_token_for(user),
        refresh_token=create_refresh_token(str(user.id)),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserRead.model_validate(user),
    )


# ============================================================================
# TOKEN -> USER (refresh, logout)
# ============================================================================
async def _reject(
    action: str,
    reason: str,
    error: UnauthenticatedError,
    request: Optional[Request],
    user: Optional[User] = None,
) -> None:
    """Write the failed auth event, then raise."""
    await log_auth_event(
        user.id if user else None,
        action,
        False,
        request,
        details={"reason": reason},
        actor_role=user.role.value if user else None,
    )
    raise error


async def _user_for_token(
    session: AsyncSession,
    token: Optional[str],
    token_type: str,
    action: str,
    request: Optional[Request],
) -> User:
    """
    Resolve an active user from a token, logging one failed `action` event
    for every rejection (missing, expired, malformed, unknown user, inactive).
    """
    if not token:
        await _reject(action, "missing token", UnauthenticatedError(
            "Authentication required. Please provide a valid token.", code="MISSING_TOKEN"
        ), request)

    try:
        payload = decode_token(token, token_type=token_type)
    except jwt.ExpiredSignatureError:
        await _reject(action, "token expired", UnauthenticatedError(
            "Token has expired. Please login again.", code="TOKEN_EXPIRED"
        ), request)
    except jwt.InvalidTokenError:
        await _reject(action, "invalid token", UnauthenticatedError(
            "Invalid authentication token.", code="INVALID_TOKEN"
        ), request)

    user = await get_user_by_id(session, payload["sub"])
    if not user:
        await _reject(action, "user not found", UnauthenticatedError(
            "User not found. Token may be invalid.", code="USER_NOT_FOUND"
        ), request)
    if not user.is_active:
        await _reject(action, "account inactive", UnauthenticatedError(
            "User account is inactive. Please contact administrator.", code="ACCOUNT_INACTIVE"
        ), request, user)

    return user


# ============================================================================
# REFRESH
# ============================================================================
async def refresh(session: AsyncSession, refresh_token: str, request: Optional[Request] = None) -> AccessToken:
    user = await _user_for_token(session, refresh_token, REFRESH_TOKEN, "refresh", request)

    await log_auth_event(user.id, "refresh", True, request, actor_role=user.role.value)

    return AccessToken(
        access_token=_access_token_for(user),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


# ============================================================================
# LOGOUT
# ============================================================================
async def logout(session: AsyncSession, access_token: Optional[str], request: Optional[Request] = None) -> User:
    # Tokens are stateless; logout only leaves a trace in the audit trail
    user = await _user_for_token(session, access_token, ACCESS_TOKEN, "logout", request)
    await log_auth_event(user.id, "logout", True, request, actor_role=user.role.value)
    return user


# ============================================================================
# CHANGE OWN PASSWORD
# ============================================================================
async def change_password(session: AsyncSession, user: User, current_password: str, new_password: str) -> User:
    if not verify_password(current_password, user.password_hash):
        raise BadRequestError("Current password is incorrect", code="INVALID_PASSWORD")
    if current_password == new_password:
        raise BadRequestError("New password must differ from the current password")

    return await set_password(session, user, new_password)
