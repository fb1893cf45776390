# medrec/api/deps.py

from typing import AsyncGenerator, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.core.exceptions import UnauthenticatedError
from medrec.core.security import decode_token
from medrec.core.database import get_session
from medrec.services.user_service import get_user_by_id
from medrec.models.user import User


# ------------------------------------------------------------
# HTTP Bearer Authentication
# ------------------------------------------------------------
# auto_error=False so a missing header gets our own 401 sub-code
bearer_scheme = HTTPBearer(auto_error=False)


# ------------------------------------------------------------
# DB Session
# ------------------------------------------------------------
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


# ------------------------------------------------------------
# Resolve the principal behind the bearer token
# ------------------------------------------------------------
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Validate the access token and load the user.
    Does not check is_active: the authorization engine owns that decision.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError(
            "Authentication required. Please provide a valid token.", code="MISSING_TOKEN"
        )

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Token has expired. Please login again.", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise UnauthenticatedError("Invalid authentication token.", code="INVALID_TOKEN")

    user = await get_user_by_id(session, payload["sub"])

    if not user:
        raise UnauthenticatedError("User not found. Token may be invalid.", code="USER_NOT_FOUND")

    return user
