from pydantic import BaseModel, EmailStr, Field

from medrec.schemas.user import UserRead


# -------------------------------------------------------------------
# LOGIN REQUEST
# -------------------------------------------------------------------
class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# -------------------------------------------------------------------
# TOKEN RESPONSES
# -------------------------------------------------------------------
class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenWithUser(TokenPair):
    user: UserRead


class RefreshRequest(BaseModel):
    refresh_token: str


class AccessToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# -------------------------------------------------------------------
# CHANGE PASSWORD
# -------------------------------------------------------------------
class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)
