from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field
from medrec.models.user import UserRole


# ---------------------------------------------------------
# BASE
# ---------------------------------------------------------
class UserBase(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    phone: Optional[str] = None
    position: Optional[str] = None


# ---------------------------------------------------------
# CREATE USER (Admin creates any user)
# ---------------------------------------------------------
class UserCreate(UserBase):
    password: str = Field(min_length=6)
    role: UserRole

    class Config:
        json_schema_extra = {
            "examples": [
                {
                    "email": "lab.tech@hospital.org",
                    "first_name": "Ama",
                    "last_name": "Mensah",
                    "password": "password123",
                    "role": "lab_tech",
                }
            ]
        }


# ---------------------------------------------------------
# UPDATE USER (Admin edits)
# ---------------------------------------------------------
class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    role: Optional[UserRole] = None


# ---------------------------------------------------------
# SELF-SERVICE PROFILE UPDATE (no role, no email)
# ---------------------------------------------------------
class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    position: Optional[str] = None


class PasswordReset(BaseModel):
    new_password: str = Field(min_length=6)


# ---------------------------------------------------------
# READ USER (response)
# ---------------------------------------------------------
class UserRead(UserBase):
    id: UUID
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
