# medrec/services/user_service.py

from typing import List, Optional
import uuid

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from medrec.core.exceptions import ConflictError, NotFoundError
from medrec.core.security import hash_password
from medrec.models.user import User, UserRole, utc_now
from medrec.schemas.user import ProfileUpdate, UserCreate, UserUpdate
from medrec.services.audit_service import count_actor_records


def _as_uuid(value) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


# ============================================================================
# FETCH
# ============================================================================
async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id) -> User | None:
    key = _as_uuid(user_id)
    if key is None:
        return None
    return await session.get(User, key)


async def get_user_or_404(session: AsyncSession, user_id) -> User:
    user = await get_user_by_id(session, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def list_users(
    session: AsyncSession,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> List[User]:
    query = select(User).order_by(User.created_at.desc())

    if role:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active == is_active)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            (User.first_name.ilike(pattern))
            | (User.last_name.ilike(pattern))
            | (User.email.ilike(pattern))
        )

    result = await session.execute(query)
    return result.scalars().all()


# ============================================================================
# CREATE
# ============================================================================
async def create_user(session: AsyncSession, data: UserCreate) -> User:
    email = data.email.lower()
    if await get_user_by_email(session, email):
        raise ConflictError("User with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        position=data.position,
        role=data.role,
    )
    session.add(user)

    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("User with this email already exists")

    await session.refresh(user)
    return user


# ============================================================================
# UPDATE
# ============================================================================
async def update_user(session: AsyncSession, user: User, data: UserUpdate | ProfileUpdate) -> User:
    changes = data.model_dump(exclude_unset=True)

    email = changes.pop("email", None)
    if email and email.lower() != user.email:
        if await get_user_by_email(session, email):
            raise ConflictError("Email already in use")
        user.email = email.lower()

    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)

    user.updated_at = utc_now()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def set_password(session: AsyncSession, user: User, new_password: str) -> User:
    user.password_hash = hash_password(new_password)
    user.updated_at = utc_now()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def set_active(session: AsyncSession, user: User, active: bool) -> User:
    user.is_active = active
    user.updated_at = utc_now()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def touch_last_login(session: AsyncSession, user: User) -> None:
    user.last_login = utc_now()
    session.add(user)
    await session.commit()
    await session.refresh(user)


# ============================================================================
# DELETE (hard)
# ============================================================================
async def delete_user(session: AsyncSession, user: User) -> None:
    """
    Remove the row for good. Accounts that appear in the audit trail are
    refused; deactivate those instead.
    """
    if await count_actor_records(session, user.id) > 0:
        raise ConflictError(
            "User has audit history and cannot be deleted. Deactivate the account instead."
        )

    await session.delete(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("User is still referenced by other records. Deactivate the account instead.")


# ============================================================================
# SUPER ADMIN SEEDING
# ============================================================================
async def ensure_super_admin(session: AsyncSession, email: str, password: str, name: str) -> Optional[User]:
    if not email or not password:
        return None

    existing = await get_user_by_email(session, email)
    if existing:
        return existing

    first_name, _, last_name = name.partition(" ")
    user = User(
        email=email.lower(),
        password_hash=hash_password(password),
        first_name=first_name or "Super",
        last_name=last_name or "Admin",
        role=UserRole.Admin,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user
