import os
import tempfile
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ------------------------------------------------------------------
# FORCE TESTING MODE
# Settings are read when medrec.core.config is first imported, so the
# environment must be in place BEFORE importing medrec.main.
# ------------------------------------------------------------------
_DB_DIR = tempfile.mkdtemp(prefix="medrec-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENV"] = "test"
os.environ.pop("REDIS_URL", None)

from sqlmodel import SQLModel  # noqa: E402

from medrec.main import app  # noqa: E402
from medrec.core.database import AsyncSessionLocal, engine  # noqa: E402
from medrec.core.security import create_access_token, hash_password  # noqa: E402
from medrec.models.user import User, UserRole  # noqa: E402
import medrec.models  # noqa: E402,F401

DEFAULT_PASSWORD = "password123"
# Hashing is slow; every fixture user shares one hash
_PASSWORD_HASH = hash_password(DEFAULT_PASSWORD)


@pytest_asyncio.fixture
async def db():
    """Fresh tables for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@pytest_asyncio.fixture
async def client(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest_asyncio.fixture
async def session(db):
    async with AsyncSessionLocal() as s:
        yield s


@pytest.fixture
def make_user(db):
    """Insert a user with the given role and return it."""

    async def _make(role: UserRole = UserRole.Clinician, active: bool = True, email: str = None) -> User:
        user = User(
            email=email or f"{role.value}.{uuid.uuid4().hex[:8]}@hospital.org",
            password_hash=_PASSWORD_HASH,
            first_name=role.value.replace("_", " ").title(),
            last_name="Tester",
            role=role,
            is_active=active,
        )
        async with AsyncSessionLocal() as s:
            s.add(user)
            await s.commit()
            await s.refresh(user)
        return user

    return _make


def auth_headers(user: User) -> dict:
    token = create_access_token(subject=str(user.id), data={"role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def audit_rows():
    """Fetch audit records, optionally filtered by action / entity type."""
    from sqlmodel import select
    from medrec.models.audit import AuditLog

    async def _rows(action: str = None, entity_type: str = None):
        query = select(AuditLog).order_by(AuditLog.timestamp.asc())
        if action:
            query = query.where(AuditLog.action == action)
        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
        async with AsyncSessionLocal() as s:
            result = await s.execute(query)
            return result.scalars().all()

    return _rows
