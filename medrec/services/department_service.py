# medrec/services/department_service.py

import uuid
from typing import List, Optional

from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.core.exceptions import ConflictError, NotFoundError
from medrec.models.department import Department
from medrec.models.encounter import Encounter
from medrec.models.user import utc_now
from medrec.schemas.department import DepartmentCreate, DepartmentUpdate


async def get_department(session: AsyncSession, department_id: uuid.UUID) -> Department:
    department = await session.get(Department, department_id)
    if not department:
        raise NotFoundError("Department not found")
    return department


async def list_departments(session: AsyncSession) -> List[Department]:
    result = await session.execute(select(Department).order_by(Department.name.asc()))
    return result.scalars().all()


async def _ensure_unique(
    session: AsyncSession,
    name: Optional[str],
    code: Optional[str],
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    # Names compare case-insensitively, codes exactly
    if name:
        query = select(Department).where(func.lower(Department.name) == name.lower())
        if exclude_id:
            query = query.where(Department.id != exclude_id)
        if (await session.execute(query)).scalars().first():
            raise ConflictError("Department with this name already exists")

    if code:
        query = select(Department).where(Department.code == code)
        if exclude_id:
            query = query.where(Department.id != exclude_id)
        if (await session.execute(query)).scalars().first():
            raise ConflictError("Department with this code already exists")


async def create_department(session: AsyncSession, data: DepartmentCreate) -> Department:
    await _ensure_unique(session, data.name, data.code)

    department = Department(**data.model_dump())
    session.add(department)
    await session.commit()
    await session.refresh(department)
    return department


async def update_department(session: AsyncSession, department: Department, data: DepartmentUpdate) -> Department:
    changes = data.model_dump(exclude_unset=True)
    await _ensure_unique(session, changes.get("name"), changes.get("code"), exclude_id=department.id)

    for field, value in changes.items():
        if value is not None:
            setattr(department, field, value)

    department.updated_at = utc_now()
    session.add(department)
    await session.commit()
    await session.refresh(department)
    return department


async def delete_department(session: AsyncSession, department: Department) -> None:
    in_use = await session.execute(
        select(func.count()).select_from(Encounter).where(Encounter.department_id == department.id)
    )
    if in_use.scalar_one() > 0:
        raise ConflictError("Department has encounters and cannot be deleted")

    await session.delete(department)
    await session.commit()
