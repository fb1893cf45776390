# medrec/api/endpoints/departments.py

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_db_session
from medrec.core.audit import audit_action
from medrec.core.rbac import RequirePermission
from medrec.models.department import Department
from medrec.models.user import User
from medrec.schemas.common import ApiResponse
from medrec.schemas.department import DepartmentCreate, DepartmentRead, DepartmentUpdate
from medrec.services import department_service

router = APIRouter(prefix="/api/departments", tags=["Departments"])


@router.get("/", response_model=ApiResponse[List[DepartmentRead]])
async def list_departments(
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("department", "read")),
):
    departments = await department_service.list_departments(session)
    return ApiResponse(data=[DepartmentRead.model_validate(d) for d in departments])


@router.get("/{department_id}", response_model=ApiResponse[DepartmentRead])
async def get_department(
    department_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("department", "read")),
):
    department = await department_service.get_department(session, department_id)
    return ApiResponse(data=DepartmentRead.model_validate(department))


@router.post("/", response_model=ApiResponse[DepartmentRead], status_code=status.HTTP_201_CREATED)
@audit_action("create", "department")
async def create_department(
    data: DepartmentCreate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("department", "create")),
):
    department = await department_service.create_department(session, data)
    return ApiResponse(message="Department created", data=DepartmentRead.model_validate(department))


@router.put("/{department_id}", response_model=ApiResponse[DepartmentRead])
@audit_action("update", "department", id_param="department_id", before=Department)
async def update_department(
    department_id: UUID,
    data: DepartmentUpdate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("department", "update")),
):
    department = await department_service.get_department(session, department_id)
    department = await department_service.update_department(session, department, data)
    return ApiResponse(message="Department updated", data=DepartmentRead.model_validate(department))


# Only departments no encounter points at
@router.delete("/{department_id}", response_model=ApiResponse[None])
@audit_action("delete", "department", id_param="department_id", before=Department)
async def delete_department(
    department_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("department", "delete")),
):
    department = await department_service.get_department(session, department_id)
    await department_service.delete_department(session, department)
    return ApiResponse(message="Department deleted")
