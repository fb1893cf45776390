# medrec/api/endpoints/patients.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_db_session
from medrec.core.audit import audit_action
from medrec.core.rbac import RequirePermission
from medrec.models.patient import Patient
from medrec.models.user import User
from medrec.schemas.common import ApiResponse
from medrec.schemas.encounter import EncounterRead
from medrec.schemas.patient import (
    DuplicateCheck,
    DuplicateCheckResult,
    PatientCreate,
    PatientRead,
    PatientUpdate,
)
from medrec.services import encounter_service, patient_service

router = APIRouter(prefix="/api/patients", tags=["Patients"])


# -------------------------------------------------------------------
# LIST / SEARCH
# -------------------------------------------------------------------
@router.get("/", response_model=ApiResponse[List[PatientRead]])
async def list_patients(
    search: Optional[str] = Query(None, description="Name, MRN, phone or national id"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("patient", "read")),
):
    patients = await patient_service.list_patients(session, search, limit, offset)
    return ApiResponse(data=[PatientRead.model_validate(p) for p in patients])


@router.get("/{patient_id}", response_model=ApiResponse[PatientRead])
async def get_patient(
    patient_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("patient", "read")),
):
    patient = await patient_service.get_patient(session, patient_id)
    return ApiResponse(data=PatientRead.model_validate(patient))


@router.get("/{patient_id}/encounters", response_model=ApiResponse[List[EncounterRead]])
async def get_patient_encounters(
    patient_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("encounter", "read")),
):
    await patient_service.get_patient(session, patient_id)
    encounters = await encounter_service.list_encounters(session, patient_id=patient_id, limit=200)
    return ApiResponse(data=[EncounterRead.model_validate(e) for e in encounters])


@router.get("/mrn/{mrn}", response_model=ApiResponse[PatientRead])
async def get_patient_by_mrn(
    mrn: str,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("patient", "read")),
):
    patient = await patient_service.get_patient_by_mrn(session, mrn)
    return ApiResponse(data=PatientRead.model_validate(patient))


# Run by the front desk before registering; nothing is written
@router.post("/check-duplicates", response_model=ApiResponse[DuplicateCheckResult])
async def check_duplicates(
    data: DuplicateCheck,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("patient", "create")),
):
    duplicates = await patient_service.find_potential_duplicates(
        session, data.first_name, data.last_name, data.date_of_birth
    )
    return ApiResponse(data=DuplicateCheckResult(
        has_duplicates=bool(duplicates),
        count=len(duplicates),
        duplicates=[PatientRead.model_validate(p) for p in duplicates],
    ))


# -------------------------------------------------------------------
# REGISTER
# -------------------------------------------------------------------
@router.post("/", response_model=ApiResponse[PatientRead], status_code=status.HTTP_201_CREATED)
@audit_action("create", "patient")
async def register_patient(
    data: PatientCreate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("patient", "create")),
):
    patient = await patient_service.create_patient(session, data, created_by=current_user.id)
    return ApiResponse(message="Patient registered", data=PatientRead.model_validate(patient))


# -------------------------------------------------------------------
# UPDATE
# -------------------------------------------------------------------
@router.put("/{patient_id}", response_model=ApiResponse[PatientRead])
@audit_action("update", "patient", id_param="patient_id", before=Patient)
async def update_patient(
    patient_id: UUID,
    data: PatientUpdate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("patient", "update")),
):
    patient = await patient_service.get_patient(session, patient_id)
    patient = await patient_service.update_patient(session, patient, data)
    return ApiResponse(message="Patient updated", data=PatientRead.model_validate(patient))


# -------------------------------------------------------------------
# DELETE (only patients without encounters)
# -------------------------------------------------------------------
@router.delete("/{patient_id}", response_model=ApiResponse[None])
@audit_action("delete", "patient", id_param="patient_id", before=Patient)
async def delete_patient(
    patient_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("patient", "delete")),
):
    patient = await patient_service.get_patient(session, patient_id)
    await patient_service.delete_patient(session, patient)
    return ApiResponse(message="Patient deleted")
