# medrec/api/endpoints/encounters.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_db_session
from medrec.core.audit import audit_action
from medrec.core.rbac import RequirePermission
from medrec.models.encounter import Encounter
from medrec.models.enums import EncounterStatus, EncounterType
from medrec.models.user import User
from medrec.schemas.common import ApiResponse
from medrec.schemas.encounter import (
    ClinicianAssign,
    EncounterClose,
    EncounterCreate,
    EncounterRead,
    EncounterUpdate,
)
from medrec.services import encounter_service

router = APIRouter(prefix="/api/encounters", tags=["Encounters"])


@router.get("/", response_model=ApiResponse[List[EncounterRead]])
async def list_encounters(
    patient_id: Optional[UUID] = Query(None),
    status_filter: Optional[EncounterStatus] = Query(None, alias="status"),
    encounter_type: Optional[EncounterType] = Query(None),
    department_id: Optional[UUID] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("encounter", "read")),
):
    encounters = await encounter_service.list_encounters(
        session, patient_id, status_filter, encounter_type, department_id, limit, offset
    )
    return ApiResponse(data=[EncounterRead.model_validate(e) for e in encounters])


@router.get("/{encounter_id}", response_model=ApiResponse[EncounterRead])
async def get_encounter(
    encounter_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("encounter", "read")),
):
    encounter = await encounter_service.get_encounter(session, encounter_id)
    return ApiResponse(data=EncounterRead.model_validate(encounter))


# -------------------------------------------------------------------
# OPEN AN ENCOUNTER (OPD visit, IPD admission, emergency)
# -------------------------------------------------------------------
@router.post("/", response_model=ApiResponse[EncounterRead], status_code=status.HTTP_201_CREATED)
@audit_action("create", "encounter")
async def create_encounter(
    data: EncounterCreate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("encounter", "create")),
):
    encounter = await encounter_service.create_encounter(session, data, created_by=current_user.id)
    return ApiResponse(message="Encounter opened", data=EncounterRead.model_validate(encounter))


@router.put("/{encounter_id}", response_model=ApiResponse[EncounterRead])
@audit_action("update", "encounter", id_param="encounter_id", before=Encounter)
async def update_encounter(
    encounter_id: UUID,
    data: EncounterUpdate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("encounter", "update")),
):
    encounter = await encounter_service.get_encounter(session, encounter_id)
    encounter = await encounter_service.update_encounter(session, encounter, data)
    return ApiResponse(message="Encounter updated", data=EncounterRead.model_validate(encounter))


@router.post("/{encounter_id}/assign-clinician", response_model=ApiResponse[EncounterRead])
@audit_action("assign_clinician", "encounter", id_param="encounter_id", before=Encounter)
async def assign_clinician(
    encounter_id: UUID,
    data: ClinicianAssign,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("encounter", "update")),
):
    encounter = await encounter_service.get_encounter(session, encounter_id)
    encounter = await encounter_service.assign_clinician(session, encounter, data.clinician_id)
    return ApiResponse(message="Clinician assigned", data=EncounterRead.model_validate(encounter))


# -------------------------------------------------------------------
# CLOSE (discharge / end of visit)
# -------------------------------------------------------------------
@router.post("/{encounter_id}/close", response_model=ApiResponse[EncounterRead])
@audit_action("close", "encounter", id_param="encounter_id", before=Encounter)
async def close_encounter(
    encounter_id: UUID,
    data: EncounterClose,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("encounter", "close")),
):
    encounter = await encounter_service.get_encounter(session, encounter_id)
    encounter = await encounter_service.close_encounter(session, encounter, data)
    return ApiResponse(message="Encounter closed", data=EncounterRead.model_validate(encounter))
