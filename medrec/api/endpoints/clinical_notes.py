# medrec/api/endpoints/clinical_notes.py

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_db_session
from medrec.core.audit import audit_action
from medrec.core.rbac import RequirePermission
from medrec.models.clinical_note import ClinicalNote
from medrec.models.user import User
from medrec.schemas.clinical_note import ClinicalNoteCreate, ClinicalNoteRead, ClinicalNoteUpdate
from medrec.schemas.common import ApiResponse
from medrec.services import clinical_note_service, encounter_service, patient_service

router = APIRouter(prefix="/api/clinical-notes", tags=["Clinical Notes"])


async def note_author(note_id: UUID, session: AsyncSession = Depends(get_db_session)) -> dict:
    """Ownership context: a note is owned by the clinician who wrote it."""
    note = await clinical_note_service.get_note(session, note_id)
    return {"owner_id": note.clinician_id}


# -------------------------------------------------------------------
# READ
# -------------------------------------------------------------------
@router.get("/encounter/{encounter_id}", response_model=ApiResponse[List[ClinicalNoteRead]])
async def list_notes_for_encounter(
    encounter_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("clinicalNote", "read")),
):
    await encounter_service.get_encounter(session, encounter_id)
    notes = await clinical_note_service.list_notes_for_encounter(session, encounter_id)
    return ApiResponse(data=[ClinicalNoteRead.model_validate(n) for n in notes])


@router.get(
    "/encounter/{encounter_id}/type/{note_type}",
    response_model=ApiResponse[List[ClinicalNoteRead]],
)
async def list_notes_by_type(
    encounter_id: UUID,
    note_type: str,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("clinicalNote", "read")),
):
    await encounter_service.get_encounter(session, encounter_id)
    notes = await clinical_note_service.list_notes_for_encounter(session, encounter_id, note_type=note_type)
    return ApiResponse(data=[ClinicalNoteRead.model_validate(n) for n in notes])


@router.get("/patient/{patient_id}/latest-vitals", response_model=ApiResponse[Optional[ClinicalNoteRead]])
async def latest_vitals(
    patient_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("clinicalNote", "read")),
):
    await patient_service.get_patient(session, patient_id)
    note = await clinical_note_service.latest_vitals_note(session, patient_id)
    if note is None:
        return ApiResponse(message="No vitals recorded", data=None)
    return ApiResponse(data=ClinicalNoteRead.model_validate(note))


@router.get("/{note_id}", response_model=ApiResponse[ClinicalNoteRead])
async def get_note(
    note_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("clinicalNote", "read")),
):
    note = await clinical_note_service.get_note(session, note_id)
    return ApiResponse(data=ClinicalNoteRead.model_validate(note))


# -------------------------------------------------------------------
# WRITE
# -------------------------------------------------------------------
@router.post("/", response_model=ApiResponse[ClinicalNoteRead], status_code=status.HTTP_201_CREATED)
@audit_action("create", "clinicalNote")
async def create_note(
    data: ClinicalNoteCreate,
    session: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(RequirePermission("clinicalNote", "create")),
):
    note = await clinical_note_service.create_note(session, data, clinician_id=current_user.id)
    return ApiResponse(message="Clinical note added", data=ClinicalNoteRead.model_validate(note))


# Author only (admins excepted)
@router.put("/{note_id}", response_model=ApiResponse[ClinicalNoteRead])
@audit_action("update", "clinicalNote", id_param="note_id", before=ClinicalNote)
async def update_note(
    note_id: UUID,
    data: ClinicalNoteUpdate,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("clinicalNote", "update", context=note_author)),
):
    note = await clinical_note_service.get_note(session, note_id)
    note = await clinical_note_service.update_note(session, note, data)
    return ApiResponse(message="Clinical note updated", data=ClinicalNoteRead.model_validate(note))


@router.delete("/{note_id}", response_model=ApiResponse[None])
@audit_action("delete", "clinicalNote", id_param="note_id", before=ClinicalNote)
async def delete_note(
    note_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    _: User = Depends(RequirePermission("clinicalNote", "delete")),
):
    note = await clinical_note_service.get_note(session, note_id)
    await clinical_note_service.delete_note(session, note)
    return ApiResponse(message="Clinical note deleted")
