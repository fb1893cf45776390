# medrec/services/clinical_note_service.py

import uuid
from typing import List, Optional

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.core.exceptions import NotFoundError
from medrec.models.clinical_note import ClinicalNote
from medrec.models.encounter import Encounter
from medrec.models.user import utc_now
from medrec.schemas.clinical_note import ClinicalNoteCreate, ClinicalNoteUpdate
from medrec.services.encounter_service import ensure_open, get_encounter


async def get_note(session: AsyncSession, note_id: uuid.UUID) -> ClinicalNote:
    note = await session.get(ClinicalNote, note_id)
    if not note:
        raise NotFoundError("Clinical note not found")
    return note


async def list_notes_for_encounter(
    session: AsyncSession,
    encounter_id: uuid.UUID,
    note_type: Optional[str] = None,
) -> List[ClinicalNote]:
    query = (
        select(ClinicalNote)
        .where(ClinicalNote.encounter_id == encounter_id)
        .order_by(ClinicalNote.created_at.asc())
    )
    if note_type:
        query = query.where(ClinicalNote.note_type == note_type)

    result = await session.execute(query)
    return result.scalars().all()


async def latest_vitals_note(session: AsyncSession, patient_id: uuid.UUID) -> Optional[ClinicalNote]:
    """Most recent note with vitals across all of the patient's encounters."""
    result = await session.execute(
        select(ClinicalNote)
        .join(Encounter, Encounter.id == ClinicalNote.encounter_id)
        .where(Encounter.patient_id == patient_id, ClinicalNote.vitals.is_not(None))
        .order_by(ClinicalNote.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def create_note(session: AsyncSession, data: ClinicalNoteCreate, clinician_id: uuid.UUID) -> ClinicalNote:
    encounter = await get_encounter(session, data.encounter_id)
    # Notes are only written against an open encounter
    ensure_open(encounter)

    note = ClinicalNote(
        encounter_id=encounter.id,
        clinician_id=clinician_id,
        note_type=data.note_type,
        content=data.content,
        vitals=data.vitals.model_dump(exclude_none=True) if data.vitals else None,
    )
    session.add(note)
    await session.commit()
    await session.refresh(note)
    return note


async def update_note(session: AsyncSession, note: ClinicalNote, data: ClinicalNoteUpdate) -> ClinicalNote:
    changes = data.model_dump(exclude_unset=True, exclude={"vitals"})
    for field, value in changes.items():
        if value is not None:
            setattr(note, field, value)

    if data.vitals is not None:
        note.vitals = data.vitals.model_dump(exclude_none=True)

    note.updated_at = utc_now()
    session.add(note)
    await session.commit()
    await session.refresh(note)
    return note


async def delete_note(session: AsyncSession, note: ClinicalNote) -> None:
    await session.delete(note)
    await session.commit()
