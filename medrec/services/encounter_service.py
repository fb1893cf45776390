# medrec/services/encounter_service.py

import uuid
from typing import List, Optional

from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.core.exceptions import BadRequestError, NotFoundError, StateConflictError
from medrec.models.encounter import Encounter
from medrec.models.enums import EncounterStatus, EncounterType
from medrec.models.user import UserRole, utc_now
from medrec.schemas.encounter import EncounterClose, EncounterCreate, EncounterUpdate
from medrec.services.department_service import get_department
from medrec.services.patient_service import get_patient
from medrec.services.user_service import get_user_or_404

# Roles that can be the attending clinician of an encounter
ATTENDING_ROLES = {UserRole.Clinician, UserRole.Admin}


async def get_encounter(session: AsyncSession, encounter_id: uuid.UUID) -> Encounter:
    encounter = await session.get(Encounter, encounter_id)
    if not encounter:
        raise NotFoundError("Encounter not found")
    return encounter


def ensure_open(encounter: Encounter) -> None:
    if encounter.status == EncounterStatus.Closed:
        raise StateConflictError("Encounter is closed", state=EncounterStatus.Closed.value)


async def list_encounters(
    session: AsyncSession,
    patient_id: Optional[uuid.UUID] = None,
    status: Optional[EncounterStatus] = None,
    encounter_type: Optional[EncounterType] = None,
    department_id: Optional[uuid.UUID] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Encounter]:
    query = select(Encounter).order_by(Encounter.started_at.desc()).offset(offset).limit(limit)

    if patient_id:
        query = query.where(Encounter.patient_id == patient_id)
    if status:
        query = query.where(Encounter.status == status)
    if encounter_type:
        query = query.where(Encounter.encounter_type == encounter_type)
    if department_id:
        query = query.where(Encounter.department_id == department_id)

    result = await session.execute(query)
    return result.scalars().all()


async def create_encounter(session: AsyncSession, data: EncounterCreate, created_by: uuid.UUID) -> Encounter:
    await get_patient(session, data.patient_id)
    if data.department_id:
        await get_department(session, data.department_id)

    encounter = Encounter(**data.model_dump(), created_by=created_by)
    session.add(encounter)
    await session.commit()
    await session.refresh(encounter)
    return encounter


async def update_encounter(session: AsyncSession, encounter: Encounter, data: EncounterUpdate) -> Encounter:
    ensure_open(encounter)
    if data.department_id:
        await get_department(session, data.department_id)

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(encounter, field, value)

    encounter.updated_at = utc_now()
    session.add(encounter)
    await session.commit()
    await session.refresh(encounter)
    return encounter


async def close_encounter(session: AsyncSession, encounter: Encounter, data: EncounterClose) -> Encounter:
    ensure_open(encounter)

    encounter.status = EncounterStatus.Closed
    encounter.disposition = data.disposition
    if data.diagnosis:
        encounter.diagnosis = data.diagnosis
    encounter.closed_at = utc_now()
    encounter.updated_at = encounter.closed_at

    session.add(encounter)
    await session.commit()
    await session.refresh(encounter)
    return encounter


async def assign_clinician(session: AsyncSession, encounter: Encounter, clinician_id: uuid.UUID) -> Encounter:
    ensure_open(encounter)

    clinician = await get_user_or_404(session, clinician_id)
    if clinician.role not in ATTENDING_ROLES or not clinician.is_active:
        raise BadRequestError("User is not an active clinician", code="NOT_A_CLINICIAN")

    encounter.attending_clinician_id = clinician.id
    encounter.updated_at = utc_now()
    session.add(encounter)
    await session.commit()
    await session.refresh(encounter)
    return encounter
