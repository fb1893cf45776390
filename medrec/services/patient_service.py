# medrec/services/patient_service.py

import secrets
import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from medrec.core.exceptions import ConflictError, NotFoundError
from medrec.models.encounter import Encounter
from medrec.models.patient import Patient
from medrec.models.user import utc_now
from medrec.schemas.patient import PatientCreate, PatientUpdate

MRN_PREFIX = "MRN"


def generate_mrn() -> str:
    """Unique-enough record number, e.g. MRN-20250114-7F3A9C."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{MRN_PREFIX}-{stamp}-{secrets.token_hex(3).upper()}"


async def get_patient(session: AsyncSession, patient_id: uuid.UUID) -> Patient:
    patient = await session.get(Patient, patient_id)
    if not patient:
        raise NotFoundError("Patient not found")
    return patient


async def list_patients(
    session: AsyncSession,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Patient]:
    query = select(Patient).order_by(Patient.created_at.desc()).offset(offset).limit(limit)

    if search:
        pattern = f"%{search}%"
        query = query.where(
            (Patient.first_name.ilike(pattern))
            | (Patient.last_name.ilike(pattern))
            | (Patient.mrn.ilike(pattern))
            | (Patient.phone.ilike(pattern))
            | (Patient.national_id.ilike(pattern))
        )

    result = await session.execute(query)
    return result.scalars().all()


async def get_patient_by_mrn(session: AsyncSession, mrn: str) -> Patient:
    result = await session.execute(select(Patient).where(Patient.mrn == mrn.strip().upper()))
    patient = result.scalars().first()
    if not patient:
        raise NotFoundError("Patient not found")
    return patient


async def find_potential_duplicates(
    session: AsyncSession,
    first_name: str,
    last_name: str,
    date_of_birth: Optional[date] = None,
    limit: int = 5,
) -> List[Patient]:
    """Same name (case-insensitive) and, when given, the same date of birth."""
    query = select(Patient).where(
        func.lower(Patient.first_name) == first_name.strip().lower(),
        func.lower(Patient.last_name) == last_name.strip().lower(),
    )
    if date_of_birth:
        query = query.where(Patient.date_of_birth == date_of_birth)

    result = await session.execute(query.limit(limit))
    return result.scalars().all()


async def create_patient(session: AsyncSession, data: PatientCreate, created_by: uuid.UUID) -> Patient:
    duplicates = await find_potential_duplicates(session, data.first_name, data.last_name, data.date_of_birth)
    if duplicates:
        # Registration still goes ahead; front desk decides via check-duplicates
        logger.warning(f"Registering patient with {len(duplicates)} potential duplicate(s)")

    mrn = generate_mrn()
    # Collisions are vanishingly rare, but the column is unique
    while (await session.execute(select(Patient.id).where(Patient.mrn == mrn))).first():
        mrn = generate_mrn()

    patient = Patient(**data.model_dump(), mrn=mrn, created_by=created_by)
    session.add(patient)
    await session.commit()
    await session.refresh(patient)
    return patient


async def update_patient(session: AsyncSession, patient: Patient, data: PatientUpdate) -> Patient:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(patient, field, value)

    patient.updated_at = utc_now()
    session.add(patient)
    await session.commit()
    await session.refresh(patient)
    return patient


async def delete_patient(session: AsyncSession, patient: Patient) -> None:
    encounters = await session.execute(
        select(func.count()).select_from(Encounter).where(Encounter.patient_id == patient.id)
    )
    if encounters.scalar_one() > 0:
        raise ConflictError("Patient has encounters and cannot be deleted")

    await session.delete(patient)
    await session.commit()
