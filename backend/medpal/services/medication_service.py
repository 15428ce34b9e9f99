"""Medication registry services."""
from __future__ import annotations

import uuid

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medpal.core.errors import NotFoundError
from medpal.models.medication import Medication
from medpal.schemas.medication import MedicationCreate, MedicationUpdate


def _owned(user_id: uuid.UUID) -> Select[tuple[Medication]]:
    return select(Medication).where(Medication.user_id == user_id)


async def list_medications(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    active_only: bool = False,
) -> list[Medication]:
    stmt = _owned(user_id).order_by(Medication.name, Medication.created_at)
    if active_only:
        stmt = stmt.where(Medication.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_active_medications(
    session: AsyncSession, *, user_id: uuid.UUID
) -> list[Medication]:
    """Return the medications that participate in materialization."""
    return await list_medications(session, user_id=user_id, active_only=True)


async def get_medication(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    medication_id: uuid.UUID,
) -> Medication | None:
    result = await session.execute(_owned(user_id).where(Medication.id == medication_id))
    return result.scalar_one_or_none()


async def require_medication(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    medication_id: uuid.UUID,
) -> Medication:
    medication = await get_medication(
        session, user_id=user_id, medication_id=medication_id
    )
    if medication is None:
        raise NotFoundError("Medication not found")
    return medication


async def create_medication(
    session: AsyncSession,
    payload: MedicationCreate,
    *,
    user_id: uuid.UUID,
) -> Medication:
    # Raises InvalidScheduleError before anything reaches the session.
    descriptor = payload.schedule.to_descriptor()
    medication = Medication(
        user_id=user_id,
        name=payload.name,
        brand=payload.brand,
        form=payload.form,
        color=payload.color,
        shape=payload.shape,
        dosage=payload.dosage,
        schedule=descriptor.to_storage(),
        start_date=payload.start_date,
        end_date=payload.end_date,
        notes=payload.notes,
        is_active=payload.is_active,
    )
    session.add(medication)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise
    await session.refresh(medication)
    return medication


async def update_medication(
    session: AsyncSession,
    *,
    medication: Medication,
    user_id: uuid.UUID,
    payload: MedicationUpdate,
) -> Medication:
    if medication.user_id != user_id:
        raise NotFoundError("Medication not found")

    updates = payload.model_dump(exclude_unset=True)
    if "schedule" in updates:
        if payload.schedule is None:
            raise ValueError("schedule cannot be cleared")
        updates["schedule"] = payload.schedule.to_descriptor().to_storage()

    start_date = updates.get("start_date", medication.start_date)
    end_date = updates.get("end_date", medication.end_date)
    if start_date and end_date and end_date < start_date:
        raise ValueError("end_date must be on or after start_date")

    for field in ("name", "dosage", "is_active"):
        if field in updates and updates[field] is None:
            raise ValueError(f"{field} cannot be null")
    for field, value in updates.items():
        setattr(medication, field, value)

    await session.commit()
    await session.refresh(medication)
    return medication


async def deactivate_medication(
    session: AsyncSession,
    *,
    medication: Medication,
    user_id: uuid.UUID,
) -> Medication:
    """Soft delete: dose history stays intact and queryable."""
    if medication.user_id != user_id:
        raise NotFoundError("Medication not found")
    medication.is_active = False
    await session.commit()
    await session.refresh(medication)
    return medication
