"""Medication registry API endpoints."""
from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, HTTPException, Query, status

from medpal.api.deps import CurrentUser, NowDep, PolicyDep, SessionDep
from medpal.api.errors import DOMAIN_ERRORS, to_http
from medpal.schemas.dose_event import DoseEventRead, MaterializeRequest
from medpal.schemas.medication import (
    MedicationCreate,
    MedicationRead,
    MedicationUpdate,
)
from medpal.services import lifecycle_service, materializer_service, medication_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/medications")


@router.get("", response_model=list[MedicationRead], summary="List medications")
async def list_medications(
    session: SessionDep,
    current_user: CurrentUser,
    active_only: bool = Query(False, description="Only return active medications"),
) -> list[MedicationRead]:
    medications = await medication_service.list_medications(
        session, user_id=current_user.id, active_only=active_only
    )
    return [MedicationRead.model_validate(obj) for obj in medications]


@router.post(
    "",
    response_model=MedicationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create medication",
)
async def create_medication(
    payload: MedicationCreate,
    session: SessionDep,
    current_user: CurrentUser,
) -> MedicationRead:
    try:
        medication = await medication_service.create_medication(
            session, payload, user_id=current_user.id
        )
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return MedicationRead.model_validate(medication)


@router.get("/{medication_id}", response_model=MedicationRead, summary="Get medication")
async def get_medication(
    medication_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
) -> MedicationRead:
    medication = await medication_service.get_medication(
        session, user_id=current_user.id, medication_id=medication_id
    )
    if medication is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Medication not found")
    return MedicationRead.model_validate(medication)


@router.patch(
    "/{medication_id}",
    response_model=MedicationRead,
    summary="Update medication",
)
async def update_medication(
    medication_id: uuid.UUID,
    payload: MedicationUpdate,
    session: SessionDep,
    current_user: CurrentUser,
) -> MedicationRead:
    medication = await medication_service.get_medication(
        session, user_id=current_user.id, medication_id=medication_id
    )
    if medication is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Medication not found")
    try:
        updated = await medication_service.update_medication(
            session,
            medication=medication,
            user_id=current_user.id,
            payload=payload,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return MedicationRead.model_validate(updated)


@router.delete(
    "/{medication_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate medication",
)
async def delete_medication(
    medication_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
) -> None:
    medication = await medication_service.get_medication(
        session, user_id=current_user.id, medication_id=medication_id
    )
    if medication is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Medication not found")
    await medication_service.deactivate_medication(
        session, medication=medication, user_id=current_user.id
    )


@router.post(
    "/{medication_id}/materialize",
    response_model=list[DoseEventRead],
    summary="Materialize dose events for a medication",
)
async def materialize_medication(
    medication_id: uuid.UUID,
    payload: MaterializeRequest,
    session: SessionDep,
    current_user: CurrentUser,
    now: NowDep,
    policy: PolicyDep,
) -> list[DoseEventRead]:
    """Create missing dose events over a window; returns only the new ones."""
    try:
        created = await materializer_service.materialize_window(
            session,
            user_id=current_user.id,
            medication_id=medication_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return [lifecycle_service.present(event, now=now, policy=policy) for event in created]
