"""Dose event API endpoints."""
from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status

from medpal.api.deps import CurrentUser, NowDep, PolicyDep, SessionDep
from medpal.api.errors import DOMAIN_ERRORS, to_http
from medpal.schemas.dose_event import DoseAction, DoseEventRead, MaterializeRequest
from medpal.services import lifecycle_service, materializer_service

router = APIRouter(prefix="/dose-events")


@router.get("", response_model=list[DoseEventRead], summary="List dose events")
async def list_dose_events(
    session: SessionDep,
    current_user: CurrentUser,
    now: NowDep,
    policy: PolicyDep,
    start: datetime | None = Query(None, description="Inclusive lower bound"),
    end: datetime | None = Query(None, description="Exclusive upper bound"),
    medication_id: uuid.UUID | None = Query(None),
    newest_first: bool = Query(False, description="Latest scheduled doses first"),
) -> list[DoseEventRead]:
    if start is not None and end is not None and start >= end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="start must be before end"
        )
    try:
        return await lifecycle_service.list_dose_events(
            session,
            user_id=current_user.id,
            now=now,
            start=start,
            end=end,
            medication_id=medication_id,
            newest_first=newest_first,
            policy=policy,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc


@router.post(
    "/materialize",
    response_model=list[DoseEventRead],
    summary="Materialize dose events for all active medications",
)
async def materialize_all(
    payload: MaterializeRequest,
    session: SessionDep,
    current_user: CurrentUser,
    now: NowDep,
    policy: PolicyDep,
) -> list[DoseEventRead]:
    try:
        created = await materializer_service.materialize_for_user(
            session,
            user_id=current_user.id,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return [lifecycle_service.present(event, now=now, policy=policy) for event in created]


@router.get(
    "/{dose_event_id}",
    response_model=DoseEventRead,
    summary="Get dose event",
)
async def get_dose_event(
    dose_event_id: uuid.UUID,
    session: SessionDep,
    current_user: CurrentUser,
    now: NowDep,
    policy: PolicyDep,
) -> DoseEventRead:
    try:
        event = await lifecycle_service.get_dose_event(
            session, user_id=current_user.id, dose_event_id=dose_event_id
        )
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return lifecycle_service.present(event, now=now, policy=policy)


@router.post(
    "/{dose_event_id}/{action}",
    response_model=DoseEventRead,
    summary="Apply a lifecycle action to a dose event",
)
async def transition_dose_event(
    dose_event_id: uuid.UUID,
    action: DoseAction,
    session: SessionDep,
    current_user: CurrentUser,
    now: NowDep,
    policy: PolicyDep,
) -> DoseEventRead:
    """Take, snooze or report a dose as missed."""
    user_id = current_user.id
    try:
        event = await lifecycle_service.transition(
            session,
            user_id=user_id,
            dose_event_id=dose_event_id,
            action=action,
            now=now,
            policy=policy,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return lifecycle_service.present(event, now=now, policy=policy)
