"""Adherence analytics endpoints."""
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query

from medpal.api.deps import CurrentUser, NowDep, PolicyDep, SessionDep
from medpal.api.errors import DOMAIN_ERRORS, to_http
from medpal.schemas.adherence import AdherenceReport, Bucketing
from medpal.services import adherence_service

router = APIRouter()

_MAX_RANGE_DAYS = 366


@router.get("/adherence", response_model=AdherenceReport, summary="Adherence report")
async def adherence_report(
    session: SessionDep,
    current_user: CurrentUser,
    now: NowDep,
    policy: PolicyDep,
    start_date: date = Query(...),
    end_date: date = Query(...),
    bucketing: Bucketing = Query(Bucketing.RANGE),
    medication_id: uuid.UUID | None = Query(None),
) -> AdherenceReport:
    try:
        if start_date <= end_date and (end_date - start_date).days >= _MAX_RANGE_DAYS:
            raise ValueError(f"Range cannot exceed {_MAX_RANGE_DAYS} days")
        return await adherence_service.get_adherence(
            session,
            user_id=current_user.id,
            start_date=start_date,
            end_date=end_date,
            now=now,
            bucketing=bucketing,
            medication_id=medication_id,
            policy=policy,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
