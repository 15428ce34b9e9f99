"""Expand medication schedules into concrete dose events.

Materialization is pull-based: callers ask for a calendar window and the
service creates whatever dose events are missing for it. Re-running the same
window never creates duplicates because (medication, scheduled instant) is
unique in the store; a lost insert race is settled by re-reading and retrying
once.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medpal.core.errors import ConcurrencyConflictError
from medpal.core.settings import MaterializeSettings, get_materialize_settings
from medpal.db.session import store_errors
from medpal.models.dose_event import DoseEvent, DoseStatus
from medpal.models.medication import Medication
from medpal.schemas.schedule import (
    AsNeededSchedule,
    DailySchedule,
    MalformedScheduleError,
    WeeklySchedule,
    parse_schedule,
)
from medpal.services import medication_service, user_service

logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 2


def validate_window(start_date: date, end_date: date, *, max_days: int) -> None:
    if start_date > end_date:
        raise ValueError("start_date must be on or before end_date")
    if (end_date - start_date).days + 1 > max_days:
        raise ValueError(f"Materialization window cannot exceed {max_days} days")


def effective_window(
    medication: Medication, start_date: date, end_date: date
) -> tuple[date, date] | None:
    """Clip a requested window to the medication's active date range."""
    lower = start_date
    if medication.start_date is not None and medication.start_date > lower:
        lower = medication.start_date
    upper = end_date
    if medication.end_date is not None and medication.end_date < upper:
        upper = medication.end_date
    if lower > upper:
        return None
    return lower, upper


def expand_schedule(
    descriptor: DailySchedule | WeeklySchedule | AsNeededSchedule,
    start_date: date,
    end_date: date,
    tz: ZoneInfo,
) -> list[datetime]:
    """Return the sorted UTC instants a descriptor yields over local days."""
    if isinstance(descriptor, AsNeededSchedule):
        return []
    weekdays = set(descriptor.weekdays) if isinstance(descriptor, WeeklySchedule) else None

    instants: set[datetime] = set()
    day = start_date
    while day <= end_date:
        if weekdays is None or day.isoweekday() in weekdays:
            for time_of_day in descriptor.times:
                local = datetime.combine(day, time_of_day, tzinfo=tz)
                instants.add(local.astimezone(UTC))
        day += timedelta(days=1)
    return sorted(instants)


async def _existing_instants(
    session: AsyncSession,
    *,
    medication_id: uuid.UUID,
    first: datetime,
    last: datetime,
) -> set[datetime]:
    stmt = select(DoseEvent.scheduled_at).where(
        DoseEvent.medication_id == medication_id,
        DoseEvent.scheduled_at >= first,
        DoseEvent.scheduled_at <= last,
    )
    result = await session.execute(stmt)
    return set(result.scalars().all())


def _descriptor_for(
    medication: Medication,
) -> DailySchedule | WeeklySchedule | AsNeededSchedule | None:
    """Parse the stored schedule; ``None`` means nothing to materialize.

    Raises ``InvalidScheduleError`` for a recognized but invalid descriptor.
    """
    if not medication.is_active:
        return None
    try:
        return parse_schedule(medication.schedule)
    except MalformedScheduleError as exc:
        logger.warning("Skipping medication %s with malformed schedule: %s", medication.id, exc)
        return None


async def _materialize_medication(
    session: AsyncSession,
    *,
    medication: Medication,
    descriptor: DailySchedule | WeeklySchedule | AsNeededSchedule | None,
    tz: ZoneInfo,
    start_date: date,
    end_date: date,
) -> list[DoseEvent]:
    if descriptor is None:
        return []
    window = effective_window(medication, start_date, end_date)
    if window is None:
        return []

    candidates = expand_schedule(descriptor, window[0], window[1], tz)
    if not candidates:
        return []

    # A rollback expires the ORM instance, so keep plain copies of its keys.
    medication_id = medication.id
    user_id = medication.user_id

    for attempt in range(1, _MAX_ATTEMPTS + 1):
        existing = await _existing_instants(
            session,
            medication_id=medication_id,
            first=candidates[0],
            last=candidates[-1],
        )
        created = [
            DoseEvent(
                medication_id=medication_id,
                user_id=user_id,
                scheduled_at=instant,
                status=DoseStatus.SCHEDULED,
                snooze_count=0,
            )
            for instant in candidates
            if instant not in existing
        ]
        if not created:
            return []
        session.add_all(created)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.warning(
                "Concurrent materialization for medication %s (attempt %d)",
                medication_id,
                attempt,
            )
            continue
        logger.info(
            "Materialized %d dose event(s) for medication %s between %s and %s",
            len(created),
            medication_id,
            window[0],
            window[1],
        )
        return created

    raise ConcurrencyConflictError(
        f"Could not settle dose events for medication {medication_id}"
    )


@store_errors
async def materialize_window(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    medication_id: uuid.UUID,
    start_date: date,
    end_date: date,
    config: MaterializeSettings | None = None,
) -> list[DoseEvent]:
    """Create the missing dose events of one medication over a local-date window.

    Returns only the newly created events; an empty list is a normal result.
    Raises ``NotFoundError`` for a missing or foreign medication and
    ``InvalidScheduleError`` for a descriptor that does not fit its frequency.
    """
    config = config or get_materialize_settings()
    validate_window(start_date, end_date, max_days=config.max_days)
    medication = await medication_service.require_medication(
        session, user_id=user_id, medication_id=medication_id
    )
    descriptor = _descriptor_for(medication)
    tz = await user_service.get_user_timezone(session, user_id)
    return await _materialize_medication(
        session,
        medication=medication,
        descriptor=descriptor,
        tz=tz,
        start_date=start_date,
        end_date=end_date,
    )


@store_errors
async def materialize_for_user(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    start_date: date,
    end_date: date,
    config: MaterializeSettings | None = None,
) -> list[DoseEvent]:
    """Materialize every active medication of a user over the same window.

    Every schedule is parsed before the first insert, so an invalid
    descriptor on any medication fails the call with nothing written.
    """
    config = config or get_materialize_settings()
    validate_window(start_date, end_date, max_days=config.max_days)
    tz = await user_service.get_user_timezone(session, user_id)
    medications = await medication_service.get_active_medications(session, user_id=user_id)
    plans = [(medication, _descriptor_for(medication)) for medication in medications]

    created_ids: list[uuid.UUID] = []
    for medication, descriptor in plans:
        if descriptor is None:
            continue
        # A retried insert for an earlier medication rolls back and expires it.
        await session.refresh(medication)
        events = await _materialize_medication(
            session,
            medication=medication,
            descriptor=descriptor,
            tz=tz,
            start_date=start_date,
            end_date=end_date,
        )
        created_ids.extend(event.id for event in events)

    if not created_ids:
        return []
    stmt = (
        select(DoseEvent)
        .where(DoseEvent.id.in_(created_ids))
        .order_by(DoseEvent.scheduled_at, DoseEvent.medication_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
