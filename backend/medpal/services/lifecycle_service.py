"""Dose event lifecycle.

``scheduled`` and ``snoozed`` events turn into ``missed`` once their deadline
has passed. That rule is evaluated here and nowhere else: reads present the
derived status, and the next write on the event persists it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from medpal.core.errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from medpal.core.settings import DosePolicy, get_dose_policy
from medpal.db.session import store_errors
from medpal.models.dose_event import TERMINAL_STATUSES, DoseEvent, DoseStatus
from medpal.schemas.dose_event import DoseAction, DoseEventRead

logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 2


def _coerce_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def deadline(event: DoseEvent, policy: DosePolicy) -> datetime | None:
    """Instant after which an unresolved event counts as missed."""
    if event.status == DoseStatus.SCHEDULED:
        return _coerce_utc(event.scheduled_at) + policy.grace
    if event.status == DoseStatus.SNOOZED:
        anchor = event.snoozed_until or event.scheduled_at
        return _coerce_utc(anchor) + policy.grace
    return None


def effective_status(
    event: DoseEvent, *, now: datetime, policy: DosePolicy
) -> DoseStatus:
    limit = deadline(event, policy)
    if limit is not None and _coerce_utc(now) > limit:
        return DoseStatus.MISSED
    return event.status


def present(event: DoseEvent, *, now: datetime, policy: DosePolicy) -> DoseEventRead:
    """Serialize an event with its status as of ``now``."""
    status = effective_status(event, now=now, policy=policy)
    return DoseEventRead.model_validate(event).model_copy(
        update={
            "status": status,
            "deadline": None if status in TERMINAL_STATUSES else deadline(event, policy),
        }
    )


def _expire_if_overdue(event: DoseEvent, *, now: datetime, policy: DosePolicy) -> bool:
    if event.status in TERMINAL_STATUSES:
        return False
    if effective_status(event, now=now, policy=policy) != DoseStatus.MISSED:
        return False
    event.status = DoseStatus.MISSED
    return True


def _apply_action(
    event: DoseEvent, action: DoseAction, *, now: datetime, policy: DosePolicy
) -> bool:
    """Mutate ``event`` for ``action``; return whether anything changed."""
    status = event.status

    if action == DoseAction.TAKE:
        if status == DoseStatus.TAKEN:
            return False
        if status == DoseStatus.MISSED:
            raise InvalidTransitionError("Dose was already missed")
        event.status = DoseStatus.TAKEN
        event.taken_at = now
        event.snoozed_until = None
        return True

    if action == DoseAction.SNOOZE:
        if status == DoseStatus.TAKEN:
            return False
        if status == DoseStatus.MISSED:
            raise InvalidTransitionError("Dose was already missed")
        if event.snooze_count >= policy.snooze_limit:
            raise InvalidTransitionError("Snooze limit reached")
        # Snoozing ahead of the dose defers from the scheduled instant.
        base = max(now, _coerce_utc(event.scheduled_at))
        event.status = DoseStatus.SNOOZED
        event.snoozed_until = base + policy.snooze
        event.snooze_count += 1
        return True

    if action == DoseAction.MISS:
        if status == DoseStatus.MISSED:
            return False
        if status == DoseStatus.TAKEN:
            raise InvalidTransitionError("Dose was already taken")
        event.status = DoseStatus.MISSED
        return True

    raise ValueError(f"Unsupported dose action {action!r}")


async def _load_owned_event(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    dose_event_id: uuid.UUID,
) -> DoseEvent:
    stmt = (
        select(DoseEvent)
        .where(DoseEvent.id == dose_event_id, DoseEvent.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    event = result.scalar_one_or_none()
    if event is None:
        raise NotFoundError("Dose event not found")
    return event


@store_errors
async def get_dose_event(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    dose_event_id: uuid.UUID,
) -> DoseEvent:
    return await _load_owned_event(session, user_id=user_id, dose_event_id=dose_event_id)


@store_errors
async def transition(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    dose_event_id: uuid.UUID,
    action: DoseAction,
    now: datetime,
    policy: DosePolicy | None = None,
) -> DoseEvent:
    """Apply a user action to a dose event after lazy missed evaluation.

    Repeating ``take`` or ``snooze`` on a taken dose (and ``miss`` on a missed
    one) succeeds without changes. Actions that would leave a terminal state
    raise ``InvalidTransitionError``; an overdue event is persisted as missed
    before that error is raised. Writes are guarded by the event's version
    counter and a stale write is re-read and retried once.
    """
    policy = policy or get_dose_policy()
    now = _coerce_utc(now)

    for attempt in range(1, _MAX_ATTEMPTS + 1):
        event = await _load_owned_event(
            session, user_id=user_id, dose_event_id=dose_event_id
        )
        changed = _expire_if_overdue(event, now=now, policy=policy)
        rejection: InvalidTransitionError | None = None
        try:
            changed = _apply_action(event, action, now=now, policy=policy) or changed
        except InvalidTransitionError as exc:
            rejection = exc

        if changed:
            try:
                await session.commit()
            except StaleDataError:
                await session.rollback()
                logger.warning(
                    "Dose event %s changed concurrently (attempt %d)",
                    dose_event_id,
                    attempt,
                )
                continue
            logger.info("Dose event %s is now %s", dose_event_id, event.status.value)

        if rejection is not None:
            raise rejection
        return event

    raise ConcurrencyConflictError(f"Dose event {dose_event_id} kept changing")


@store_errors
async def list_dose_events(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    now: datetime,
    start: datetime | None = None,
    end: datetime | None = None,
    medication_id: uuid.UUID | None = None,
    newest_first: bool = False,
    policy: DosePolicy | None = None,
) -> list[DoseEventRead]:
    """Return owner-scoped events in ``[start, end)`` with effective status."""
    policy = policy or get_dose_policy()
    stmt = select(DoseEvent).where(DoseEvent.user_id == user_id)
    if start is not None:
        stmt = stmt.where(DoseEvent.scheduled_at >= _coerce_utc(start))
    if end is not None:
        stmt = stmt.where(DoseEvent.scheduled_at < _coerce_utc(end))
    if medication_id is not None:
        stmt = stmt.where(DoseEvent.medication_id == medication_id)
    if newest_first:
        stmt = stmt.order_by(DoseEvent.scheduled_at.desc(), DoseEvent.medication_id)
    else:
        stmt = stmt.order_by(DoseEvent.scheduled_at, DoseEvent.medication_id)

    result = await session.execute(stmt)
    return [present(event, now=now, policy=policy) for event in result.scalars().all()]
