"""Materialization service tests."""

from __future__ import annotations

import asyncio
import uuid
from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from medpal.core.errors import InvalidScheduleError, NotFoundError, StoreUnavailableError
from medpal.core.settings import MaterializeSettings
from medpal.db.session import store_errors
from medpal.models import DoseEvent, DoseStatus
from medpal.services import materializer_service

pytestmark = pytest.mark.asyncio

MARCH_1 = date(2025, 3, 1)
MARCH_3 = date(2025, 3, 3)


async def _count_events(sessionmaker, medication_id: uuid.UUID) -> int:
    async with sessionmaker() as session:
        result = await session.execute(
            select(func.count())
            .select_from(DoseEvent)
            .where(DoseEvent.medication_id == medication_id)
        )
        return result.scalar_one()


async def _materialize(sessionmaker, user_id, medication_id, start, end, **kwargs):
    async with sessionmaker() as session:
        return await materializer_service.materialize_window(
            session,
            user_id=user_id,
            medication_id=medication_id,
            start_date=start,
            end_date=end,
            **kwargs,
        )


async def test_twice_daily_over_three_days_is_idempotent(
    sessionmaker, owner, make_medication
) -> None:
    medication = await make_medication(owner.id)

    created = await _materialize(sessionmaker, owner.id, medication.id, MARCH_1, MARCH_3)
    assert len(created) == 6
    assert all(event.status == DoseStatus.SCHEDULED for event in created)
    assert all(event.snooze_count == 0 for event in created)

    again = await _materialize(sessionmaker, owner.id, medication.id, MARCH_1, MARCH_3)
    assert again == []
    assert await _count_events(sessionmaker, medication.id) == 6


async def test_overlapping_window_only_adds_missing_days(
    sessionmaker, owner, make_medication
) -> None:
    medication = await make_medication(owner.id)
    await _materialize(sessionmaker, owner.id, medication.id, MARCH_1, MARCH_3)

    created = await _materialize(
        sessionmaker, owner.id, medication.id, MARCH_3, date(2025, 3, 5)
    )
    assert len(created) == 4
    assert await _count_events(sessionmaker, medication.id) == 10


async def test_window_is_clipped_to_medication_dates(
    sessionmaker, owner, make_medication
) -> None:
    medication = await make_medication(
        owner.id, start_date=date(2025, 3, 2), end_date=MARCH_3
    )

    created = await _materialize(
        sessionmaker, owner.id, medication.id, MARCH_1, date(2025, 3, 10)
    )
    assert sorted(event.scheduled_at.date() for event in created) == [
        date(2025, 3, 2),
        date(2025, 3, 2),
        MARCH_3,
        MARCH_3,
    ]

    outside = await _materialize(
        sessionmaker, owner.id, medication.id, date(2025, 4, 1), date(2025, 4, 7)
    )
    assert outside == []


async def test_weekly_schedule_only_yields_selected_weekdays(
    sessionmaker, owner, make_medication
) -> None:
    medication = await make_medication(
        owner.id,
        schedule={"frequency": "weekly", "times": ["09:00"], "weekdays": [2]},
    )

    created = await _materialize(
        sessionmaker, owner.id, medication.id, MARCH_1, date(2025, 3, 31)
    )
    days = sorted(event.scheduled_at.day for event in created)
    assert days == [4, 11, 18, 25]


async def test_as_needed_and_inactive_medications_materialize_nothing(
    sessionmaker, owner, make_medication
) -> None:
    as_needed = await make_medication(owner.id, schedule={"frequency": "as-needed"})
    inactive = await make_medication(owner.id, is_active=False)

    for medication in (as_needed, inactive):
        created = await _materialize(
            sessionmaker, owner.id, medication.id, MARCH_1, date(2025, 3, 7)
        )
        assert created == []
        assert await _count_events(sessionmaker, medication.id) == 0


async def test_malformed_descriptor_is_skipped(
    sessionmaker, owner, make_medication, caplog
) -> None:
    medication = await make_medication(owner.id, schedule={"frequency": "hourly"})

    created = await _materialize(
        sessionmaker, owner.id, medication.id, MARCH_1, date(2025, 3, 7)
    )
    assert created == []
    assert "malformed schedule" in caplog.text


async def test_time_count_mismatch_is_rejected(
    sessionmaker, owner, make_medication
) -> None:
    medication = await make_medication(
        owner.id, schedule={"frequency": "twice-daily", "times": ["08:00"]}
    )

    with pytest.raises(InvalidScheduleError):
        await _materialize(
            sessionmaker, owner.id, medication.id, MARCH_1, date(2025, 3, 7)
        )
    assert await _count_events(sessionmaker, medication.id) == 0


async def test_instants_follow_owner_time_zone(
    sessionmaker, make_user, make_medication
) -> None:
    tokyo = await make_user(timezone="Asia/Tokyo")
    medication = await make_medication(
        tokyo.id, schedule={"frequency": "once-daily", "times": ["08:00"]}
    )

    created = await _materialize(sessionmaker, tokyo.id, medication.id, MARCH_1, MARCH_1)
    assert len(created) == 1
    assert created[0].scheduled_at.isoformat() == "2025-02-28T23:00:00+00:00"


async def test_foreign_or_unknown_medication_is_not_found(
    sessionmaker, owner, make_user, make_medication
) -> None:
    stranger = await make_user()
    medication = await make_medication(stranger.id)

    with pytest.raises(NotFoundError):
        await _materialize(sessionmaker, owner.id, medication.id, MARCH_1, MARCH_3)
    with pytest.raises(NotFoundError):
        await _materialize(sessionmaker, owner.id, uuid.uuid4(), MARCH_1, MARCH_3)
    assert await _count_events(sessionmaker, medication.id) == 0


async def test_window_bounds_are_validated(sessionmaker, owner, make_medication) -> None:
    medication = await make_medication(owner.id)

    with pytest.raises(ValueError):
        await _materialize(sessionmaker, owner.id, medication.id, MARCH_3, MARCH_1)
    with pytest.raises(ValueError):
        await _materialize(
            sessionmaker,
            owner.id,
            medication.id,
            MARCH_1,
            date(2025, 3, 10),
            config=MaterializeSettings(max_days=7),
        )


async def test_concurrent_runs_do_not_duplicate(
    sessionmaker, owner, make_medication
) -> None:
    medication = await make_medication(owner.id)

    first, second = await asyncio.gather(
        _materialize(sessionmaker, owner.id, medication.id, MARCH_1, MARCH_3),
        _materialize(sessionmaker, owner.id, medication.id, MARCH_1, MARCH_3),
    )
    assert len(first) + len(second) == 6
    assert await _count_events(sessionmaker, medication.id) == 6


async def test_materialize_for_user_covers_active_medications(
    sessionmaker, owner, make_medication
) -> None:
    morning = await make_medication(
        owner.id,
        name="Metformin",
        schedule={"frequency": "once-daily", "times": ["07:00"]},
    )
    await make_medication(owner.id, name="Paused", is_active=False)
    await make_medication(owner.id, name="Ibuprofen", schedule={"frequency": "as-needed"})

    async with sessionmaker() as session:
        created = await materializer_service.materialize_for_user(
            session,
            user_id=owner.id,
            start_date=MARCH_1,
            end_date=date(2025, 3, 2),
        )
    assert [event.medication_id for event in created] == [morning.id, morning.id]
    assert created[0].scheduled_at < created[1].scheduled_at


async def test_invalid_schedule_aborts_user_run_before_any_write(
    sessionmaker, owner, make_medication
) -> None:
    valid = await make_medication(
        owner.id, name="Aspirin", schedule={"frequency": "once-daily", "times": ["07:00"]}
    )
    invalid = await make_medication(
        owner.id,
        name="Zinc",
        schedule={"frequency": "twice-daily", "times": ["08:00", "08:00:00"]},
    )

    async with sessionmaker() as session:
        with pytest.raises(InvalidScheduleError):
            await materializer_service.materialize_for_user(
                session, user_id=owner.id, start_date=MARCH_1, end_date=MARCH_3
            )
    assert await _count_events(sessionmaker, valid.id) == 0
    assert await _count_events(sessionmaker, invalid.id) == 0


async def test_legacy_multi_dose_row_is_skipped_in_user_run(
    sessionmaker, owner, make_medication, caplog
) -> None:
    valid = await make_medication(
        owner.id, name="Aspirin", schedule={"frequency": "once-daily", "times": ["07:00"]}
    )
    legacy = await make_medication(
        owner.id, name="Zinc", schedule={"frequency": "twice-daily", "time": "08:00"}
    )

    async with sessionmaker() as session:
        created = await materializer_service.materialize_for_user(
            session, user_id=owner.id, start_date=MARCH_1, end_date=MARCH_3
        )
    assert [event.medication_id for event in created] == [valid.id] * 3
    assert await _count_events(sessionmaker, legacy.id) == 0
    assert "malformed schedule" in caplog.text


async def test_driver_failures_surface_as_store_unavailable() -> None:
    @store_errors
    async def broken() -> None:
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    with pytest.raises(StoreUnavailableError):
        await broken()
