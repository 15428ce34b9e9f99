"""Adherence analytics over dose events."""

from __future__ import annotations

import uuid
from bisect import bisect_right
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medpal.core.settings import DosePolicy, get_dose_policy
from medpal.db.session import store_errors
from medpal.models.dose_event import DoseEvent, DoseStatus
from medpal.schemas.adherence import (
    AdherenceReport,
    AdherenceWindow,
    Bucketing,
    TakenFraction,
)
from medpal.services import medication_service, user_service
from medpal.services.lifecycle_service import effective_status

_BUCKET_DAYS = {Bucketing.DAY: 1, Bucketing.WEEK: 7}


@dataclass(frozen=True)
class AdherenceCounts:
    """Exact per-status counts for a window."""

    scheduled: int = 0
    snoozed: int = 0
    taken: int = 0
    missed: int = 0

    @property
    def total(self) -> int:
        return self.scheduled + self.snoozed + self.taken + self.missed

    @property
    def resolved(self) -> int:
        return self.taken + self.missed

    @property
    def fraction(self) -> Fraction | None:
        """``taken / resolved``, or ``None`` when nothing has resolved yet."""
        if self.resolved == 0:
            return None
        return Fraction(self.taken, self.resolved)

    @property
    def rate_percent(self) -> int | None:
        fraction = self.fraction
        if fraction is None:
            return None
        percent = Decimal(fraction.numerator * 100) / Decimal(fraction.denominator)
        return int(percent.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @property
    def taken_fraction(self) -> TakenFraction | None:
        """The unreduced ``(taken, resolved)`` pair behind :attr:`fraction`."""
        if self.fraction is None:
            return None
        return TakenFraction(taken=self.taken, resolved=self.resolved)

    def add(self, status: DoseStatus) -> "AdherenceCounts":
        field = status.value
        return replace(self, **{field: getattr(self, field) + 1})

    def __add__(self, other: "AdherenceCounts") -> "AdherenceCounts":
        return AdherenceCounts(
            scheduled=self.scheduled + other.scheduled,
            snoozed=self.snoozed + other.snoozed,
            taken=self.taken + other.taken,
            missed=self.missed + other.missed,
        )


@dataclass(frozen=True)
class Bucket:
    """A half-open ``[start_at, end_at)`` interval of local calendar days."""

    start_date: date
    end_date: date
    start_at: datetime
    end_at: datetime


def _local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


def build_buckets(
    start_date: date, end_date: date, bucketing: Bucketing, tz: ZoneInfo
) -> list[Bucket]:
    """Partition ``[start_date, end_date]`` into contiguous, disjoint buckets."""
    if start_date > end_date:
        raise ValueError("start_date must be on or before end_date")
    step = _BUCKET_DAYS.get(bucketing)
    if step is None:
        return [
            Bucket(
                start_date=start_date,
                end_date=end_date,
                start_at=_local_midnight(start_date, tz),
                end_at=_local_midnight(end_date + timedelta(days=1), tz),
            )
        ]

    buckets: list[Bucket] = []
    cursor = start_date
    while cursor <= end_date:
        last = min(cursor + timedelta(days=step - 1), end_date)
        buckets.append(
            Bucket(
                start_date=cursor,
                end_date=last,
                start_at=_local_midnight(cursor, tz),
                end_at=_local_midnight(last + timedelta(days=1), tz),
            )
        )
        cursor = last + timedelta(days=1)
    return buckets


def tally(
    events: list[DoseEvent],
    buckets: list[Bucket],
    *,
    now: datetime,
    policy: DosePolicy,
) -> list[AdherenceCounts]:
    """Count events per bucket by effective status."""
    counts = [AdherenceCounts() for _ in buckets]
    starts = [bucket.start_at for bucket in buckets]
    for event in events:
        index = bisect_right(starts, event.scheduled_at) - 1
        if index < 0 or event.scheduled_at >= buckets[index].end_at:
            continue
        status = effective_status(event, now=now, policy=policy)
        counts[index] = counts[index].add(status)
    return counts


def _window(bucket: Bucket, counts: AdherenceCounts) -> AdherenceWindow:
    return AdherenceWindow(
        start_at=bucket.start_at,
        end_at=bucket.end_at,
        start_date=bucket.start_date,
        end_date=bucket.end_date,
        total=counts.total,
        scheduled=counts.scheduled,
        snoozed=counts.snoozed,
        taken=counts.taken,
        missed=counts.missed,
        resolved=counts.resolved,
        taken_fraction=counts.taken_fraction,
        rate_percent=counts.rate_percent,
    )


@store_errors
async def get_adherence(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    start_date: date,
    end_date: date,
    now: datetime,
    bucketing: Bucketing = Bucketing.RANGE,
    medication_id: uuid.UUID | None = None,
    policy: DosePolicy | None = None,
) -> AdherenceReport:
    """Bucketed adherence for a user's local-date range.

    Unresolved (scheduled or snoozed) events are counted but excluded from the
    rate denominator; a bucket with no resolved events has a null rate. The
    overall window is the sum of the bucket counts.
    """
    policy = policy or get_dose_policy()
    if medication_id is not None:
        await medication_service.require_medication(
            session, user_id=user_id, medication_id=medication_id
        )
    tz = await user_service.get_user_timezone(session, user_id)
    buckets = build_buckets(start_date, end_date, bucketing, tz)

    stmt = select(DoseEvent).where(
        DoseEvent.user_id == user_id,
        DoseEvent.scheduled_at >= buckets[0].start_at,
        DoseEvent.scheduled_at < buckets[-1].end_at,
    )
    if medication_id is not None:
        stmt = stmt.where(DoseEvent.medication_id == medication_id)
    result = await session.execute(stmt)
    events = list(result.scalars().all())

    counts = tally(events, buckets, now=now, policy=policy)
    overall_counts = sum(counts, AdherenceCounts())
    overall_bucket = Bucket(
        start_date=start_date,
        end_date=end_date,
        start_at=buckets[0].start_at,
        end_at=buckets[-1].end_at,
    )
    return AdherenceReport(
        bucketing=bucketing,
        timezone=str(tz.key),
        overall=_window(overall_bucket, overall_counts),
        buckets=[_window(bucket, count) for bucket, count in zip(buckets, counts)],
    )
