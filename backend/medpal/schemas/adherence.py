"""Adherence analytics schemas."""
from __future__ import annotations

import enum
from datetime import date, datetime

from pydantic import BaseModel, Field


class Bucketing(str, enum.Enum):
    """How an adherence range is partitioned."""

    DAY = "day"
    WEEK = "week"
    RANGE = "range"


class TakenFraction(BaseModel):
    """Exact share of resolved doses that were taken."""

    taken: int
    resolved: int


class AdherenceWindow(BaseModel):
    """Dose counts and adherence rate for one time bucket."""

    start_at: datetime
    end_at: datetime
    start_date: date
    end_date: date
    total: int = 0
    scheduled: int = 0
    snoozed: int = 0
    taken: int = 0
    missed: int = 0
    resolved: int = 0
    taken_fraction: TakenFraction | None = Field(
        default=None, description="Unreduced taken over resolved; null when nothing resolved"
    )
    rate_percent: int | None = Field(
        default=None, description="Nearest whole percent; null when nothing resolved"
    )


class AdherenceReport(BaseModel):
    """Bucketed adherence windows plus the overall window."""

    bucketing: Bucketing
    timezone: str
    overall: AdherenceWindow
    buckets: list[AdherenceWindow]
