"""Specialized settings adapters for the dose engine."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict

from medpal.core.config import get_settings


class DosePolicy(BaseModel):
    """Slim view of the dose lifecycle configuration."""

    grace: timedelta = timedelta(minutes=60)
    snooze: timedelta = timedelta(minutes=15)
    snooze_limit: int = 3

    model_config = ConfigDict(frozen=True)


class MaterializeSettings(BaseModel):
    """Slim view of materialization configuration."""

    max_days: int = 92


def get_dose_policy() -> DosePolicy:
    """Return lifecycle policy values from configuration."""

    settings = get_settings()
    return DosePolicy(
        grace=timedelta(minutes=settings.dose_grace_minutes),
        snooze=timedelta(minutes=settings.snooze_minutes),
        snooze_limit=settings.snooze_limit,
    )


def get_materialize_settings() -> MaterializeSettings:
    """Return materialization configuration."""

    settings = get_settings()
    return MaterializeSettings(
        max_days=settings.materialize_max_days,
    )
