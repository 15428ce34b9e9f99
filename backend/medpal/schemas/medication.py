"""Medication schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from medpal.schemas.schedule import ScheduleIn, ScheduleRead


class MedicationBase(BaseModel):
    """Shared medication fields."""

    name: str = Field(min_length=1, max_length=255)
    brand: str | None = None
    form: str | None = None
    color: str | None = None
    shape: str | None = None
    dosage: str = Field(min_length=1, max_length=120)
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None


class MedicationCreate(MedicationBase):
    """Payload for creating a medication."""

    schedule: ScheduleIn
    is_active: bool = True

    @model_validator(mode="after")
    def _check_range(self) -> "MedicationCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class MedicationUpdate(BaseModel):
    """Mutable medication fields."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    brand: str | None = None
    form: str | None = None
    color: str | None = None
    shape: str | None = None
    dosage: str | None = Field(default=None, min_length=1, max_length=120)
    schedule: ScheduleIn | None = None
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None
    is_active: bool | None = None


class MedicationRead(MedicationBase):
    """Serialized medication."""

    id: uuid.UUID
    user_id: uuid.UUID
    schedule: ScheduleRead
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("schedule", mode="before")
    @classmethod
    def _read_legacy_schedule(cls, value: Any) -> Any:
        if isinstance(value, dict) and "times" not in value and "time" in value:
            return {**value, "times": [value["time"]]}
        return value
