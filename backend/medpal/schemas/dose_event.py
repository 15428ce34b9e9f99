"""Dose event schemas."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, model_validator

from medpal.models.dose_event import DoseStatus


class DoseAction(str, enum.Enum):
    """User actions accepted by the dose lifecycle."""

    TAKE = "take"
    SNOOZE = "snooze"
    MISS = "miss"


class DoseEventRead(BaseModel):
    """Serialized dose event with its effective status."""

    id: uuid.UUID
    medication_id: uuid.UUID
    user_id: uuid.UUID
    scheduled_at: datetime
    status: DoseStatus
    taken_at: datetime | None = None
    snoozed_until: datetime | None = None
    snooze_count: int = 0
    deadline: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MaterializeRequest(BaseModel):
    """Inclusive calendar window to materialize."""

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_window(self) -> "MaterializeRequest":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self
