"""Dose event (reminder log) model."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medpal.db.base import Base
from medpal.db.types import UTCDateTime
from medpal.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing only imports
    from medpal.models.medication import Medication


class DoseStatus(str, enum.Enum):
    """Lifecycle states of a dose event."""

    SCHEDULED = "scheduled"
    TAKEN = "taken"
    MISSED = "missed"
    SNOOZED = "snoozed"


TERMINAL_STATUSES = frozenset({DoseStatus.TAKEN, DoseStatus.MISSED})


class DoseEvent(TimestampMixin, Base):
    """One concrete, trackable dose of a medication at an instant."""

    __tablename__ = "dose_events"
    __table_args__ = (
        UniqueConstraint(
            "medication_id", "scheduled_at", name="uq_dose_event_medication_instant"
        ),
        Index("ix_dose_events_user_scheduled", "user_id", "scheduled_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, unique=True)
    medication_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("medications.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    scheduled_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[DoseStatus] = mapped_column(
        Enum(DoseStatus), default=DoseStatus.SCHEDULED, nullable=False
    )
    taken_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    snoozed_until: Mapped[datetime | None] = mapped_column(UTCDateTime())
    snooze_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    medication: Mapped["Medication"] = relationship(
        "Medication", back_populates="dose_events"
    )

    __mapper_args__ = {"version_id_col": version}
