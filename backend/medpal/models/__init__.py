"""ORM models package export."""

from medpal.models.dose_event import TERMINAL_STATUSES, DoseEvent, DoseStatus
from medpal.models.medication import Medication
from medpal.models.user import User, UserStatus

__all__ = [
    "DoseEvent",
    "DoseStatus",
    "Medication",
    "TERMINAL_STATUSES",
    "User",
    "UserStatus",
]
