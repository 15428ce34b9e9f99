"""Schema exports."""

from medpal.schemas.adherence import AdherenceReport, AdherenceWindow, Bucketing
from medpal.schemas.auth import Token
from medpal.schemas.dose_event import DoseAction, DoseEventRead, MaterializeRequest
from medpal.schemas.medication import (
    MedicationCreate,
    MedicationRead,
    MedicationUpdate,
)
from medpal.schemas.schedule import (
    AsNeededSchedule,
    DailySchedule,
    Frequency,
    ScheduleIn,
    ScheduleRead,
    WeeklySchedule,
    parse_schedule,
)
from medpal.schemas.user import UserCreate, UserRead, UserUpdate

__all__ = [
    "AdherenceReport",
    "AdherenceWindow",
    "AsNeededSchedule",
    "Bucketing",
    "DailySchedule",
    "DoseAction",
    "DoseEventRead",
    "Frequency",
    "MaterializeRequest",
    "MedicationCreate",
    "MedicationRead",
    "MedicationUpdate",
    "ScheduleIn",
    "ScheduleRead",
    "Token",
    "UserCreate",
    "UserRead",
    "UserUpdate",
    "WeeklySchedule",
    "parse_schedule",
]
