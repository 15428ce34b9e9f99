"""Schedule descriptor schemas.

A descriptor is a tagged variant keyed by ``frequency``. Daily classes carry a
fixed number of distinct wall-clock times, ``weekly`` adds an ISO weekday
selector, and ``as-needed`` carries no times at all.
"""

from __future__ import annotations

import enum
from datetime import time
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from medpal.core.errors import InvalidScheduleError


class Frequency(str, enum.Enum):
    """Frequency classes a medication schedule may use."""

    ONCE_DAILY = "once-daily"
    TWICE_DAILY = "twice-daily"
    THREE_TIMES_DAILY = "three-times-daily"
    FOUR_TIMES_DAILY = "four-times-daily"
    WEEKLY = "weekly"
    AS_NEEDED = "as-needed"


DAILY_TIME_COUNTS: dict[Frequency, int] = {
    Frequency.ONCE_DAILY: 1,
    Frequency.TWICE_DAILY: 2,
    Frequency.THREE_TIMES_DAILY: 3,
    Frequency.FOUR_TIMES_DAILY: 4,
}


def parse_time_of_day(value: Any) -> time:
    """Parse an ``HH:MM`` (or ``HH:MM:SS``) wall-clock value."""
    if isinstance(value, time):
        return value.replace(tzinfo=None, microsecond=0)
    if not isinstance(value, str):
        raise InvalidScheduleError(f"Time of day must be a string, got {value!r}")
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        raise InvalidScheduleError(f"Invalid time of day {value!r}")
    try:
        return time(*(int(part) for part in parts))
    except ValueError as exc:
        raise InvalidScheduleError(f"Invalid time of day {value!r}") from exc


def _normalize_times(raw: Any) -> list[time]:
    if not isinstance(raw, (list, tuple)):
        raise InvalidScheduleError("Schedule times must be a list")
    parsed = [parse_time_of_day(item) for item in raw]
    if len(set(parsed)) != len(parsed):
        raise InvalidScheduleError("Schedule times must be distinct")
    return sorted(parsed)


class _DescriptorBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    def to_storage(self) -> dict[str, Any]:
        """Return the JSON-compatible form stored on the medication row."""
        return self.model_dump(mode="json")


class DailySchedule(_DescriptorBase):
    """Doses every day at a fixed set of times."""

    frequency: Literal[
        Frequency.ONCE_DAILY,
        Frequency.TWICE_DAILY,
        Frequency.THREE_TIMES_DAILY,
        Frequency.FOUR_TIMES_DAILY,
    ]
    times: tuple[time, ...]


class WeeklySchedule(_DescriptorBase):
    """Doses on selected ISO weekdays (1 = Monday) at a set of times."""

    frequency: Literal[Frequency.WEEKLY]
    times: tuple[time, ...]
    weekdays: tuple[int, ...]


class AsNeededSchedule(_DescriptorBase):
    """Doses taken on demand; never materialized."""

    frequency: Literal[Frequency.AS_NEEDED]
    times: tuple[time, ...] = ()


ScheduleDescriptor = Annotated[
    Union[DailySchedule, WeeklySchedule, AsNeededSchedule],
    Field(discriminator="frequency"),
]

_DESCRIPTOR_ADAPTER: TypeAdapter[DailySchedule | WeeklySchedule | AsNeededSchedule] = (
    TypeAdapter(ScheduleDescriptor)
)


class MalformedScheduleError(InvalidScheduleError):
    """The stored value does not have the shape of any descriptor."""


def _check_shape(frequency: Frequency, payload: dict[str, Any]) -> dict[str, Any]:
    times = _normalize_times(payload.get("times", []))
    normalized: dict[str, Any] = {"frequency": frequency, "times": tuple(times)}

    if frequency in DAILY_TIME_COUNTS:
        expected = DAILY_TIME_COUNTS[frequency]
        if len(times) != expected:
            raise InvalidScheduleError(
                f"{frequency.value} requires {expected} time(s) of day, got {len(times)}"
            )
    elif frequency == Frequency.WEEKLY:
        if not times:
            raise InvalidScheduleError("weekly requires at least one time of day")
        weekdays = payload.get("weekdays")
        if not isinstance(weekdays, (list, tuple)) or not weekdays:
            raise InvalidScheduleError("weekly requires at least one weekday")
        if any(
            isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 7
            for day in weekdays
        ):
            raise InvalidScheduleError("weekdays must be integers between 1 and 7")
        if len(set(weekdays)) != len(weekdays):
            raise InvalidScheduleError("weekdays must be distinct")
        normalized["weekdays"] = tuple(sorted(weekdays))
    elif times:
        raise InvalidScheduleError("as-needed schedules cannot carry times of day")
    return normalized


def _legacy_times(frequency: Frequency, value: Any) -> list[Any]:
    """Map a legacy single ``time`` onto ``times``.

    Only once-daily is fully described by one time; as-needed ignores it.
    Any other class stored this way never recorded its remaining doses.
    """
    if frequency == Frequency.AS_NEEDED:
        return []
    if frequency == Frequency.ONCE_DAILY and isinstance(value, str):
        return [value]
    raise MalformedScheduleError(
        f"Legacy single-time schedule cannot describe {frequency.value}"
    )


def parse_schedule(
    raw: Any,
) -> DailySchedule | WeeklySchedule | AsNeededSchedule:
    """Validate a raw descriptor into its typed variant.

    Raises :class:`MalformedScheduleError` when the value has no recognizable
    descriptor shape, and :class:`InvalidScheduleError` when the shape is
    recognized but the times do not fit the frequency class.
    """
    if isinstance(raw, (DailySchedule, WeeklySchedule, AsNeededSchedule)):
        return raw
    if not isinstance(raw, dict):
        raise MalformedScheduleError("Schedule must be an object")

    payload = dict(raw)
    try:
        frequency = Frequency(payload.get("frequency"))
    except ValueError as exc:
        raise MalformedScheduleError(
            f"Unknown schedule frequency {payload.get('frequency')!r}"
        ) from exc

    # Older clients stored a single ``time`` string next to any frequency.
    if "times" not in payload and "time" in payload:
        payload["times"] = _legacy_times(frequency, payload.pop("time"))

    normalized = _check_shape(frequency, payload)
    try:
        return _DESCRIPTOR_ADAPTER.validate_python(normalized)
    except ValidationError as exc:  # pragma: no cover - shape already checked
        raise InvalidScheduleError(str(exc)) from exc


class ScheduleIn(BaseModel):
    """Schedule payload accepted from API clients."""

    frequency: Frequency
    times: list[str] = Field(default_factory=list)
    weekdays: list[int] | None = None

    def to_descriptor(self) -> DailySchedule | WeeklySchedule | AsNeededSchedule:
        return parse_schedule(self.model_dump(mode="json", exclude_none=True))


class ScheduleRead(BaseModel):
    """Serialized schedule descriptor."""

    frequency: Frequency
    times: list[str] = Field(default_factory=list)
    weekdays: list[int] | None = None
