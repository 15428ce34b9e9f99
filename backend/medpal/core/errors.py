"""Domain errors raised by the dose engine services."""

from __future__ import annotations


class InvalidScheduleError(ValueError):
    """A schedule descriptor is structurally valid but cannot be expanded."""


class NotFoundError(LookupError):
    """A record is missing or not owned by the requesting user."""


class InvalidTransitionError(ValueError):
    """A lifecycle action is not allowed from the event's current status."""


class ConcurrencyConflictError(RuntimeError):
    """A write lost a race and the single retry did not settle it."""


class StoreUnavailableError(RuntimeError):
    """The backing store could not be reached."""


__all__ = [
    "ConcurrencyConflictError",
    "InvalidScheduleError",
    "InvalidTransitionError",
    "NotFoundError",
    "StoreUnavailableError",
]
