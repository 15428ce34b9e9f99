"""Translate dose engine errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from medpal.core.errors import (
    ConcurrencyConflictError,
    InvalidScheduleError,
    InvalidTransitionError,
    NotFoundError,
    StoreUnavailableError,
)

DOMAIN_ERRORS = (
    InvalidScheduleError,
    InvalidTransitionError,
    NotFoundError,
    ConcurrencyConflictError,
    StoreUnavailableError,
    ValueError,
)


def to_http(exc: Exception) -> HTTPException:
    """Map a service exception onto its HTTP status."""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, InvalidScheduleError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, (InvalidTransitionError, ConcurrencyConflictError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, StoreUnavailableError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))
