"""User-related schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from medpal.models.user import UserStatus


def _validate_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone {value!r}") from exc
    return value


class UserBase(BaseModel):
    """Shared user fields."""

    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None


class UserCreate(UserBase):
    """Self-service registration payload."""

    email: EmailStr
    password: str = Field(min_length=8)
    timezone: str | None = None

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        return _validate_timezone(value) if value is not None else value


class UserUpdate(BaseModel):
    """Mutable profile fields."""

    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    timezone: str | None = None

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        return _validate_timezone(value) if value is not None else value


class UserRead(UserBase):
    """Serialized user."""

    id: uuid.UUID
    email: str
    timezone: str
    status: UserStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
