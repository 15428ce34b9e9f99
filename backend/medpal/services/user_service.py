"""User data access helpers."""
from __future__ import annotations

import logging
import uuid
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medpal.core.config import get_settings
from medpal.core.errors import NotFoundError
from medpal.core.security import get_password_hash
from medpal.models.user import User
from medpal.schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Return the zone for ``name``, falling back to the configured default."""
    fallback = get_settings().default_timezone
    try:
        return ZoneInfo(name or fallback)
    except (ZoneInfoNotFoundError, ValueError):  # pragma: no cover - depends on system tz database
        logger.warning("Unknown time zone %r; using %s", name, fallback)
        return ZoneInfo(fallback)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Return a user by email address."""
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Return a user by ID."""
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_timezone(session: AsyncSession, user_id: uuid.UUID) -> ZoneInfo:
    """Return the configured time zone of an existing user."""
    user = await get_user(session, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return resolve_timezone(user.timezone)


async def create_user(session: AsyncSession, payload: UserCreate) -> User:
    """Persist a new user with hashed password."""
    user = User(
        email=payload.email.lower(),
        hashed_password=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        date_of_birth=payload.date_of_birth,
        timezone=payload.timezone or get_settings().default_timezone,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise exc
    await session.refresh(user)
    return user


async def update_user(session: AsyncSession, user: User, payload: UserUpdate) -> User:
    """Update mutable fields on a user."""
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field == "timezone" and value is None:
            continue
        setattr(user, field, value)
    await session.commit()
    await session.refresh(user)
    return user
