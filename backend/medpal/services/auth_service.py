"""Credential checks and token issue."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from medpal.core.security import create_access_token, verify_password
from medpal.models.user import User, UserStatus
from medpal.schemas.auth import Token
from medpal.services import user_service

logger = logging.getLogger(__name__)


async def authenticate_user(
    session: AsyncSession, email: str, password: str
) -> User | None:
    """Return the active user matching the credentials, if any."""
    user = await user_service.get_user_by_email(session, email=email.lower())
    if user is None or not verify_password(password, user.hashed_password):
        logger.info("Rejected login attempt")
        return None
    if user.status != UserStatus.ACTIVE:
        logger.info("Rejected login for suspended user %s", user.id)
        return None
    return user


def issue_token(user: User) -> Token:
    return Token(access_token=create_access_token(user.id))
