"""Request-scoped dependencies shared by the routers."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from medpal.core.config import get_settings
from medpal.core.security import decode_subject
from medpal.core.settings import DosePolicy, get_dose_policy
from medpal.db.session import get_session
from medpal.models.user import User, UserStatus
from medpal.services import user_service

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{get_settings().api_v1_prefix}/auth/token"
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_now() -> datetime:
    """The instant lazy dose statuses are evaluated against."""
    return datetime.now(UTC)


def get_policy() -> DosePolicy:
    return get_dose_policy()


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> User:
    """Resolve the bearer token to an active user or answer 401."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user_id = decode_subject(token)
    except JWTError as exc:
        raise unauthorized from exc

    user = await user_service.get_user(session, user_id)
    if user is None or user.status != UserStatus.ACTIVE:
        raise unauthorized
    return user


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
CurrentUser = Annotated[User, Depends(get_current_user)]
NowDep = Annotated[datetime, Depends(get_now)]
PolicyDep = Annotated[DosePolicy, Depends(get_policy)]
