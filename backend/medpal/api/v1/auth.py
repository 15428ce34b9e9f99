"""Authentication endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from sqlalchemy.exc import IntegrityError

from medpal.api.deps import SessionDep
from medpal.core.config import get_settings
from medpal.schemas.auth import Token
from medpal.schemas.user import UserCreate, UserRead
from medpal.services import user_service
from medpal.services.auth_service import authenticate_user, issue_token

logger = logging.getLogger(__name__)

router = APIRouter()

_settings = get_settings()

_SECONDS_PER_WINDOW = {
    "second": 1,
    "seconds": 1,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}


def _parse_rate(value: str, *, fallback: tuple[int, int]) -> tuple[int, int]:
    try:
        count_str, window_str = value.split("/", 1)
        count = int(count_str.strip())
    except ValueError:
        return fallback
    seconds = _SECONDS_PER_WINDOW.get(window_str.strip().lower(), fallback[1])
    return count, seconds


def _rate_dependency(limit: tuple[int, int]):
    async def _dependency(request: Request, response: Response) -> None:
        if FastAPILimiter.redis is None:
            return None
        limiter = RateLimiter(times=limit[0], seconds=limit[1])
        await limiter(request, response)

    return Depends(_dependency)


_LOGIN_RATE_DEP = _rate_dependency(
    _parse_rate(_settings.rate_limit_login, fallback=(10, 60))
)
_DEFAULT_RATE_DEP = _rate_dependency(
    _parse_rate(_settings.rate_limit_default, fallback=(100, 60))
)


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    dependencies=[_DEFAULT_RATE_DEP],
)
async def register(payload: UserCreate, session: SessionDep) -> UserRead:
    """Create a user account for self-service sign up."""
    existing = await user_service.get_user_by_email(session, email=payload.email.lower())
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Email already registered"
        )
    try:
        user = await user_service.create_user(session, payload)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Email already registered"
        ) from exc
    logger.info("Registered user %s", user.id)
    return UserRead.model_validate(user)


@router.post(
    "/token",
    response_model=Token,
    summary="Obtain access token",
    dependencies=[_LOGIN_RATE_DEP],
)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    session: SessionDep,
) -> Token:
    """Validate credentials and issue a bearer token."""
    user = await authenticate_user(
        session, email=form_data.username, password=form_data.password
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return issue_token(user)
