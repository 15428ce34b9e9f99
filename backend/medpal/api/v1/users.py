"""Current user profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from medpal.api.deps import CurrentUser, SessionDep
from medpal.schemas.user import UserRead, UserUpdate
from medpal.services import user_service

router = APIRouter()


@router.get("/me", response_model=UserRead, summary="Get current user")
async def read_current_user(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)


@router.patch("/me", response_model=UserRead, summary="Update current user")
async def update_current_user(
    payload: UserUpdate,
    session: SessionDep,
    current_user: CurrentUser,
) -> UserRead:
    """Update profile fields, including the time zone used for dose schedules."""
    user = await user_service.update_user(session, current_user, payload)
    return UserRead.model_validate(user)
