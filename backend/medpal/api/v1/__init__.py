"""Versioned API router."""

from fastapi import APIRouter

from . import adherence, auth, dose_events, health, medications, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(medications.router, tags=["medications"])
router.include_router(dose_events.router, tags=["dose-events"])
router.include_router(adherence.router, tags=["adherence"])

__all__ = ["router"]
