"""Liveness and store reachability."""

from datetime import UTC, datetime

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from medpal.api.deps import SessionDep
from medpal.core.config import get_settings

router = APIRouter()


@router.get("", summary="Service health status")
async def healthcheck(session: SessionDep, response: Response) -> dict[str, str]:
    """Report service metadata and whether the database answers."""
    settings = get_settings()
    try:
        await session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        database = "unavailable"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ok" if database == "ok" else "degraded",
        "service": settings.app_name,
        "database": database,
        "environment": settings.app_env,
        "checked_at": datetime.now(UTC).isoformat(),
    }
