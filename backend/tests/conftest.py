"""Test fixtures for the MedPal backend."""
from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from medpal.api import deps
from medpal.core.config import get_settings
from medpal.core.settings import DosePolicy
from medpal.db.base import Base
from medpal.db.session import dispose_engine, get_sessionmaker
from medpal.main import app
from medpal.models import Medication, User, UserStatus

# Tuesday, so weekly schedules have a predictable first match.
FIXED_NOW = datetime(2025, 3, 4, 12, 0, tzinfo=UTC)
TWICE_DAILY = {"frequency": "twice-daily", "times": ["08:00", "20:00"]}


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest.fixture()
def sessionmaker(
    reset_database: None, db_url: str
) -> async_sessionmaker[AsyncSession]:
    return get_sessionmaker(db_url)


@pytest.fixture()
def policy() -> DosePolicy:
    return DosePolicy(
        grace=timedelta(minutes=60),
        snooze=timedelta(minutes=15),
        snooze_limit=2,
    )


async def _create_user(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    timezone: str = "UTC",
) -> User:
    async with sessionmaker() as session:
        user = User(
            email=f"user+{uuid.uuid4().hex[:8]}@example.com",
            hashed_password="x",
            first_name="Robin",
            last_name="Patient",
            timezone=timezone,
            status=UserStatus.ACTIVE,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def _create_medication(
    sessionmaker: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    *,
    schedule: dict[str, Any] | None = None,
    **fields: Any,
) -> Medication:
    async with sessionmaker() as session:
        medication = Medication(
            user_id=user_id,
            name=fields.pop("name", "Lisinopril"),
            dosage=fields.pop("dosage", "10 mg"),
            schedule=schedule if schedule is not None else TWICE_DAILY,
            **fields,
        )
        session.add(medication)
        await session.commit()
        await session.refresh(medication)
        return medication


@pytest.fixture()
def make_user(sessionmaker: async_sessionmaker[AsyncSession]):
    """Factory for users stored directly through the ORM."""

    async def factory(*, timezone: str = "UTC") -> User:
        return await _create_user(sessionmaker, timezone=timezone)

    return factory


@pytest.fixture()
def make_medication(sessionmaker: async_sessionmaker[AsyncSession]):
    """Factory for medications; the schedule is stored without validation."""

    async def factory(user_id: uuid.UUID, **fields: Any) -> Medication:
        return await _create_medication(sessionmaker, user_id, **fields)

    return factory


@pytest_asyncio.fixture()
async def owner(sessionmaker: async_sessionmaker[AsyncSession]) -> User:
    """A user in UTC for service-level tests."""
    return await _create_user(sessionmaker)


@pytest_asyncio.fixture()
async def app_context(
    sessionmaker: async_sessionmaker[AsyncSession],
) -> AsyncIterator[dict[str, object]]:
    """Yield an async client, a frozen clock and a registered user's token."""
    clock = {"now": FIXED_NOW}
    app.dependency_overrides[deps.get_now] = lambda: clock["now"]

    password = "Passw0rd!"
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        register = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "robin@example.com",
                "password": password,
                "first_name": "Robin",
                "last_name": "Patient",
                "timezone": "UTC",
            },
        )
        assert register.status_code == 201
        token_resp = await client.post(
            "/api/v1/auth/token",
            data={"username": "robin@example.com", "password": password},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert token_resp.status_code == 200
        token = token_resp.json()["access_token"]

        yield {
            "client": client,
            "clock": clock,
            "user_id": register.json()["id"],
            "headers": {"Authorization": f"Bearer {token}"},
        }
    app.dependency_overrides.pop(deps.get_now, None)
