"""Registration, login and profile tests."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def test_duplicate_registration_is_rejected(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "ROBIN@example.com", "password": "Another1!"},
    )
    assert resp.status_code == 409


async def test_wrong_password_is_unauthorized(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    resp = await client.post(
        "/api/v1/auth/token",
        data={"username": "robin@example.com", "password": "not-the-password"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 401


async def test_garbage_token_is_unauthorized(app_context: dict[str, Any]) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    resp = await client.get(
        "/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401


async def test_profile_time_zone_drives_materialization(
    app_context: dict[str, Any],
) -> None:
    client: AsyncClient = app_context["client"]  # type: ignore[assignment]
    headers = app_context["headers"]

    me = await client.get("/api/v1/users/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["email"] == "robin@example.com"
    assert me.json()["timezone"] == "UTC"

    invalid = await client.patch(
        "/api/v1/users/me", json={"timezone": "Mars/Olympus"}, headers=headers
    )
    assert invalid.status_code == 422

    updated = await client.patch(
        "/api/v1/users/me", json={"timezone": "America/Chicago"}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["timezone"] == "America/Chicago"

    created = await client.post(
        "/api/v1/medications",
        json={
            "name": "Amlodipine",
            "dosage": "5 mg",
            "schedule": {"frequency": "once-daily", "times": ["08:00"]},
        },
        headers=headers,
    )
    events = await client.post(
        f"/api/v1/medications/{created.json()['id']}/materialize",
        json={"start_date": "2025-03-05", "end_date": "2025-03-05"},
        headers=headers,
    )
    assert events.status_code == 200
    # 08:00 CST is 14:00 UTC.
    assert events.json()[0]["scheduled_at"].startswith("2025-03-05T14:00:00")
