"""Health endpoint smoke test."""

import pytest
from httpx import ASGITransport, AsyncClient

from medpal.main import app


@pytest.mark.asyncio
async def test_healthcheck_reports_database(sessionmaker) -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["database"] == "ok"
    assert payload["service"] == "MedPal API"


@pytest.mark.asyncio
async def test_root_and_security_headers() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/")
    assert response.json() == {"message": "MedPal API"}
    assert response.headers.get("x-content-type-options") == "nosniff"
    assert "x-request-id" in response.headers
