"""Tests for health endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_ping(client: AsyncClient) -> None:
    response = await client.get("/api/v1/ping")
    assert response.json() == {"message": "pong"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "db_ok,redis_ok,expected",
    [
        (True, True, "healthy"),
        (True, False, "degraded"),
        (False, True, "unhealthy"),
    ],
)
async def test_detailed_health(client: AsyncClient, db_ok, redis_ok, expected) -> None:
    """Losing Redis degrades the service, losing the database breaks it."""
    with (
        patch(
            "app.api.v1.endpoints.health.check_database_connection",
            AsyncMock(return_value=db_ok),
        ),
        patch(
            "app.api.v1.endpoints.health.check_redis_connection",
            AsyncMock(return_value=redis_ok),
        ),
    ):
        response = await client.get("/api/v1/health/detailed")

    assert response.status_code == 200
    assert response.json()["status"] == expected


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient) -> None:
    response = await client.get("/api/v1/ping", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
    assert "X-Process-Time" in response.headers
