"""Tests for the root and health check endpoints."""
from unittest.mock import patch

from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession


async def test_root_reports_running(client: AsyncClient) -> None:
    """The root endpoint returns the running message."""
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Link Saver API running"}


async def test_root_does_not_require_auth(token_client) -> None:  # noqa: ANN001
    """The root endpoint is reachable without a token."""
    async with token_client(None) as anonymous:
        response = await anonymous.get("/")
    assert response.status_code == 200


async def test_health_endpoint_returns_healthy_status(client: AsyncClient) -> None:
    """Test that the health endpoint returns healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "healthy"}


async def test_health_endpoint_database_unavailable(
    client: AsyncClient, db_session: AsyncSession,
) -> None:
    """Health reports degraded instead of failing when the database errors."""
    with patch.object(
        db_session,
        "execute",
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")),
    ):
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "degraded", "database": "unhealthy"}


async def test_security_headers_present(client: AsyncClient) -> None:
    """Responses carry the security headers."""
    response = await client.get("/health")
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert "max-age=31536000" in response.headers["strict-transport-security"]
