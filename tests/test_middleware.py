"""Middleware tests — request ID, CORS, authentication and error bodies."""

import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import auth_headers, create_profile
from senpai.auth.jwt import create_access_token
from senpai.errors import NotFoundError, UnavailableError
from senpai.main import create_app


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/version", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight answers for the configured origin."""
    response = await client.options(
        "/api/v1/matches",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_invalid_uuid_is_validation_error(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_profile(db_session)
    await db_session.commit()
    response = await client.get("/api/v1/matches/not-a-uuid", headers=auth_headers(user.id))
    assert response.status_code == 422
    assert response.json()["kind"] == "validation_error"


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/matches")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_garbage_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/matches", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/matches", headers=auth_headers(uuid.uuid4()))
        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"

    @pytest.mark.asyncio
    async def test_expired_token(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await create_profile(db_session)
        await db_session.commit()
        token = create_access_token(user.id, expires_minutes=-5)
        response = await client.get("/api/v1/matches", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_banned_user(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await create_profile(db_session, is_banned=True)
        await db_session.commit()
        response = await client.get("/api/v1/matches", headers=auth_headers(user.id))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_valid_user(self, client: AsyncClient, db_session: AsyncSession) -> None:
        user = await create_profile(db_session)
        await db_session.commit()
        response = await client.get("/api/v1/matches", headers=auth_headers(user.id))
        assert response.status_code == 200
        assert response.json() == {"matches": [], "total": 0}


@pytest.mark.asyncio
async def test_database_outage_is_retryable() -> None:
    """Transient database errors surface as 503 with kind ``unavailable``."""
    app = create_app()

    @app.get("/boom")
    async def boom() -> None:
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/boom")

    assert response.status_code == 503
    assert response.json() == {"detail": "Service temporarily unavailable", "kind": "unavailable"}
    assert response.headers["retry-after"] == "1"


@pytest.mark.asyncio
async def test_retryable_domain_error() -> None:
    app = create_app()

    @app.get("/busy")
    async def busy() -> None:
        raise UnavailableError("Match store is busy")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/busy")

    assert response.status_code == 503
    assert response.json() == {"detail": "Match store is busy", "kind": "unavailable"}
    assert response.headers["retry-after"] == "1"


@pytest.mark.asyncio
async def test_non_retryable_domain_error_has_no_retry_after() -> None:
    app = create_app()

    @app.get("/gone")
    async def gone() -> None:
        raise NotFoundError("Match not found")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/gone")

    assert response.status_code == 404
    assert "retry-after" not in response.headers
