"""Tests for service-level endpoints, auth and error rendering."""

import pytest
from httpx import AsyncClient

from mindsy.auth.security import create_session_token, decode_session_token


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] in ("healthy", "degraded")
    assert data["storage"] == "ok"
    assert set(data) >= {"database", "redis", "storage", "version"}


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    """Test root endpoint."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "mindsy-notes-service"
    assert data["health"] == "/health"


@pytest.mark.asyncio
async def test_notes_require_auth(client: AsyncClient):
    response = await client.get("/api/notes")
    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required"}


@pytest.mark.asyncio
async def test_rejects_non_bearer_scheme(client: AsyncClient):
    response = await client.get("/api/notes", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rejects_tampered_token(client: AsyncClient):
    token = create_session_token("user-1") + "x"
    response = await client.get("/api/notes", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_validation_errors_are_400(client: AsyncClient, auth_headers: dict):
    response = await client.post("/api/generate", headers=auth_headers, json={"lectureTitle": "x"})
    assert response.status_code == 400
    assert "audioFilePath" in response.json()["error"]


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client: AsyncClient):
    response = await client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_session_token_roundtrip():
    user = decode_session_token(create_session_token("abc", email="a@example.com"))
    assert user is not None
    assert user.id == "abc"
    assert user.email == "a@example.com"


def test_expired_session_token():
    assert decode_session_token(create_session_token("abc", expires_in_minutes=-5)) is None
