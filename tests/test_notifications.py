"""Tests for notification endpoints."""

import pytest
from httpx import AsyncClient


async def _notify(client: AsyncClient, headers: dict, title: str, **extra) -> dict:
    response = await client.post("/api/notifications", headers=headers, json={"title": title, **extra})
    assert response.status_code == 201
    return response.json()["data"]["notification"]


@pytest.mark.asyncio
async def test_create_and_list(client: AsyncClient, auth_headers: dict, other_headers: dict):
    created = await _notify(client, auth_headers, "Upload finished", type="success", category="upload")
    await _notify(client, other_headers, "Not for you")

    assert created["read"] is False
    assert created["type"] == "success"

    response = await client.get("/api/notifications", headers=auth_headers)
    data = response.json()["data"]
    assert [n["title"] for n in data["notifications"]] == ["Upload finished"]
    assert data["unread_count"] == 1


@pytest.mark.asyncio
async def test_mark_read_and_unread_filter(client: AsyncClient, auth_headers: dict):
    first = await _notify(client, auth_headers, "First")
    await _notify(client, auth_headers, "Second")

    response = await client.patch(f"/api/notifications/{first['id']}/read", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["notification"]["read"] is True

    response = await client.get("/api/notifications", headers=auth_headers, params={"unread": True})
    data = response.json()["data"]
    assert [n["title"] for n in data["notifications"]] == ["Second"]
    assert data["unread_count"] == 1


@pytest.mark.asyncio
async def test_mark_all_read(client: AsyncClient, auth_headers: dict):
    await _notify(client, auth_headers, "One")
    await _notify(client, auth_headers, "Two")

    response = await client.post("/api/notifications/mark-all-read", headers=auth_headers)
    assert response.json()["data"]["updated"] == 2

    response = await client.get("/api/notifications", headers=auth_headers)
    assert response.json()["data"]["unread_count"] == 0


@pytest.mark.asyncio
async def test_delete_only_own(client: AsyncClient, auth_headers: dict, other_headers: dict):
    mine = await _notify(client, auth_headers, "Mine")

    response = await client.delete(f"/api/notifications/{mine['id']}", headers=other_headers)
    assert response.status_code == 404

    response = await client.delete(f"/api/notifications/{mine['id']}", headers=auth_headers)
    assert response.status_code == 200

    response = await client.patch(f"/api/notifications/{mine['id']}/read", headers=auth_headers)
    assert response.status_code == 404
