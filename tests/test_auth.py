"""Authentication, registration and profile tests.

Runs with the real get_current_user dependency (the conftest override is
removed) against InMemoryUserRepository.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

from src.crm.api.deps import get_current_user
from src.crm.config import get_settings
from src.crm.core.security import (
    create_access_token,
    hash_password,
    token_pair_for,
    verify_password,
)

PASSWORD = "correct horse battery"


@pytest_asyncio.fixture
async def auth_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Client that goes through real Bearer token authentication."""
    app.dependency_overrides.pop(get_current_user, None)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _register(client, email="owner@example.com") -> dict:
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": PASSWORD, "full_name": "Pat Owner"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ── Security primitives ─────────────────────────────────────────────────────


def test_password_hash_roundtrip():
    hashed = hash_password(PASSWORD)
    assert hashed != PASSWORD
    assert verify_password(PASSWORD, hashed)
    assert not verify_password("wrong", hashed)


def test_token_pair_claims():
    access, refresh = token_pair_for("user-1", "a@example.com")
    settings = get_settings()
    payload = jwt.decode(access, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    assert payload["sub"] == "user-1"
    assert payload["email"] == "a@example.com"
    assert payload["type"] == "access"
    refresh_payload = jwt.decode(
        refresh, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
    )
    assert refresh_payload["type"] == "refresh"


# ── Registration and login ──────────────────────────────────────────────────


async def test_register_seeds_default_pipeline(auth_client):
    tokens = await _register(auth_client)
    assert tokens["token_type"] == "bearer"

    response = await auth_client.get("/api/v1/stages", headers=_bearer(tokens["access_token"]))
    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == [
        "Lead",
        "Qualified",
        "Proposal",
        "Negotiation",
        "Won",
        "Lost",
    ]


async def test_register_duplicate_email(auth_client):
    await _register(auth_client)
    response = await auth_client.post(
        "/api/v1/auth/register",
        json={"email": "owner@example.com", "password": PASSWORD},
    )
    assert response.status_code == 409


async def test_login_valid_credentials(auth_client):
    await _register(auth_client)
    response = await auth_client.post(
        "/api/v1/auth/login",
        json={"email": "owner@example.com", "password": PASSWORD},
    )
    assert response.status_code == 200, response.text
    assert "access_token" in response.json()


async def test_login_invalid_credentials(auth_client):
    await _register(auth_client)
    response = await auth_client.post(
        "/api/v1/auth/login",
        json={"email": "owner@example.com", "password": "wrong-password"},
    )
    assert response.status_code == 401


async def test_login_nonexistent_user(auth_client):
    response = await auth_client.post(
        "/api/v1/auth/login",
        json={"email": "nobody@example.com", "password": "any-password"},
    )
    assert response.status_code == 401


async def test_refresh_token(auth_client):
    tokens = await _register(auth_client)
    response = await auth_client.post(
        "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert response.status_code == 200

    # An access token is not accepted as a refresh token.
    response = await auth_client.post(
        "/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]}
    )
    assert response.status_code == 401


# ── Protected endpoints ─────────────────────────────────────────────────────


async def test_me_with_valid_token(auth_client):
    tokens = await _register(auth_client)
    response = await auth_client.get("/api/v1/auth/me", headers=_bearer(tokens["access_token"]))
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "owner@example.com"
    assert data["full_name"] == "Pat Owner"
    assert "hashed_password" not in data


async def test_access_without_token(auth_client):
    response = await auth_client.get("/api/v1/deals")
    assert response.status_code == 401


async def test_access_with_expired_token(auth_client):
    tokens = await _register(auth_client)
    sub = jwt.get_unverified_claims(tokens["access_token"])["sub"]
    expired = create_access_token({"sub": sub}, expires_delta=timedelta(seconds=-1))

    response = await auth_client.get("/api/v1/auth/me", headers=_bearer(expired))
    assert response.status_code == 401


async def test_token_for_deleted_user(auth_client):
    tokens = await _register(auth_client)
    headers = _bearer(tokens["access_token"])

    assert (await auth_client.delete("/api/v1/profile", headers=headers)).status_code == 204
    assert (await auth_client.get("/api/v1/profile", headers=headers)).status_code == 401


async def test_update_profile(auth_client):
    tokens = await _register(auth_client)
    response = await auth_client.patch(
        "/api/v1/profile",
        json={"full_name": "Pat Q. Owner", "avatar_url": ""},
        headers=_bearer(tokens["access_token"]),
    )
    assert response.status_code == 200
    assert response.json()["full_name"] == "Pat Q. Owner"
    assert response.json()["avatar_url"] is None
