"""Integration tests for authentication endpoints."""
from __future__ import annotations

import pytest
from httpx import AsyncClient

from coffee_chronicles.core.config import settings
from tests.conftest import TEST_PASSWORD


@pytest.mark.asyncio
class TestAuthAPI:
    """Test login, verify and logout."""

    async def test_login_sets_http_only_cookie(self, client: AsyncClient):
        response = await client.post("/api/auth/login", json={"password": TEST_PASSWORD})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["expiresAt"].endswith("Z")

        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith(f"{settings.auth_cookie_name}=")
        assert "httponly" in set_cookie.lower()

    async def test_login_then_verify_then_logout(self, client: AsyncClient):
        login = await client.post("/api/auth/login", json={"password": TEST_PASSWORD})
        token = login.cookies[settings.auth_cookie_name]
        client.cookies.clear()
        client.cookies.set(settings.auth_cookie_name, token)

        verified = await client.get("/api/auth/verify")
        assert verified.json() == {"authenticated": True}

        logout = await client.post("/api/auth/logout")
        assert logout.status_code == 200
        assert logout.json() == {"success": True}

        client.cookies.clear()
        client.cookies.set(settings.auth_cookie_name, token)
        after = await client.get("/api/auth/verify")
        assert after.json() == {"authenticated": False}

    async def test_wrong_password(self, client: AsyncClient):
        response = await client.post("/api/auth/login", json={"password": "nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid password"}
        assert "set-cookie" not in response.headers

    async def test_empty_password_is_a_bad_request(self, client: AsyncClient):
        response = await client.post("/api/auth/login", json={"password": ""})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Invalid request data"
        assert data["field"] == "password"

    async def test_verify_without_cookie(self, client: AsyncClient):
        response = await client.get("/api/auth/verify")
        assert response.json() == {"authenticated": False}

    async def test_protected_route_requires_session(self, client: AsyncClient):
        response = await client.post("/api/coffee-dates", json={})

        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}

    async def test_stale_cookie_is_rejected(self, client: AsyncClient):
        client.cookies.set(settings.auth_cookie_name, "forged-token")

        response = await client.delete("/api/coffee-dates/anything")

        assert response.status_code == 401
