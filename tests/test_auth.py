"""
Authentication endpoint tests.
Covers: register, login, refresh rotation, logout revocation, /auth/me,
duplicate email/username and password changes.
"""
from __future__ import annotations

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def _login(client: AsyncClient, email: str = "testuser@example.com", password: str = "TestPass1"):
    return await client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )


class TestRegister:
    async def test_register_success(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "NewUser@Example.com",
                "username": "newuser",
                "password": "NewPass1",
                "full_name": "New User",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "newuser@example.com"
        assert data["username"] == "newuser"
        assert data["role"] == "user"
        assert "hashed_password" not in data
        assert "id" in data

    async def test_register_duplicate_email(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "testuser@example.com",  # already registered
                "username": "differentuser",
                "password": "TestPass1",
            },
        )
        assert response.status_code == 409

    async def test_register_duplicate_username(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "different@example.com",
                "username": "testuser",  # already registered
                "password": "TestPass1",
            },
        )
        assert response.status_code == 409

    async def test_register_weak_password(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "weak@example.com",
                "username": "weakuser",
                "password": "alllowercase1",  # no uppercase
            },
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_register_invalid_username(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "spaces@example.com",
                "username": "has spaces",
                "password": "ValidPass1",
            },
        )
        assert response.status_code == 422


class TestLogin:
    async def test_login_success(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await _login(client)
        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 15 * 60

    async def test_login_is_case_insensitive_on_email(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await _login(client, email="TESTUSER@example.com")
        assert response.status_code == 200

    async def test_login_wrong_password(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await _login(client, password="WrongPass1")
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    async def test_login_nonexistent_user(self, client: AsyncClient) -> None:
        response = await _login(client, email="nobody@example.com")
        assert response.status_code == 401

    async def test_login_deactivated_user(
        self, client: AsyncClient, registered_user: dict, admin_headers: dict
    ) -> None:
        deactivate = await client.delete(
            f"/api/v1/users/{registered_user['id']}", headers=admin_headers
        )
        assert deactivate.status_code == 204

        response = await _login(client)
        assert response.status_code == 401


class TestRefresh:
    async def test_refresh_success(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        refresh_token = (await _login(client)).json()["refresh_token"]

        response = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": refresh_token},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["refresh_token"] != refresh_token

    async def test_refresh_rotates_token(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        first = (await _login(client)).json()["refresh_token"]
        rotated = await client.post("/api/v1/auth/refresh", json={"refresh_token": first})
        assert rotated.status_code == 200

        reused = await client.post("/api/v1/auth/refresh", json={"refresh_token": first})
        assert reused.status_code == 401

    async def test_refresh_with_access_token_rejected(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        access_token = (await _login(client)).json()["access_token"]
        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": access_token}
        )
        assert response.status_code == 401

    async def test_refresh_invalid_token(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": "this.is.invalid"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"


class TestLogout:
    async def test_logout_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post("/api/v1/auth/logout", headers=auth_headers)
        assert response.status_code == 204

    async def test_logout_revokes_refresh_token(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        tokens = (await _login(client)).json()
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}
        await client.post("/api/v1/auth/logout", headers=headers)

        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert response.status_code == 401

    async def test_logout_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/logout")
        assert response.status_code == 401


class TestGetMe:
    async def test_auth_me(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        response = await client.get("/api/v1/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["id"] == registered_user["id"]

    async def test_get_me_success(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        response = await client.get("/api/v1/users/me", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == registered_user["email"]

    async def test_get_me_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/users/me")
        assert response.status_code == 401

    async def test_get_me_garbage_token(self, client: AsyncClient) -> None:
        response = await client.get(
            "/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401


class TestPasswordChange:
    async def test_change_password(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.put(
            "/api/v1/users/me/password",
            json={"current_password": "TestPass1", "new_password": "BetterPass2"},
            headers=auth_headers,
        )
        assert response.status_code == 204

        assert (await _login(client)).status_code == 401
        assert (await _login(client, password="BetterPass2")).status_code == 200

    async def test_change_password_wrong_current(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.put(
            "/api/v1/users/me/password",
            json={"current_password": "Nope12345", "new_password": "BetterPass2"},
            headers=auth_headers,
        )
        assert response.status_code == 400
