"""
User profile and admin user-management tests.
"""
from __future__ import annotations

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


class TestProfile:
    async def test_update_profile(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.put(
            "/api/v1/users/me",
            json={"full_name": "Renamed User", "username": "renamed"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["full_name"] == "Renamed User"
        assert data["username"] == "renamed"

    async def test_update_profile_taken_username(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        response = await client.put(
            "/api/v1/users/me",
            json={"username": "otheruser"},
            headers=auth_headers,
        )
        assert response.status_code == 409

    async def test_delete_own_account(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.delete("/api/v1/users/me", headers=auth_headers)
        assert response.status_code == 204

        assert (await client.get("/api/v1/users/me", headers=auth_headers)).status_code == 401
        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "testuser@example.com", "password": "TestPass1"},
        )
        assert login.status_code == 401

        # The email is free again
        again = await client.post(
            "/api/v1/auth/register",
            json={"email": "testuser@example.com", "username": "testuser", "password": "TestPass1"},
        )
        assert again.status_code == 201

    async def test_delete_requires_auth(self, client: AsyncClient) -> None:
        assert (await client.delete("/api/v1/users/me")).status_code == 401


class TestSearch:
    async def test_search_by_username_prefix(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        response = await client.get("/api/v1/users/search?q=oth", headers=auth_headers)
        assert response.status_code == 200
        usernames = [u["username"] for u in response.json()]
        assert usernames == ["otheruser"]
        assert "email" not in response.json()[0]

    async def test_search_requires_query(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.get("/api/v1/users/search", headers=auth_headers)
        assert response.status_code == 422


class TestAdminUsers:
    async def test_list_users_requires_admin(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.get("/api/v1/users/", headers=auth_headers)
        assert response.status_code == 403

    async def test_admin_lists_users(
        self, client: AsyncClient, admin_headers: dict, registered_user: dict
    ) -> None:
        response = await client.get("/api/v1/users/", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["total"] >= 2

    async def test_admin_promotes_user(
        self, client: AsyncClient, admin_headers: dict, registered_user: dict
    ) -> None:
        response = await client.patch(
            f"/api/v1/users/{registered_user['id']}",
            json={"role": "admin"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    async def test_admin_cannot_deactivate_self(
        self, client: AsyncClient, admin_headers: dict, registered_admin: dict
    ) -> None:
        response = await client.delete(
            f"/api/v1/users/{registered_admin['id']}", headers=admin_headers
        )
        assert response.status_code == 400

    async def test_deactivated_user_token_rejected(
        self,
        client: AsyncClient,
        admin_headers: dict,
        auth_headers: dict,
        registered_user: dict,
    ) -> None:
        await client.delete(f"/api/v1/users/{registered_user['id']}", headers=admin_headers)
        response = await client.get("/api/v1/users/me", headers=auth_headers)
        assert response.status_code == 401
