"""
Team endpoint tests.
Covers: create team, membership management, role changes, leaving,
team task access and role enforcement.
"""
from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def _register_and_login(
    client: AsyncClient, email: str, username: str, password: str = "TestPass1"
) -> tuple[str, dict[str, str]]:
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": email, "username": username, "password": password},
    )
    user_id = resp.json()["id"]
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    token = resp.json()["access_token"]
    return user_id, {"Authorization": f"Bearer {token}"}


async def _create_team(
    client: AsyncClient, headers: dict, name: str = "Test Team"
) -> dict[str, Any]:
    resp = await client.post(
        "/api/v1/teams/",
        json={"name": name, "description": "A test team"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _add_member(
    client: AsyncClient, headers: dict, team_id: str, user_id: str, role: str = "member"
):
    return await client.post(
        f"/api/v1/teams/{team_id}/members",
        json={"user_id": user_id, "role": role},
        headers=headers,
    )


class TestCreateTeam:
    async def test_create_team_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/teams/",
            json={"name": "Engineering", "description": "Backend team"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Engineering"
        assert data["is_active"] is True
        assert "id" in data

    async def test_creator_becomes_manager(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.get(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        members = response.json()["members"]
        assert [(m["user_id"], m["role"]) for m in members] == [
            (registered_user["id"], "manager")
        ]

    async def test_create_team_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/teams/",
            json={"name": "Unauthorized Team"},
        )
        assert response.status_code == 401


class TestGetTeam:
    async def test_get_team_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Visible Team")
        response = await client.get(
            f"/api/v1/teams/{team['id']}", headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == team["id"]
        assert "members" in data

    async def test_get_team_not_member(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Private Team")

        _, other_headers = await _register_and_login(
            client, "nonmember@example.com", "nonmember"
        )
        response = await client.get(
            f"/api/v1/teams/{team['id']}", headers=other_headers
        )
        assert response.status_code == 403

    async def test_admin_can_view_any_team(
        self, client: AsyncClient, auth_headers: dict, admin_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.get(f"/api/v1/teams/{team['id']}", headers=admin_headers)
        assert response.status_code == 200


class TestAddMember:
    async def test_add_member_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Growing Team")
        member_id, _ = await _register_and_login(client, "member3@example.com", "member3")

        response = await _add_member(client, auth_headers, team["id"], member_id)
        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == member_id
        assert data["role"] == "member"
        assert data["user"]["username"] == "member3"

    async def test_add_member_sends_invite_notification(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Notifying Team")
        member_id, member_headers = await _register_and_login(
            client, "invitee@example.com", "invitee"
        )
        await _add_member(client, auth_headers, team["id"], member_id)

        response = await client.get("/api/v1/notifications/", headers=member_headers)
        types = [n["type"] for n in response.json()["items"]]
        assert types == ["team_invite"]

    async def test_add_duplicate_member(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Duplicate Test Team")
        member_id, _ = await _register_and_login(client, "dup_member@example.com", "dup_member")

        await _add_member(client, auth_headers, team["id"], member_id)
        # Adding twice conflicts
        response = await _add_member(client, auth_headers, team["id"], member_id)
        assert response.status_code == 409

    async def test_plain_member_cannot_add(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        member_id, member_headers = await _register_and_login(
            client, "plain@example.com", "plain"
        )
        outsider_id, _ = await _register_and_login(client, "outsider@example.com", "outsider")
        await _add_member(client, auth_headers, team["id"], member_id)

        response = await _add_member(client, member_headers, team["id"], outsider_id)
        assert response.status_code == 403

    async def test_add_unknown_user(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        response = await _add_member(
            client, auth_headers, team["id"], "00000000-0000-0000-0000-000000000000"
        )
        assert response.status_code == 404


class TestMemberRoles:
    async def test_owner_promotes_member(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        member_id, member_headers = await _register_and_login(
            client, "promoted@example.com", "promoted"
        )
        await _add_member(client, auth_headers, team["id"], member_id)

        response = await client.patch(
            f"/api/v1/teams/{team['id']}/members/{member_id}",
            json={"role": "manager"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["role"] == "manager"

        notifications = await client.get("/api/v1/notifications/", headers=member_headers)
        types = {n["type"] for n in notifications.json()["items"]}
        assert "team_role_changed" in types

    async def test_owner_role_is_fixed(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.patch(
            f"/api/v1/teams/{team['id']}/members/{registered_user['id']}",
            json={"role": "member"},
            headers=auth_headers,
        )
        assert response.status_code == 400


class TestRemoveMember:
    async def test_remove_member_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Shrinking Team")
        member_id, _ = await _register_and_login(client, "removable@example.com", "removable")
        await _add_member(client, auth_headers, team["id"], member_id)

        response = await client.delete(
            f"/api/v1/teams/{team['id']}/members/{member_id}",
            headers=auth_headers,
        )
        assert response.status_code == 204

        team_resp = await client.get(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        assert member_id not in [m["user_id"] for m in team_resp.json()["members"]]

    async def test_owner_cannot_be_removed(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.delete(
            f"/api/v1/teams/{team['id']}/members/{registered_user['id']}",
            headers=auth_headers,
        )
        assert response.status_code == 403


class TestLeaveTeam:
    async def test_member_leaves(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        member_id, member_headers = await _register_and_login(
            client, "leaver@example.com", "leaver"
        )
        await _add_member(client, auth_headers, team["id"], member_id)

        response = await client.post(
            f"/api/v1/teams/{team['id']}/leave", headers=member_headers
        )
        assert response.status_code == 204

        after = await client.get(f"/api/v1/teams/{team['id']}", headers=member_headers)
        assert after.status_code == 403

    async def test_owner_cannot_leave(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.post(f"/api/v1/teams/{team['id']}/leave", headers=auth_headers)
        assert response.status_code == 400


class TestListMyTeams:
    async def test_list_my_teams(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        await _create_team(client, auth_headers, name="My Team A")
        await _create_team(client, auth_headers, name="My Team B")

        response = await client.get("/api/v1/teams/", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert "items" in data
        assert data["total"] == 2

    async def test_other_users_teams_hidden(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        await _create_team(client, auth_headers, name="Not Yours")
        _, other_headers = other_user
        response = await client.get("/api/v1/teams/", headers=other_headers)
        assert response.json()["total"] == 0


class TestUpdateTeam:
    async def test_update_team_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Old Name")
        response = await client.put(
            f"/api/v1/teams/{team['id']}",
            json={"name": "New Name"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "New Name"

    async def test_update_team_non_owner_forbidden(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Protected Team")

        _, other_headers = await _register_and_login(
            client, "intruder@example.com", "intruder"
        )
        response = await client.put(
            f"/api/v1/teams/{team['id']}",
            json={"name": "Hijacked"},
            headers=other_headers,
        )
        assert response.status_code == 403


class TestTeamTasks:
    async def test_member_sees_team_tasks(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        member_id, member_headers = await _register_and_login(
            client, "teammate@example.com", "teammate"
        )
        await _add_member(client, auth_headers, team["id"], member_id)
        created = await client.post(
            "/api/v1/tasks/",
            json={"title": "Team chore", "team_id": team["id"]},
            headers=auth_headers,
        )
        assert created.status_code == 201, created.text

        response = await client.get(f"/api/v1/tasks/team/{team['id']}", headers=member_headers)
        assert response.status_code == 200
        assert [t["title"] for t in response.json()["items"]] == ["Team chore"]

    async def test_non_member_cannot_list_team_tasks(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        team = await _create_team(client, auth_headers)
        _, other_headers = other_user
        response = await client.get(f"/api/v1/tasks/team/{team['id']}", headers=other_headers)
        assert response.status_code == 403

    async def test_non_member_cannot_create_team_task(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        team = await _create_team(client, auth_headers)
        _, other_headers = other_user
        response = await client.post(
            "/api/v1/tasks/",
            json={"title": "Sneaky", "team_id": team["id"]},
            headers=other_headers,
        )
        assert response.status_code == 403


class TestDeleteTeam:
    async def test_owner_deletes_team(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.delete(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        assert response.status_code == 204

        after = await client.get(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        assert after.status_code == 404
