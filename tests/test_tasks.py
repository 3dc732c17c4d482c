"""
Task endpoint tests.
Covers: create, read, update, status changes, archive/restore, assignment,
filters, pagination and unauthorized access.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def _create_task(
    client: AsyncClient,
    headers: dict,
    title: str = "Test Task",
    **kwargs: Any,
) -> dict:
    payload = {
        "title": title,
        "description": "A test task description",
        "status": "pending",
        "priority": "medium",
        **kwargs,
    }
    response = await client.post("/api/v1/tasks/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateTask:
    async def test_create_task_success(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/tasks/",
            json={
                "title": "My First Task",
                "description": "Do something important",
                "status": "pending",
                "priority": "high",
                "tags": ["Urgent", "backend", "urgent "],
            },
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "My First Task"
        assert data["priority"] == "high"
        assert data["status"] == "pending"
        assert data["tags"] == ["urgent", "backend"]
        assert data["is_archived"] is False
        assert data["owner_id"] == registered_user["id"]
        assert data["subtasks"] == []
        assert data["progress"] == 0

    async def test_create_completed_task_sets_completed_at(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        task = await _create_task(client, auth_headers, status="completed")
        assert task["completed_at"] is not None

    async def test_create_task_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/tasks/",
            json={"title": "Unauthorized Task", "status": "pending", "priority": "low"},
        )
        assert response.status_code == 401

    async def test_create_task_missing_title(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/tasks/",
            json={"status": "pending", "priority": "low"},
            headers=auth_headers,
        )
        assert response.status_code == 422

    async def test_create_task_due_before_start(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/tasks/",
            json={
                "title": "Backwards",
                "start_date": "2030-01-10T00:00:00Z",
                "due_date": "2030-01-01T00:00:00Z",
            },
            headers=auth_headers,
        )
        assert response.status_code == 422

    async def test_create_task_invalid_status(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/tasks/",
            json={"title": "Odd", "status": "someday"},
            headers=auth_headers,
        )
        assert response.status_code == 422


class TestGetTask:
    async def test_get_task_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        task = await _create_task(client, auth_headers, title="Readable Task")
        response = await client.get(
            f"/api/v1/tasks/{task['id']}", headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["id"] == task["id"]

    async def test_get_task_not_found(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        fake_id = "00000000-0000-0000-0000-000000000000"
        response = await client.get(f"/api/v1/tasks/{fake_id}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    async def test_get_private_task_forbidden(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        task = await _create_task(client, auth_headers, title="Private")
        _, other_headers = other_user
        response = await client.get(f"/api/v1/tasks/{task['id']}", headers=other_headers)
        assert response.status_code == 403


class TestUpdateTask:
    async def test_update_task_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        task = await _create_task(client, auth_headers, title="Update Me")
        response = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"title": "Updated Title", "status": "in_progress"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Updated Title"
        assert data["status"] == "in_progress"

    async def test_update_task_unauthorized(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        """A second user should not be able to update another user's task."""
        task = await _create_task(client, auth_headers, title="Owner Task")
        _, other_headers = other_user

        response = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"title": "Hijacked"},
            headers=other_headers,
        )
        assert response.status_code == 403

    async def test_update_is_logged_with_changes(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        task = await _create_task(client, auth_headers, title="Tracked", priority="low")
        await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"priority": "high", "title": "Tracked"},
            headers=auth_headers,
        )
        response = await client.get(
            f"/api/v1/activity/task/{task['id']}", headers=auth_headers
        )
        updated = [e for e in response.json()["items"] if e["action"] == "task_updated"]
        assert updated[0]["meta"]["changes"] == {"priority": {"old": "low", "new": "high"}}


class TestChangeStatus:
    async def test_complete_then_reopen(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        task = await _create_task(client, auth_headers)
        done = await client.patch(
            f"/api/v1/tasks/{task['id']}/status",
            json={"status": "completed"},
            headers=auth_headers,
        )
        assert done.status_code == 200
        assert done.json()["completed_at"] is not None

        reopened = await client.patch(
            f"/api/v1/tasks/{task['id']}/status",
            json={"status": "in_progress"},
            headers=auth_headers,
        )
        assert reopened.json()["status"] == "in_progress"
        assert reopened.json()["completed_at"] is None

    async def test_status_change_notifies_owner(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        other, other_headers = other_user
        task = await _create_task(client, auth_headers, assigned_to_id=other["id"])

        response = await client.patch(
            f"/api/v1/tasks/{task['id']}/status",
            json={"status": "blocked"},
            headers=other_headers,
        )
        assert response.status_code == 200

        notifications = await client.get("/api/v1/notifications/", headers=auth_headers)
        types = [n["type"] for n in notifications.json()["items"]]
        assert "task_status_changed" in types


class TestDeleteTask:
    async def test_archive_task_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        task = await _create_task(client, auth_headers, title="Archive Me")
        response = await client.delete(
            f"/api/v1/tasks/{task['id']}", headers=auth_headers
        )
        assert response.status_code == 204

        # Archived tasks drop out of the default list
        list_resp = await client.get("/api/v1/tasks/", headers=auth_headers)
        ids = [t["id"] for t in list_resp.json()["items"]]
        assert task["id"] not in ids

        archived = await client.get("/api/v1/tasks/?is_archived=true", headers=auth_headers)
        assert [t["id"] for t in archived.json()["items"]] == [task["id"]]

    async def test_restore_task(self, client: AsyncClient, auth_headers: dict) -> None:
        task = await _create_task(client, auth_headers, title="Comeback")
        await client.delete(f"/api/v1/tasks/{task['id']}", headers=auth_headers)

        response = await client.post(
            f"/api/v1/tasks/{task['id']}/restore", headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["is_archived"] is False

    async def test_restore_live_task_not_found(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        task = await _create_task(client, auth_headers)
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/restore", headers=auth_headers
        )
        assert response.status_code == 404

    async def test_assignee_cannot_archive(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        other, other_headers = other_user
        task = await _create_task(client, auth_headers, assigned_to_id=other["id"])
        response = await client.delete(f"/api/v1/tasks/{task['id']}", headers=other_headers)
        assert response.status_code == 403


class TestAssignTask:
    async def test_assign_notifies_assignee(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        other, other_headers = other_user
        task = await _create_task(client, auth_headers)

        response = await client.post(
            f"/api/v1/tasks/{task['id']}/assign",
            json={"assigned_to_id": other["id"]},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["assignee"]["username"] == "otheruser"

        notifications = await client.get("/api/v1/notifications/", headers=other_headers)
        items = notifications.json()["items"]
        assert [n["type"] for n in items] == ["task_assigned"]
        assert items[0]["reference_id"] == task["id"]

        # The assignee can now see the task
        visible = await client.get(f"/api/v1/tasks/{task['id']}", headers=other_headers)
        assert visible.status_code == 200

    async def test_unassign(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        other, _ = other_user
        task = await _create_task(client, auth_headers, assigned_to_id=other["id"])
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/assign",
            json={"assigned_to_id": None},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["assigned_to_id"] is None

    async def test_assign_unknown_user(self, client: AsyncClient, auth_headers: dict) -> None:
        task = await _create_task(client, auth_headers)
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/assign",
            json={"assigned_to_id": "00000000-0000-0000-0000-000000000000"},
            headers=auth_headers,
        )
        assert response.status_code == 404


class TestListTasks:
    async def test_list_tasks_pagination(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        for i in range(3):
            await _create_task(client, auth_headers, title=f"Paginated Task {i}")

        response = await client.get(
            "/api/v1/tasks/?page=1&size=2", headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["items"]) == 2
        assert data["total"] == 3
        assert data["pages"] == 2

    async def test_list_tasks_filter_by_status(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        await _create_task(client, auth_headers, title="Pending Task", status="pending")
        await _create_task(
            client, auth_headers, title="Completed Task", status="completed"
        )

        response = await client.get(
            "/api/v1/tasks/?status=completed", headers=auth_headers
        )
        assert response.status_code == 200
        items = response.json()["items"]
        assert [t["title"] for t in items] == ["Completed Task"]

    async def test_list_tasks_search(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        await _create_task(client, auth_headers, title="Unique Searchable Title XYZ")
        await _create_task(client, auth_headers, title="Another Task")

        response = await client.get(
            "/api/v1/tasks/?search=xyz", headers=auth_headers
        )
        assert response.status_code == 200
        items = response.json()["items"]
        assert [t["title"] for t in items] == ["Unique Searchable Title XYZ"]

    async def test_list_tasks_filter_by_priority(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        await _create_task(client, auth_headers, title="Critical Task", priority="critical")
        await _create_task(client, auth_headers, title="Calm Task", priority="low")

        response = await client.get(
            "/api/v1/tasks/?priority=critical", headers=auth_headers
        )
        assert response.status_code == 200
        items = response.json()["items"]
        assert all(t["priority"] == "critical" for t in items)
        assert len(items) == 1

    async def test_list_tasks_filter_by_tag(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        await _create_task(client, auth_headers, title="Tagged", tags=["frontend"])
        await _create_task(client, auth_headers, title="Untagged")

        response = await client.get("/api/v1/tasks/?tag=Frontend", headers=auth_headers)
        assert [t["title"] for t in response.json()["items"]] == ["Tagged"]

    @pytest.mark.parametrize("tag", ["a_c", "a%c", "%"])
    async def test_tag_wildcards_match_literally(
        self, client: AsyncClient, auth_headers: dict, tag: str
    ) -> None:
        await _create_task(client, auth_headers, title="Plain", tags=["abc"])

        response = await client.get("/api/v1/tasks/", params={"tag": tag}, headers=auth_headers)
        assert response.json()["items"] == []

    async def test_tag_with_underscore(self, client: AsyncClient, auth_headers: dict) -> None:
        await _create_task(client, auth_headers, title="Snake", tags=["a_c"])
        await _create_task(client, auth_headers, title="Plain", tags=["abc"])

        response = await client.get("/api/v1/tasks/", params={"tag": "a_c"}, headers=auth_headers)
        assert [t["title"] for t in response.json()["items"]] == ["Snake"]

    async def test_non_ascii_tag(self, client: AsyncClient, auth_headers: dict) -> None:
        await _create_task(client, auth_headers, title="Coffee", tags=["Café"])
        await _create_task(client, auth_headers, title="Tea", tags=["tea"])

        response = await client.get("/api/v1/tasks/", params={"tag": "café"}, headers=auth_headers)
        assert [t["title"] for t in response.json()["items"]] == ["Coffee"]

    async def test_list_overdue(self, client: AsyncClient, auth_headers: dict) -> None:
        past = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
        future = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
        await _create_task(client, auth_headers, title="Late", due_date=past)
        await _create_task(client, auth_headers, title="Late but done", due_date=past, status="completed")
        await _create_task(client, auth_headers, title="On time", due_date=future)

        response = await client.get("/api/v1/tasks/?overdue=true", headers=auth_headers)
        items = response.json()["items"]
        assert [t["title"] for t in items] == ["Late"]
        assert items[0]["is_overdue"] is True

    async def test_list_only_visible_tasks(
        self, client: AsyncClient, auth_headers: dict, other_user: tuple
    ) -> None:
        await _create_task(client, auth_headers, title="Mine")
        _, other_headers = other_user
        response = await client.get("/api/v1/tasks/", headers=other_headers)
        assert response.json()["total"] == 0

    async def test_admin_sees_all_tasks(
        self, client: AsyncClient, auth_headers: dict, admin_headers: dict
    ) -> None:
        await _create_task(client, auth_headers, title="Anyone's")
        response = await client.get("/api/v1/admin/tasks", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["total"] == 1
