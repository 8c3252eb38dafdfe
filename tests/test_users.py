"""Tests for the users API: listing, stats, role changes and account removal."""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pmdash.models import Project, ProjectMember, Task, User, UserRole

from conftest import make_user


@pytest.mark.asyncio
class TestListUsers:
    """Tests for GET /api/users."""

    async def test_every_role_can_list(
        self,
        client: AsyncClient,
        admin_user: User,
        manager_user: User,
        member_user: User,
        member_headers: dict,
    ):
        response = await client.get("/api/users", headers=member_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert "password_hash" not in body["items"][0]

    async def test_filters_and_pagination(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        admin_headers: dict,
    ):
        for index in range(3):
            await make_user(db_session, f"dev{index}@example.com", UserRole.MEMBER, name=f"Dev {index}")
        await make_user(db_session, "retired@example.com", UserRole.MEMBER, is_active=False)

        response = await client.get(
            "/api/users",
            params={"role": "member", "is_active": "true", "search": "DEV", "limit": 2},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["pages"] == 2
        assert len(body["items"]) == 2

    async def test_get_user(self, client: AsyncClient, member_user: User, manager_headers: dict):
        response = await client.get(f"/api/users/{member_user.id}", headers=manager_headers)
        assert response.status_code == 200
        assert response.json()["email"] == member_user.email

    async def test_get_missing_user(self, client: AsyncClient, admin_headers: dict):
        response = await client.get(f"/api/users/{uuid4()}", headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.asyncio
class TestUserStats:
    async def test_stats(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        admin_user: User,
        member_user: User,
        admin_headers: dict,
    ):
        await make_user(db_session, "idle@example.com", UserRole.MEMBER, is_active=False)

        response = await client.get("/api/users/stats", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total_users"] == 3
        assert body["active_users"] == 2
        assert body["inactive_users"] == 1
        assert body["role_distribution"] == {"admin": 1, "manager": 0, "member": 2}
        assert body["recent_registrations"] == 3

    async def test_stats_admin_only(self, client: AsyncClient, manager_headers: dict):
        response = await client.get("/api/users/stats", headers=manager_headers)
        assert response.status_code == 403
        assert response.json()["reason"] == "role_insufficient"


@pytest.mark.asyncio
class TestRoleChanges:
    """Role changes through PUT /api/users/{id}/role and PUT /api/users/{id}."""

    async def test_admin_promotes_user(
        self, client: AsyncClient, member_user: User, admin_headers: dict
    ):
        response = await client.put(
            f"/api/users/{member_user.id}/role",
            json={"role": "manager"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["role"] == "manager"

    async def test_admin_cannot_demote_self(
        self, client: AsyncClient, admin_user: User, admin_headers: dict
    ):
        response = await client.put(
            f"/api/users/{admin_user.id}/role",
            json={"role": "member"},
            headers=admin_headers,
        )
        assert response.status_code == 400

        response = await client.put(
            f"/api/users/{admin_user.id}",
            json={"role": "manager"},
            headers=admin_headers,
        )
        assert response.status_code == 400

        me = await client.get("/api/auth/me", headers=admin_headers)
        assert me.json()["role"] == "admin"

    async def test_admin_to_admin_on_self_is_allowed(
        self, client: AsyncClient, admin_user: User, admin_headers: dict
    ):
        response = await client.put(
            f"/api/users/{admin_user.id}/role",
            json={"role": "admin"},
            headers=admin_headers,
        )
        assert response.status_code == 200

    async def test_manager_cannot_change_roles(
        self, client: AsyncClient, member_user: User, manager_headers: dict
    ):
        response = await client.put(
            f"/api/users/{member_user.id}/role",
            json={"role": "admin"},
            headers=manager_headers,
        )
        assert response.status_code == 403
        assert response.json()["reason"] == "role_insufficient"

    async def test_invalid_role_rejected(
        self, client: AsyncClient, member_user: User, admin_headers: dict
    ):
        response = await client.put(
            f"/api/users/{member_user.id}/role",
            json={"role": "owner"},
            headers=admin_headers,
        )
        assert response.status_code == 422


@pytest.mark.asyncio
class TestUpdateUser:
    async def test_admin_updates_profile_and_deactivates(
        self, client: AsyncClient, member_user: User, admin_headers: dict
    ):
        response = await client.put(
            f"/api/users/{member_user.id}",
            json={"name": "Renamed Member", "is_active": False},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed Member"
        assert response.json()["is_active"] is False

    async def test_email_conflict(
        self,
        client: AsyncClient,
        member_user: User,
        other_member: User,
        admin_headers: dict,
    ):
        response = await client.put(
            f"/api/users/{member_user.id}",
            json={"email": other_member.email},
            headers=admin_headers,
        )
        assert response.status_code == 409

    async def test_empty_update_rejected(
        self, client: AsyncClient, member_user: User, admin_headers: dict
    ):
        response = await client.put(f"/api/users/{member_user.id}", json={}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json() == {"detail": "No fields to update provided"}

    async def test_member_cannot_update_others(
        self, client: AsyncClient, other_member: User, member_headers: dict
    ):
        response = await client.put(
            f"/api/users/{other_member.id}",
            json={"name": "Hijacked"},
            headers=member_headers,
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestDeleteUser:
    async def test_admin_cannot_delete_self(
        self, client: AsyncClient, admin_user: User, admin_headers: dict
    ):
        response = await client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)
        assert response.status_code == 400

    async def test_delete_removes_memberships_and_clears_assignments(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_project: Project,
        test_task: Task,
        member_user: User,
        admin_headers: dict,
    ):
        response = await client.delete(f"/api/users/{member_user.id}", headers=admin_headers)
        assert response.status_code == 200

        memberships = (
            await db_session.execute(select(func.count()).select_from(ProjectMember))
        ).scalar_one()
        assert memberships == 0

        task = await client.get(f"/api/tasks/{test_task.id}", headers=admin_headers)
        assert task.status_code == 200
        assert task.json()["assigned_to"] is None

        project = await client.get(f"/api/projects/{test_project.id}", headers=admin_headers)
        assert project.json()["total_tasks"] == 1

    async def test_delete_missing_user(self, client: AsyncClient, admin_headers: dict):
        response = await client.delete(f"/api/users/{uuid4()}", headers=admin_headers)
        assert response.status_code == 404

    async def test_manager_cannot_delete(
        self, client: AsyncClient, member_user: User, manager_headers: dict
    ):
        response = await client.delete(f"/api/users/{member_user.id}", headers=manager_headers)
        assert response.status_code == 403
