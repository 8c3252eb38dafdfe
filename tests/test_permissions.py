"""Unit tests for the permission service.

Tests cover the role model without a database:
1. Admin - every project/task action, users read/update, global access
2. Manager - read/update projects, every task action, read users
3. Member - read projects, read/update tasks (status only, own tasks), read users

Also tests ownership scoping, task deletion rules and the self-demotion /
self-deletion guards.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import sqlite
from sqlalchemy.sql.elements import True_

from pmdash.exceptions import DenialReason, Forbidden, ValidationFailed
from pmdash.services.permission_service import (
    ACTIONS,
    DEFAULT_PERMISSION_MATRIX,
    RESOURCES,
    PermissionDecision,
    PermissionMatrix,
    PermissionService,
    get_permission_service,
)

EXPECTED_MATRIX = {
    "admin": {
        "projects": {"create", "read", "update", "delete"},
        "tasks": {"create", "read", "update", "delete"},
        "users": {"read", "update"},
    },
    "manager": {
        "projects": {"read", "update"},
        "tasks": {"create", "read", "update", "delete"},
        "users": {"read"},
    },
    "member": {
        "projects": {"read"},
        "tasks": {"read", "update"},
        "users": {"read"},
    },
}


@pytest.fixture
def service() -> PermissionService:
    return PermissionService(DEFAULT_PERMISSION_MATRIX)


class TestPermissionServiceInit:
    """Tests for PermissionService construction and lookup."""

    def test_default_matrix_is_used(self):
        """PermissionService falls back to the default matrix."""
        assert PermissionService().matrix is DEFAULT_PERMISSION_MATRIX

    def test_get_permission_service_reads_app_state(self):
        """get_permission_service returns the instance stored on app.state."""
        stored = PermissionService()
        request = MagicMock()
        request.app.state.permission_service = stored
        assert get_permission_service(request) is stored

    def test_matrix_cannot_be_mutated(self):
        """Role entries and their action sets are read-only."""
        with pytest.raises(TypeError):
            DEFAULT_PERMISSION_MATRIX._roles["guest"] = None
        with pytest.raises(TypeError):
            DEFAULT_PERMISSION_MATRIX.get("member").actions["projects"] = frozenset({"delete"})
        assert isinstance(DEFAULT_PERMISSION_MATRIX.get("member").actions["projects"], frozenset)

    def test_custom_matrix_is_injected(self):
        """A service built on another matrix answers from that matrix only."""
        matrix = PermissionMatrix.from_dict({"auditor": {"users": ["read"], "global": True}})
        custom = PermissionService(matrix)
        assert custom.has_permission("auditor", "users", "read")
        assert custom.has_global_access("auditor")
        assert not custom.has_permission("admin", "projects", "read")


class TestHasPermission:
    """Tests for the matrix lookup."""

    @pytest.mark.parametrize("role", ["admin", "manager", "member"])
    def test_matches_matrix_for_every_pair(self, service, role):
        for resource in RESOURCES:
            for action in ACTIONS:
                expected = action in EXPECTED_MATRIX[role][resource]
                assert service.has_permission(role, resource, action) is expected, (
                    role, resource, action,
                )

    def test_manager_cannot_create_or_delete_projects(self, service):
        assert not service.has_permission("manager", "projects", "create")
        assert not service.has_permission("manager", "projects", "delete")

    def test_nobody_deletes_or_creates_users(self, service):
        for role in ("admin", "manager", "member"):
            assert not service.has_permission(role, "users", "create")
            assert not service.has_permission(role, "users", "delete")

    @pytest.mark.parametrize(
        "role,resource,action",
        [
            ("guest", "projects", "read"),
            (None, "projects", "read"),
            ("", "tasks", "read"),
            ("admin", "invoices", "read"),
            ("admin", "projects", "archive"),
        ],
    )
    def test_unknown_values_are_denied(self, service, role, resource, action):
        assert service.has_permission(role, resource, action) is False


class TestHasGlobalAccess:
    """Only admins bypass ownership scoping."""

    def test_admin_has_global_access(self, service):
        assert service.has_global_access("admin") is True

    @pytest.mark.parametrize("role", ["manager", "member", "guest", None])
    def test_other_roles_do_not(self, service, role):
        assert service.has_global_access(role) is False


class TestProjectVisibilityFilter:
    """Tests for the project listing scope."""

    def test_admin_sees_everything(self, service):
        clause = service.project_visibility_filter(uuid4(), "admin")
        assert isinstance(clause, True_)

    @pytest.mark.parametrize("role", ["manager", "member"])
    def test_others_are_scoped_to_creator_or_member(self, service, role):
        sql = str(service.project_visibility_filter(uuid4(), role).compile(dialect=sqlite.dialect()))
        assert '"Projects".created_by' in sql
        assert "EXISTS" in sql
        assert '"ProjectMembers".user_id' in sql
        assert " OR " in sql


class TestCanMutateTaskFields:
    """Field-level write rules for task updates."""

    def test_admin_and_manager_may_change_anything(self, service):
        task = SimpleNamespace(assigned_to=uuid4())
        for role in ("admin", "manager"):
            decision = service.can_mutate_task_fields(role, uuid4(), task, {"title", "status", "priority"})
            assert decision.allowed

    def test_member_may_change_status_of_own_task(self, service):
        user_id = uuid4()
        task = SimpleNamespace(assigned_to=user_id)
        assert service.can_mutate_task_fields("member", user_id, task, ["status"])

    def test_member_denied_on_foreign_task_whatever_the_field(self, service):
        task = SimpleNamespace(assigned_to=uuid4())
        for fields in (["status"], ["title"], []):
            decision = service.can_mutate_task_fields("member", uuid4(), task, fields)
            assert not decision
            assert decision.reason == DenialReason.OWNERSHIP_INSUFFICIENT
            assert decision.message == "Members can only update their own assigned tasks"

    def test_member_denied_extra_fields_on_own_task(self, service):
        user_id = uuid4()
        task = SimpleNamespace(assigned_to=user_id)
        decision = service.can_mutate_task_fields("member", user_id, task, ["status", "title"])
        assert not decision
        assert decision.reason == DenialReason.FIELD_NOT_ALLOWED
        assert decision.message == "Members can only update task status"

    def test_unassigned_task_is_not_a_members_task(self, service):
        task = SimpleNamespace(assigned_to=None)
        decision = service.can_mutate_task_fields("member", uuid4(), task, ["status"])
        assert decision.reason == DenialReason.OWNERSHIP_INSUFFICIENT

    def test_unknown_role_is_denied(self, service):
        task = SimpleNamespace(assigned_to=uuid4())
        decision = service.can_mutate_task_fields("guest", task.assigned_to, task, ["status"])
        assert decision.reason == DenialReason.ROLE_INSUFFICIENT


class TestCanDeleteTask:
    """Deletion rules: admin always, manager in own projects, member never."""

    def test_admin_always(self, service):
        project = SimpleNamespace(created_by=uuid4())
        assert service.can_delete_task("admin", uuid4(), SimpleNamespace(), project)

    def test_manager_in_own_project(self, service):
        manager_id = uuid4()
        project = SimpleNamespace(created_by=manager_id)
        assert service.can_delete_task("manager", manager_id, SimpleNamespace(), project)

    def test_manager_in_foreign_project(self, service):
        project = SimpleNamespace(created_by=uuid4())
        decision = service.can_delete_task("manager", uuid4(), SimpleNamespace(), project)
        assert decision.reason == DenialReason.OWNERSHIP_INSUFFICIENT

    def test_member_never(self, service):
        member_id = uuid4()
        project = SimpleNamespace(created_by=member_id)
        decision = service.can_delete_task("member", member_id, SimpleNamespace(), project)
        assert decision.reason == DenialReason.ROLE_INSUFFICIENT


class TestAccountGuards:
    """Self-demotion and self-deletion."""

    def test_admin_cannot_demote_self(self, service):
        admin_id = uuid4()
        for new_role in ("manager", "member"):
            decision = service.can_change_role(admin_id, "admin", admin_id, new_role)
            assert decision.reason == DenialReason.SELF_DEMOTION

    def test_admin_to_admin_on_self_is_allowed(self, service):
        admin_id = uuid4()
        assert service.can_change_role(admin_id, "admin", admin_id, "admin")

    def test_admin_may_change_others(self, service):
        assert service.can_change_role(uuid4(), "admin", uuid4(), "member")

    def test_self_deletion_refused(self, service):
        user_id = uuid4()
        assert service.can_delete_user(user_id, user_id).reason == DenialReason.SELF_DELETION
        assert service.can_delete_user(user_id, uuid4())


class TestPermissionDecisionEnforce:
    """enforce() maps denials onto the error taxonomy."""

    def test_allowed_does_nothing(self):
        PermissionDecision.allow().enforce()

    def test_ownership_denial_raises_forbidden(self):
        decision = PermissionDecision.deny(DenialReason.OWNERSHIP_INSUFFICIENT, "not yours")
        with pytest.raises(Forbidden) as exc_info:
            decision.enforce()
        assert exc_info.value.status_code == 403
        assert exc_info.value.to_dict() == {"detail": "not yours", "reason": "ownership_insufficient"}

    @pytest.mark.parametrize("reason", [DenialReason.SELF_DEMOTION, DenialReason.SELF_DELETION])
    def test_self_guards_raise_validation_failed(self, reason):
        with pytest.raises(ValidationFailed) as exc_info:
            PermissionDecision.deny(reason, "no").enforce()
        assert exc_info.value.status_code == 400
