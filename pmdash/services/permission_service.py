"""Permission service for role checks and ownership scoping.

This service centralizes every authorization decision so that routers only
have to ask questions and act on the answers.

Permission Model:
- Admin: full access to projects and tasks, can read and update users,
  and sees every record (global access)
- Manager: can read/update projects and fully manage tasks, read users
- Member: read-only on projects, can read tasks and change the status of
  tasks assigned to them, read users

Ownership Rules:
- Non-global roles only list projects they created or are members of
- Members may only change the status of tasks assigned to them
- Managers may only delete tasks in projects they created
- Nobody can delete their own account; admins cannot demote themselves

The role table is an immutable value built once at import time and handed
to PermissionService; it is never mutated while the process runs.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from fastapi import Request
from sqlalchemy import or_, true
from sqlalchemy.sql.elements import ColumnElement

from ..exceptions import DenialReason, Forbidden, ValidationFailed
from ..models.project import Project
from ..models.project_member import ProjectMember
from ..models.user import UserRole

# Resources and actions named by the permission matrix
RESOURCES = ("projects", "tasks", "users")
ACTIONS = ("create", "read", "update", "delete")

# Task fields a member may change on a task assigned to them
MEMBER_WRITABLE_TASK_FIELDS = frozenset({"status"})


@dataclass(frozen=True)
class RolePermissions:
    """Allowed actions per resource for a single role."""

    actions: Mapping[str, frozenset] = field(default_factory=dict)
    global_access: bool = False

    def allows(self, resource: str, action: str) -> bool:
        return action in self.actions.get(resource, frozenset())


class PermissionMatrix:
    """
    Read-only mapping of role -> RolePermissions.

    Build one with ``PermissionMatrix.from_dict`` using the same shape as the
    table in the module docstring::

        {"admin": {"projects": ["read"], "global": True}, ...}
    """

    def __init__(self, roles: Mapping[str, RolePermissions]):
        self._roles = MappingProxyType(dict(roles))

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> "PermissionMatrix":
        roles = {}
        for role, entry in data.items():
            actions = {
                resource: frozenset(allowed)
                for resource, allowed in entry.items()
                if resource != "global"
            }
            roles[role] = RolePermissions(
                actions=MappingProxyType(actions),
                global_access=bool(entry.get("global", False)),
            )
        return cls(roles)

    @property
    def roles(self) -> tuple:
        return tuple(self._roles)

    def get(self, role: Optional[str]) -> Optional[RolePermissions]:
        if role is None:
            return None
        return self._roles.get(_role_value(role))


DEFAULT_PERMISSION_MATRIX = PermissionMatrix.from_dict(
    {
        UserRole.ADMIN.value: {
            "projects": ["create", "read", "update", "delete"],
            "tasks": ["create", "read", "update", "delete"],
            "users": ["read", "update"],
            "global": True,
        },
        UserRole.MANAGER.value: {
            "projects": ["read", "update"],
            "tasks": ["create", "read", "update", "delete"],
            "users": ["read"],
            "global": False,
        },
        UserRole.MEMBER.value: {
            "projects": ["read"],
            "tasks": ["read", "update"],
            "users": ["read"],
            "global": False,
        },
    }
)


def _role_value(role) -> str:
    """Accept either a UserRole member or its string value."""
    return role.value if isinstance(role, UserRole) else role


@dataclass(frozen=True)
class PermissionDecision:
    """
    Outcome of an ownership or field-level check.

    Truthy when allowed. ``enforce()`` raises the matching application error
    for a denial so routers can write ``decision.enforce()`` in one line.
    """

    allowed: bool
    reason: Optional[DenialReason] = None
    message: str = ""

    @classmethod
    def allow(cls) -> "PermissionDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason, message: str) -> "PermissionDecision":
        return cls(allowed=False, reason=reason, message=message)

    def __bool__(self) -> bool:
        return self.allowed

    def enforce(self) -> None:
        if self.allowed:
            return
        # Self-demotion and self-deletion are input errors, not access errors
        if self.reason in (DenialReason.SELF_DEMOTION, DenialReason.SELF_DELETION):
            raise ValidationFailed(self.message)
        raise Forbidden(self.message, reason=self.reason)


class PermissionService:
    """
    Service class for permission checks and ownership scoping.

    Holds no database session: every method is a pure function of the
    injected PermissionMatrix and its arguments. Query-scoping methods return
    SQLAlchemy clauses for the caller to apply.
    """

    def __init__(self, matrix: PermissionMatrix = DEFAULT_PERMISSION_MATRIX):
        """
        Initialize the PermissionService.

        Args:
            matrix: Role -> permission table to evaluate against
        """
        self.matrix = matrix

    def has_permission(self, role: Optional[str], resource: str, action: str) -> bool:
        """
        Check whether a role may perform an action on a resource.

        Unknown roles, resources and actions are all denied.

        Args:
            role: The caller's role
            resource: One of 'projects', 'tasks', 'users'
            action: One of 'create', 'read', 'update', 'delete'

        Returns:
            True if the matrix grants the action, False otherwise.
        """
        permissions = self.matrix.get(role)
        if permissions is None:
            return False
        return permissions.allows(resource, action)

    def has_global_access(self, role: Optional[str]) -> bool:
        """Return True if the role bypasses ownership scoping (admin only)."""
        permissions = self.matrix.get(role)
        return bool(permissions and permissions.global_access)

    def project_visibility_filter(self, user_id: UUID, role: Optional[str]) -> ColumnElement:
        """
        Build the WHERE clause restricting which projects a caller can list.

        Global-access roles see everything. Everyone else sees projects they
        created or are listed as a member of. Listing filters (status, search)
        are meant to be ANDed on top of this clause.

        Args:
            user_id: The caller's ID
            role: The caller's role

        Returns:
            A SQLAlchemy boolean clause over Project.
        """
        if self.has_global_access(role):
            return true()
        return or_(
            Project.created_by == user_id,
            Project.members.any(ProjectMember.user_id == user_id),
        )

    def can_mutate_task_fields(
        self,
        role: Optional[str],
        user_id: UUID,
        task,
        fields: Iterable[str],
    ) -> PermissionDecision:
        """
        Decide whether a caller may change the given fields of a task.

        Rules:
        - Admin / Manager: any field
        - Member: only 'status', and only on tasks assigned to them

        Args:
            role: The caller's role
            user_id: The caller's ID
            task: The task being updated (needs ``assigned_to``)
            fields: Names of the fields in the update payload

        Returns:
            PermissionDecision describing the outcome.
        """
        role = _role_value(role)
        if role in (UserRole.ADMIN.value, UserRole.MANAGER.value):
            return PermissionDecision.allow()

        if role != UserRole.MEMBER.value:
            return PermissionDecision.deny(
                DenialReason.ROLE_INSUFFICIENT,
                "Your role cannot update tasks",
            )

        if task.assigned_to != user_id:
            return PermissionDecision.deny(
                DenialReason.OWNERSHIP_INSUFFICIENT,
                "Members can only update their own assigned tasks",
            )

        disallowed = sorted(set(fields) - MEMBER_WRITABLE_TASK_FIELDS)
        if disallowed:
            return PermissionDecision.deny(
                DenialReason.FIELD_NOT_ALLOWED,
                "Members can only update task status",
            )

        return PermissionDecision.allow()

    def can_delete_task(
        self,
        role: Optional[str],
        user_id: UUID,
        task,
        project: Project,
    ) -> PermissionDecision:
        """
        Decide whether a caller may delete a task.

        Rules:
        - Admin: always
        - Manager: only in projects they created
        - Member: never

        Args:
            role: The caller's role
            user_id: The caller's ID
            task: The task to delete
            project: The task's parent project

        Returns:
            PermissionDecision describing the outcome.
        """
        role = _role_value(role)
        if role == UserRole.ADMIN.value:
            return PermissionDecision.allow()

        if role == UserRole.MANAGER.value:
            if project is not None and project.created_by == user_id:
                return PermissionDecision.allow()
            return PermissionDecision.deny(
                DenialReason.OWNERSHIP_INSUFFICIENT,
                "Managers can only delete tasks in projects they created",
            )

        return PermissionDecision.deny(
            DenialReason.ROLE_INSUFFICIENT,
            "Your role cannot delete tasks",
        )

    def can_change_role(
        self,
        actor_id: UUID,
        actor_role: Optional[str],
        target_id: UUID,
        new_role: str,
    ) -> PermissionDecision:
        """
        Decide whether an actor may set target's role to new_role.

        An admin changing their own role to anything but admin is refused.
        Setting admin on oneself is an allowed no-op.
        """
        if (
            actor_id == target_id
            and _role_value(actor_role) == UserRole.ADMIN.value
            and _role_value(new_role) != UserRole.ADMIN.value
        ):
            return PermissionDecision.deny(
                DenialReason.SELF_DEMOTION,
                "You cannot change your own admin role",
            )
        return PermissionDecision.allow()

    def can_delete_user(self, actor_id: UUID, target_id: UUID) -> PermissionDecision:
        """Refuse deleting one's own account, whatever the role."""
        if actor_id == target_id:
            return PermissionDecision.deny(
                DenialReason.SELF_DELETION,
                "You cannot delete your own account",
            )
        return PermissionDecision.allow()


def get_permission_service(request: Request) -> PermissionService:
    """
    FastAPI dependency returning the application's PermissionService.

    The instance is created once when the app is built (see ``main.py``) and
    stored on ``app.state``.

    Args:
        request: The incoming request

    Returns:
        PermissionService instance
    """
    return request.app.state.permission_service
