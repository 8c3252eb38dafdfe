"""Route guards built on the permission service.

Each guard is a dependency factory: ``Depends(require_role("admin"))`` or
``Depends(require_permission("tasks", "update"))``. Guards resolve the
authenticated user first, so an anonymous caller gets 401 before any role
or permission is considered, and they return that user to the handler.
"""

import logging

from fastapi import Depends

from ..exceptions import DenialReason, Forbidden
from ..models.user import User, UserRole
from .auth_service import get_current_user
from .permission_service import PermissionService, get_permission_service

logger = logging.getLogger(__name__)


def require_role(*roles: UserRole):
    """Allow the request only if the caller holds one of ``roles``."""
    allowed = {role.value for role in roles}

    async def guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(
                "Role check failed for user %s: has %s, needs one of %s",
                current_user.id, current_user.role, sorted(allowed),
            )
            raise Forbidden(
                "Insufficient permissions. Required role: "
                + " or ".join(role.value for role in roles),
                reason=DenialReason.ROLE_INSUFFICIENT,
            )
        return current_user

    return guard


def require_permission(resource: str, action: str):
    """Allow the request only if the caller's role grants ``action`` on ``resource``."""

    async def guard(
        current_user: User = Depends(get_current_user),
        permissions: PermissionService = Depends(get_permission_service),
    ) -> User:
        if not permissions.has_permission(current_user.role, resource, action):
            logger.warning(
                "Permission check failed for user %s (%s): %s:%s",
                current_user.id, current_user.role, resource, action,
            )
            raise Forbidden(
                f"Insufficient permissions. Cannot {action} {resource}",
                reason=DenialReason.PERMISSION_INSUFFICIENT,
            )
        return current_user

    return guard


require_admin = require_role(UserRole.ADMIN)
