"""Business logic services."""

from .auth_service import (
    authenticate_user,
    create_access_token,
    create_user,
    decode_access_token,
    determine_registration_role,
    get_current_user,
    get_user_by_email,
    get_user_by_id,
)
from .guards import require_admin, require_permission, require_role
from .permission_service import (
    DEFAULT_PERMISSION_MATRIX,
    PermissionDecision,
    PermissionMatrix,
    PermissionService,
    get_permission_service,
)
from .task_counter_service import (
    CounterDelta,
    apply_counter_delta,
    recalculate_project_counters,
    record_status_change,
    record_task_created,
    record_task_deleted,
)

__all__ = [
    # Auth service
    "authenticate_user",
    "create_access_token",
    "create_user",
    "decode_access_token",
    "determine_registration_role",
    "get_current_user",
    "get_user_by_email",
    "get_user_by_id",
    # Guards
    "require_admin",
    "require_permission",
    "require_role",
    # Permission service
    "DEFAULT_PERMISSION_MATRIX",
    "PermissionDecision",
    "PermissionMatrix",
    "PermissionService",
    "get_permission_service",
    # Task counter service
    "CounterDelta",
    "apply_counter_delta",
    "recalculate_project_counters",
    "record_status_change",
    "record_task_created",
    "record_task_deleted",
]
