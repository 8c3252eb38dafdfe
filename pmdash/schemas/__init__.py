"""Pydantic schemas package for request/response validation."""

from .common import PageMeta, UserSummary
from .project import (
    CounterReconciliation,
    ProjectCreate,
    ProjectMemberAdd,
    ProjectMemberInput,
    ProjectMemberResponse,
    ProjectResponse,
    ProjectSummary,
    ProjectUpdate,
    ReconciliationResult,
)
from .task import (
    TaskCommentCreate,
    TaskCommentResponse,
    TaskCreate,
    TaskListPage,
    TaskResponse,
    TaskUpdate,
)
from .user import (
    AuthResponse,
    PasswordChange,
    UserAdminUpdate,
    UserCreate,
    UserListPage,
    UserProfileUpdate,
    UserResponse,
    UserRoleUpdate,
    UserStats,
)

__all__ = [
    # Shared schemas
    "PageMeta",
    "UserSummary",
    # Project schemas
    "CounterReconciliation",
    "ProjectCreate",
    "ProjectMemberAdd",
    "ProjectMemberInput",
    "ProjectMemberResponse",
    "ProjectResponse",
    "ProjectSummary",
    "ProjectUpdate",
    "ReconciliationResult",
    # Task schemas
    "TaskCommentCreate",
    "TaskCommentResponse",
    "TaskCreate",
    "TaskListPage",
    "TaskResponse",
    "TaskUpdate",
    # User schemas
    "AuthResponse",
    "PasswordChange",
    "UserAdminUpdate",
    "UserCreate",
    "UserListPage",
    "UserProfileUpdate",
    "UserResponse",
    "UserRoleUpdate",
    "UserStats",
]
