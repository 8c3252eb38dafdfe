"""SQLAlchemy ORM models package."""

from .project import Project, ProjectPriority, ProjectStatus
from .project_member import ProjectMember, ProjectMemberRole
from .task import Task, TaskPriority, TaskStatus
from .task_comment import TaskComment
from .user import User, UserRole

__all__ = [
    "Project",
    "ProjectMember",
    "ProjectMemberRole",
    "ProjectPriority",
    "ProjectStatus",
    "Task",
    "TaskComment",
    "TaskPriority",
    "TaskStatus",
    "User",
    "UserRole",
]
