"""Task SQLAlchemy model for task tracking."""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from ..database import Base

if TYPE_CHECKING:
    from .project import Project
    from .task_comment import TaskComment
    from .user import User


class TaskStatus(str, Enum):
    """Task workflow status."""

    PENDING = "Pending"
    ONGOING = "Ongoing"
    DONE = "Done"
    BLOCKED = "Blocked"


class TaskPriority(str, Enum):
    """Task priority."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Task(Base):
    """
    Task model representing work items within a project.

    completed_at is set if and only if status is Done; the task counter
    service keeps that in step with the project's completed_tasks counter.

    Attributes:
        id: Unique identifier (UUID)
        project_id: FK to parent project (immutable)
        assigned_to: FK to the assigned user
        created_by: FK to the creating user (immutable)
        title: Task title
        description: Task description
        status: Workflow status (Pending, Ongoing, Done, Blocked)
        priority: Priority (Low, Medium, High)
        due_date: Due date
        start_date: Start date
        completed_at: When the task entered Done
        estimated_hours: Estimate in hours (>= 0)
        actual_hours: Hours spent (>= 0)
        tags: List of short tags
        dependencies: List of task IDs (as strings) this task depends on
        is_archived: Archive flag
        created_at: Timestamp when task was created
        updated_at: Timestamp when task was last updated
    """

    __tablename__ = "Tasks"
    __allow_unmapped__ = True

    # Primary key - UUID
    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

    # Foreign keys
    project_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_to = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Task details
    title = Column(
        String(500),
        nullable=False,
    )
    description = Column(
        Text,
        nullable=False,
        default="",
    )
    status = Column(
        String(20),
        nullable=False,
        default=TaskStatus.PENDING.value,
        index=True,
    )
    priority = Column(
        String(20),
        nullable=False,
        default=TaskPriority.MEDIUM.value,
    )

    # Scheduling
    due_date = Column(
        DateTime,
        nullable=True,
    )
    start_date = Column(
        DateTime,
        nullable=True,
    )
    completed_at = Column(
        DateTime,
        nullable=True,
    )

    # Estimation
    estimated_hours = Column(
        Float,
        nullable=True,
    )
    actual_hours = Column(
        Float,
        nullable=True,
    )

    # Free-form metadata
    tags = Column(
        JSON,
        nullable=False,
        default=list,
    )
    dependencies = Column(
        JSON,
        nullable=False,
        default=list,
    )

    is_archived = Column(
        Boolean,
        nullable=False,
        default=False,
    )

    # Timestamps
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    project = relationship(
        "Project",
        lazy="selectin",
    )
    assignee = relationship(
        "User",
        foreign_keys=[assigned_to],
        lazy="selectin",
    )
    creator = relationship(
        "User",
        foreign_keys=[created_by],
        lazy="selectin",
    )
    comments = relationship(
        "TaskComment",
        back_populates="task",
        order_by="TaskComment.created_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE.value

    def __repr__(self) -> str:
        """String representation of Task."""
        return f"<Task(id={self.id}, status={self.status}, title={self.title[:30]})>"
