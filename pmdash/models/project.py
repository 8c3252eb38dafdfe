"""Project SQLAlchemy model."""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from ..database import Base

if TYPE_CHECKING:
    from .project_member import ProjectMember
    from .user import User


class ProjectStatus(str, Enum):
    """Project lifecycle status."""

    PLANNED = "Planned"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"
    CANCELLED = "Cancelled"


class ProjectPriority(str, Enum):
    """Project priority."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class Project(Base):
    """
    Project model.

    total_tasks and completed_tasks are denormalized counters maintained by
    the task counter service; clients never write them directly.

    Attributes:
        id: Unique identifier (UUID)
        name: Project name
        description: Project description
        status: Lifecycle status (Planned, In Progress, Completed, On Hold, Cancelled)
        priority: Priority (Low, Medium, High, Critical)
        created_by: FK to the creating user (immutable)
        start_date: Optional planned start
        end_date: Optional planned end
        total_tasks: Number of tasks in the project
        completed_tasks: Number of tasks in Done status
        is_archived: Archive flag
        archived_at: When the project was archived
        created_at: Timestamp when project was created
        updated_at: Timestamp when project was last updated
    """

    __tablename__ = "Projects"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint("completed_tasks >= 0", name="ck_projects_completed_non_negative"),
        CheckConstraint("completed_tasks <= total_tasks", name="ck_projects_completed_le_total"),
    )

    # Primary key - UUID
    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

    # Foreign keys
    created_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Project details
    name = Column(
        String(255),
        nullable=False,
    )
    description = Column(
        Text,
        nullable=False,
    )
    status = Column(
        String(20),
        nullable=False,
        default=ProjectStatus.PLANNED.value,
        index=True,
    )
    priority = Column(
        String(20),
        nullable=False,
        default=ProjectPriority.MEDIUM.value,
    )
    start_date = Column(
        DateTime,
        nullable=True,
    )
    end_date = Column(
        DateTime,
        nullable=True,
    )

    # Derived counters
    total_tasks = Column(
        Integer,
        nullable=False,
        default=0,
    )
    completed_tasks = Column(
        Integer,
        nullable=False,
        default=0,
    )

    # Archive state
    is_archived = Column(
        Boolean,
        nullable=False,
        default=False,
    )
    archived_at = Column(
        DateTime,
        nullable=True,
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
    creator = relationship(
        "User",
        foreign_keys=[created_by],
        lazy="selectin",
    )
    members = relationship(
        "ProjectMember",
        back_populates="project",
        order_by="ProjectMember.added_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def member_ids(self) -> set:
        """User IDs listed in the member list (the creator is not implied)."""
        return {member.user_id for member in self.members}

    def __repr__(self) -> str:
        """String representation of Project."""
        return f"<Project(id={self.id}, name={self.name})>"
