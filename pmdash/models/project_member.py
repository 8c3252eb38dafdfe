"""ProjectMember SQLAlchemy model for project membership."""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from ..database import Base

if TYPE_CHECKING:
    from .project import Project
    from .user import User


class ProjectMemberRole(str, Enum):
    """Per-project role of a member."""

    MANAGER = "manager"
    MEMBER = "member"


class ProjectMember(Base):
    """
    ProjectMember model linking users to the projects they belong to.

    Members are kept in the order they were added (added_at).

    Attributes:
        id: Unique identifier (UUID)
        project_id: FK to the project
        user_id: FK to the member user
        role: Per-project role (manager, member)
        added_at: When the user joined the project
    """

    __tablename__ = "ProjectMembers"
    __allow_unmapped__ = True
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )

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
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role = Column(
        String(20),
        nullable=False,
        default=ProjectMemberRole.MEMBER.value,
    )

    # Timestamps
    added_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    project = relationship(
        "Project",
        back_populates="members",
    )
    user = relationship(
        "User",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        """String representation of ProjectMember."""
        return f"<ProjectMember(project_id={self.project_id}, user_id={self.user_id}, role={self.role})>"
