"""TaskComment SQLAlchemy model."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from ..database import Base

if TYPE_CHECKING:
    from .task import Task
    from .user import User


class TaskComment(Base):
    """
    Comment left on a task.

    Attributes:
        id: Unique identifier (UUID)
        task_id: FK to the task
        user_id: FK to the comment author
        content: Comment text (max 500 characters)
        created_at: Timestamp when the comment was posted
    """

    __tablename__ = "TaskComments"
    __allow_unmapped__ = True

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    task_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("Users.id", ondelete="SET NULL"),
        nullable=True,
    )
    content = Column(
        String(500),
        nullable=False,
    )
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    task = relationship(
        "Task",
        back_populates="comments",
    )
    author = relationship(
        "User",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<TaskComment(id={self.id}, task_id={self.task_id})>"
