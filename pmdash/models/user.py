"""User SQLAlchemy model for authentication and user management."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, String, Uuid

from ..database import Base


class UserRole(str, Enum):
    """Application-wide roles, ordered from most to least privileged."""

    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


class User(Base):
    """
    User model representing application users.

    Attributes:
        id: Unique identifier (UUID)
        name: User's display name
        email: User's email address (unique)
        password_hash: Hashed password for authentication
        role: Global role (admin, manager, member)
        is_active: Deactivated users cannot log in or authenticate
        avatar_url: URL to user's avatar image
        last_login_at: Timestamp of the last successful login
        created_at: Timestamp when user was created
        updated_at: Timestamp when user was last updated
    """

    __tablename__ = "Users"
    __allow_unmapped__ = True

    # Primary key - UUID
    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )

    # Authentication fields
    email = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash = Column(
        String(255),
        nullable=False,
    )

    # Authorization fields
    role = Column(
        String(20),
        nullable=False,
        default=UserRole.MEMBER.value,
        index=True,
    )
    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
    )

    # Profile fields
    name = Column(
        String(100),
        nullable=False,
    )
    avatar_url = Column(
        String(500),
        nullable=True,
    )
    last_login_at = Column(
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

    def __repr__(self) -> str:
        """String representation of User."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
