"""Pydantic schemas for User model validation."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..models.user import UserRole
from .common import PageMeta


class UserBase(BaseModel):
    """Base schema with common user fields."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="User's display name",
        examples=["John Doe"],
    )
    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["user@example.com"],
    )


class UserCreate(UserBase):
    """Schema for creating a new user (registration)."""

    password: str = Field(
        ...,
        min_length=1,
        max_length=72,
        description="User's password (will be hashed)",
        examples=["SecureP@ssw0rd!"],
    )


class UserProfileUpdate(BaseModel):
    """Schema for a user updating their own profile."""

    name: Optional[str] = Field(
        None,
        min_length=1,
        max_length=100,
        description="User's display name",
    )
    avatar_url: Optional[str] = Field(
        None,
        max_length=500,
        description="URL to user's avatar image",
    )


class PasswordChange(BaseModel):
    """Schema for changing the current user's password."""

    current_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=1, max_length=72, description="New password")


class UserAdminUpdate(BaseModel):
    """Schema for an admin updating another user's account."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = Field(None)
    role: Optional[UserRole] = Field(None, description="New global role")
    is_active: Optional[bool] = Field(None, description="Activate or deactivate the account")


class UserRoleUpdate(BaseModel):
    """Schema for promoting/demoting a user."""

    role: UserRole = Field(..., description="New global role", examples=["manager"])


class UserResponse(UserBase):
    """Schema for user response (public data only)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(
        ...,
        description="Unique user identifier",
    )
    role: UserRole = Field(
        ...,
        description="Global role",
    )
    is_active: bool = Field(
        True,
        description="Whether the account is active",
    )
    avatar_url: Optional[str] = Field(
        None,
        description="URL to user's avatar image",
    )
    last_login_at: Optional[datetime] = Field(
        None,
        description="When the user last logged in",
    )
    created_at: Optional[datetime] = Field(
        None,
        description="When the user was created",
    )
    updated_at: Optional[datetime] = Field(
        None,
        description="When the user was last updated",
    )


class AuthResponse(BaseModel):
    """Token plus the authenticated user, returned by register/login."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserListPage(PageMeta):
    """Paginated user list."""

    items: list[UserResponse] = Field(default_factory=list)


class UserStats(BaseModel):
    """Aggregate user counts for the admin dashboard."""

    total_users: int
    active_users: int
    inactive_users: int
    role_distribution: dict[str, int]
    recent_registrations: int = Field(
        ...,
        description="Accounts created in the last 7 days",
    )
