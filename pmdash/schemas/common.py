"""Schemas and validators shared by several resources."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps as naive UTC, matching the DateTime columns."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class UserSummary(BaseModel):
    """Minimal user information embedded in project and task responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="User ID")
    name: str = Field(..., description="User display name")
    email: str = Field(..., description="User email")


class PageMeta(BaseModel):
    """Pagination envelope fields."""

    page: int = Field(..., ge=1, description="Current page (1-based)")
    limit: int = Field(..., ge=1, description="Page size")
    total: int = Field(..., ge=0, description="Total number of matching records")
    pages: int = Field(..., ge=0, description="Total number of pages")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> dict:
        return {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        }


def column_values(data: dict) -> dict:
    """Replace enum members with their stored string values."""
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in data.items()
    }
