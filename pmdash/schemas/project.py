"""Pydantic schemas for Project model validation."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.project import ProjectPriority, ProjectStatus
from ..models.project_member import ProjectMemberRole
from .common import UserSummary, to_naive_utc


class ProjectMemberInput(BaseModel):
    """A member entry supplied by a client."""

    user_id: UUID = Field(..., description="ID of the member user")
    role: ProjectMemberRole = Field(
        ProjectMemberRole.MEMBER,
        description="Per-project role",
    )


class ProjectBase(BaseModel):
    """Base schema with common project fields."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Project name",
        examples=["Website Redesign"],
    )
    description: str = Field(
        ...,
        min_length=1,
        description="Project description",
        examples=["Complete website redesign with new branding"],
    )
    status: ProjectStatus = Field(
        ProjectStatus.PLANNED,
        description="Project status",
    )
    priority: ProjectPriority = Field(
        ProjectPriority.MEDIUM,
        description="Project priority",
    )
    start_date: Optional[datetime] = Field(None, description="Planned start")
    end_date: Optional[datetime] = Field(None, description="Planned end")

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class ProjectCreate(ProjectBase):
    """Schema for creating a new project.

    The creator is taken from the authenticated user and is not added to
    the member list implicitly.
    """

    members: list[UUID] = Field(
        default_factory=list,
        description="IDs of users to add as members",
    )


class ProjectUpdate(BaseModel):
    """Schema for updating a project.

    Counters and the creator are not part of this schema; values sent for
    them are ignored.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    status: Optional[ProjectStatus] = Field(None)
    priority: Optional[ProjectPriority] = Field(None)
    start_date: Optional[datetime] = Field(None)
    end_date: Optional[datetime] = Field(None)
    is_archived: Optional[bool] = Field(None)
    members: Optional[list[ProjectMemberInput]] = Field(
        None,
        description="Replaces the member list; existing members keep their join date",
    )

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_member_ids(cls, data):
        """Allow ``members`` to be a list of plain user IDs as well as objects."""
        if isinstance(data, dict) and isinstance(data.get("members"), list):
            data = dict(data)
            data["members"] = [
                {"user_id": m} if isinstance(m, str) else m for m in data["members"]
            ]
        return data


class ProjectMemberAdd(ProjectMemberInput):
    """Schema for adding one member to a project."""


class ProjectMemberResponse(BaseModel):
    """Schema for a member entry in project responses."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    user: Optional[UserSummary] = None
    role: ProjectMemberRole
    added_at: datetime


class ProjectResponse(ProjectBase):
    """Schema for project response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(
        ...,
        description="Unique project identifier",
    )
    created_by: Optional[UUID] = Field(
        None,
        description="ID of the user who created the project",
    )
    creator: Optional[UserSummary] = Field(
        None,
        description="The user who created the project",
    )
    members: list[ProjectMemberResponse] = Field(
        default_factory=list,
        description="Project members in join order",
    )
    total_tasks: int = Field(
        0,
        description="Number of tasks in this project",
    )
    completed_tasks: int = Field(
        0,
        description="Number of tasks in Done status",
    )
    is_archived: bool = Field(False)
    archived_at: Optional[datetime] = Field(
        None,
        description="When the project was archived (null if active)",
    )
    created_at: datetime = Field(
        ...,
        description="When the project was created",
    )
    updated_at: datetime = Field(
        ...,
        description="When the project was last updated",
    )


class ProjectSummary(BaseModel):
    """Minimal project information embedded in task responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class CounterReconciliation(BaseModel):
    """One project whose stored counters differed from the recount."""

    project_id: UUID
    total_tasks_before: int
    total_tasks_after: int
    completed_tasks_before: int
    completed_tasks_after: int


class ReconciliationResult(BaseModel):
    """Summary returned by the counter reconciliation entry point."""

    projects_checked: int
    projects_corrected: int
    corrections: list[CounterReconciliation] = Field(default_factory=list)
