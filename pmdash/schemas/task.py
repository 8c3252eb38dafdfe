"""Pydantic schemas for Task model validation."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.task import TaskPriority, TaskStatus
from .common import PageMeta, UserSummary, to_naive_utc
from .project import ProjectSummary

MAX_TAG_LENGTH = 30


def _clean_tags(tags: Optional[list[str]]) -> Optional[list[str]]:
    if tags is None:
        return None
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tags must be at most {MAX_TAG_LENGTH} characters")
        cleaned.append(tag)
    return cleaned


class TaskBase(BaseModel):
    """Base schema with common task fields."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Task title",
        examples=["Implement user authentication"],
    )
    description: str = Field(
        "",
        description="Detailed task description",
        examples=["Add JWT-based authentication with login and logout endpoints"],
    )
    status: TaskStatus = Field(
        TaskStatus.PENDING,
        description="Workflow status",
        examples=["Pending", "Done"],
    )
    priority: TaskPriority = Field(
        TaskPriority.MEDIUM,
        description="Task priority level",
        examples=["Medium", "High"],
    )
    due_date: Optional[datetime] = Field(
        None,
        description="Task due date",
        examples=["2024-12-31T00:00:00Z"],
    )
    start_date: Optional[datetime] = Field(
        None,
        description="Task start date",
    )
    estimated_hours: Optional[float] = Field(
        None,
        ge=0,
        description="Estimated effort in hours",
    )
    actual_hours: Optional[float] = Field(
        None,
        ge=0,
        description="Hours actually spent",
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Short labels (max 30 characters each)",
        examples=[["backend", "auth"]],
    )
    dependencies: list[UUID] = Field(
        default_factory=list,
        description="IDs of tasks this task depends on",
    )


class TaskCreate(TaskBase):
    """Schema for creating a new task.

    ``completed_at`` is never accepted; it is derived from ``status``.
    """

    project_id: UUID = Field(
        ...,
        description="ID of the parent project",
    )
    assigned_to: UUID = Field(
        ...,
        description="ID of the assigned user",
    )

    @field_validator("due_date", "start_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: list[str]) -> list[str]:
        return _clean_tags(value)


class TaskUpdate(BaseModel):
    """Schema for updating a task.

    Unknown keys are kept in ``model_extra`` so the role check sees every key
    the client sent; the router then rejects them. That covers attempts to
    rewrite the owning project, the creator or the derived ``completed_at``
    timestamp.
    """

    model_config = ConfigDict(extra="allow")

    title: Optional[str] = Field(
        None,
        min_length=1,
        max_length=500,
        description="Task title",
    )
    description: Optional[str] = Field(
        None,
        description="Detailed task description",
    )
    status: Optional[TaskStatus] = Field(
        None,
        description="Workflow status",
    )
    priority: Optional[TaskPriority] = Field(
        None,
        description="Task priority level",
    )
    assigned_to: Optional[UUID] = Field(
        None,
        description="ID of the assigned user",
    )
    due_date: Optional[datetime] = Field(None)
    start_date: Optional[datetime] = Field(None)
    estimated_hours: Optional[float] = Field(None, ge=0)
    actual_hours: Optional[float] = Field(None, ge=0)
    tags: Optional[list[str]] = Field(None)
    dependencies: Optional[list[UUID]] = Field(None)
    is_archived: Optional[bool] = Field(None)

    @field_validator("due_date", "start_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return _clean_tags(value)


class TaskCommentCreate(BaseModel):
    """Schema for posting a comment on a task."""

    content: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Comment text",
    )

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Comment cannot be empty")
        return value


class TaskCommentResponse(BaseModel):
    """Schema for a task comment."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: Optional[UUID] = None
    author: Optional[UserSummary] = None
    content: str
    created_at: datetime


class TaskResponse(TaskBase):
    """Schema for task response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(
        ...,
        description="Unique task identifier",
    )
    project_id: UUID = Field(
        ...,
        description="ID of the parent project",
    )
    project: Optional[ProjectSummary] = Field(None)
    assigned_to: Optional[UUID] = Field(
        None,
        description="ID of the assigned user",
    )
    assignee: Optional[UserSummary] = Field(None)
    created_by: Optional[UUID] = Field(
        None,
        description="ID of the user who created the task",
    )
    creator: Optional[UserSummary] = Field(None)
    completed_at: Optional[datetime] = Field(
        None,
        description="When the task entered Done (null otherwise)",
    )
    is_archived: bool = Field(False)
    comments: list[TaskCommentResponse] = Field(default_factory=list)
    created_at: datetime = Field(
        ...,
        description="When the task was created",
    )
    updated_at: datetime = Field(
        ...,
        description="When the task was last updated",
    )


class TaskListPage(PageMeta):
    """Paginated task list."""

    items: list[TaskResponse] = Field(default_factory=list)
