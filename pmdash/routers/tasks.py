"""Tasks CRUD API endpoints.

All endpoints require authentication.

Access Control:
- List / get tasks: tasks:read
- Create tasks: tasks:create (admin, manager)
- Update tasks: tasks:update, then the field rules: members may only
  change the status of tasks assigned to them
- Delete tasks: tasks:delete, and managers only in projects they created

Every write that changes a task's status also adjusts the owning project's
counters in the same transaction (see task_counter_service).
"""

import logging
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..exceptions import NotFound, ValidationFailed
from ..models.project import Project
from ..models.task import Task, TaskPriority, TaskStatus
from ..models.task_comment import TaskComment
from ..models.user import User
from ..schemas.common import PageMeta, column_values
from ..schemas.task import (
    TaskCommentCreate,
    TaskCommentResponse,
    TaskCreate,
    TaskListPage,
    TaskResponse,
    TaskUpdate,
)
from ..services.auth_service import get_current_user
from ..services.guards import require_permission
from ..services.permission_service import PermissionService, get_permission_service
from ..services.task_counter_service import (
    record_status_change,
    record_task_created,
    record_task_deleted,
)
from .projects import ensure_users_exist, get_project_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])

# An explicit null for these is ignored on update; unassigning is not exposed
REQUIRED_TASK_FIELDS = (
    "title", "description", "status", "priority", "assigned_to", "tags", "dependencies",
    "is_archived",
)


# ============================================================================
# Helper Functions
# ============================================================================


async def get_task_or_404(db: AsyncSession, task_id: UUID, for_update: bool = False) -> Task:
    """
    Load a task, overwriting any stale copy held by the session.

    With ``for_update`` the row stays locked until the transaction ends, so
    concurrent writers see the status left by the previous one before
    adjusting project counters.
    """
    query = (
        select(Task)
        .where(Task.id == task_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    task = result.scalar_one_or_none()
    if task is None:
        raise NotFound("Task not found")
    return task


async def ensure_tasks_exist(db: AsyncSession, task_ids: list) -> None:
    wanted = set(task_ids)
    if not wanted:
        return
    result = await db.execute(select(Task.id).where(Task.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise ValidationFailed("Dependencies reference unknown task(s)")


async def paginate(db: AsyncSession, query, page: int, limit: int) -> dict:
    """Run a task query one page at a time and wrap it in the page envelope."""
    total = (
        await db.execute(select(func.count()).select_from(query.order_by(None).subquery()))
    ).scalar_one()
    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    return {
        **PageMeta.build(page, limit, total),
        "items": result.scalars().all(),
    }


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/my-tasks",
    response_model=TaskListPage,
    summary="List tasks assigned to me",
    responses={
        200: {"description": "Tasks retrieved successfully"},
        401: {"description": "Not authenticated"},
    },
)
async def list_my_tasks(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> TaskListPage:
    """
    List the caller's assigned tasks.

    Sorted by due date (tasks without one last), then newest first.
    """
    query = select(Task).where(Task.assigned_to == current_user.id)
    if status_filter is not None:
        query = query.where(Task.status == status_filter.value)
    if priority is not None:
        query = query.where(Task.priority == priority.value)

    query = query.order_by(
        Task.due_date.is_(None),
        Task.due_date.asc(),
        Task.created_at.desc(),
    )
    return await paginate(db, query, page, limit)


@router.get(
    "/project/{project_id}",
    response_model=TaskListPage,
    summary="List tasks in a project",
    responses={
        200: {"description": "Tasks retrieved successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Project not found"},
    },
)
async def list_project_tasks(
    project_id: UUID,
    current_user: Annotated[User, Depends(require_permission("tasks", "read"))],
    db: AsyncSession = Depends(get_db),
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = Query(None),
    assigned_to: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=255, description="Search title and description"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> TaskListPage:
    await get_project_or_404(db, project_id)

    query = select(Task).where(Task.project_id == project_id)
    if status_filter is not None:
        query = query.where(Task.status == status_filter.value)
    if priority is not None:
        query = query.where(Task.priority == priority.value)
    if assigned_to is not None:
        query = query.where(Task.assigned_to == assigned_to)
    if search:
        query = query.where(
            or_(
                Task.title.ilike(f"%{search}%"),
                Task.description.ilike(f"%{search}%"),
            )
        )

    query = query.order_by(Task.created_at.desc())
    return await paginate(db, query, page, limit)


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new task",
    responses={
        201: {"description": "Task created successfully"},
        400: {"description": "Unknown assignee or dependency"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Project not found"},
    },
)
async def create_task(
    task_data: TaskCreate,
    current_user: Annotated[User, Depends(require_permission("tasks", "create"))],
    db: AsyncSession = Depends(get_db),
) -> TaskResponse:
    """
    Create a new task in a project.

    - **title**, **project_id**, **assigned_to**: Required
    - **status**: Defaults to Pending; a task created as Done is stamped
      completed and counted as such

    The project's total (and, for Done, completed) counter goes up in the
    same transaction.
    """
    await get_project_or_404(db, task_data.project_id)
    await ensure_users_exist(db, [task_data.assigned_to])
    await ensure_tasks_exist(db, task_data.dependencies)

    fields = column_values(task_data.model_dump(exclude={"dependencies"}))
    task = Task(
        **fields,
        dependencies=[str(dep) for dep in task_data.dependencies],
        created_by=current_user.id,
    )
    db.add(task)
    await db.flush()
    await record_task_created(db, task)
    await db.commit()

    logger.info(
        "Task %s created in project %s by %s",
        task.id, task.project_id, current_user.id,
    )
    return await get_task_or_404(db, task.id)


@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get a task by ID",
    responses={
        200: {"description": "Task retrieved successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Task not found"},
    },
)
async def get_task(
    task_id: UUID,
    current_user: Annotated[User, Depends(require_permission("tasks", "read"))],
    db: AsyncSession = Depends(get_db),
) -> TaskResponse:
    return await get_task_or_404(db, task_id)


@router.put(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update a task",
    responses={
        200: {"description": "Task updated successfully"},
        400: {"description": "Empty update, or unknown or immutable field in payload"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not your task, or field not allowed for your role"},
        404: {"description": "Task not found"},
    },
)
async def update_task(
    task_id: UUID,
    task_data: TaskUpdate,
    current_user: Annotated[User, Depends(require_permission("tasks", "update"))],
    permissions: PermissionService = Depends(get_permission_service),
    db: AsyncSession = Depends(get_db),
) -> TaskResponse:
    """
    Update an existing task.

    Admins and managers may change any field. Members may only change
    **status**, and only on tasks assigned to them. Moving into or out of
    Done stamps or clears **completed_at** and adjusts the project's
    completed count.
    """
    task = await get_task_or_404(db, task_id, for_update=True)

    unknown_fields = sorted(task_data.model_extra or {})
    permissions.can_mutate_task_fields(
        current_user.role,
        current_user.id,
        task,
        set(task_data.model_fields_set) | set(unknown_fields),
    ).enforce()
    if unknown_fields:
        raise ValidationFailed(
            "Unknown or immutable task fields: " + ", ".join(unknown_fields)
        )

    update_data = task_data.model_dump(exclude_unset=True)

    update_data = column_values(
        {
            field: value
            for field, value in update_data.items()
            if value is not None or field not in REQUIRED_TASK_FIELDS
        }
    )
    if not update_data:
        raise ValidationFailed("No fields to update provided")

    if update_data.get("assigned_to") is not None:
        await ensure_users_exist(db, [update_data["assigned_to"]])
    if "dependencies" in update_data:
        await ensure_tasks_exist(db, update_data["dependencies"])
        update_data["dependencies"] = [str(dep) for dep in update_data["dependencies"]]

    new_status = update_data.pop("status", None)
    if new_status is not None and new_status != task.status:
        old_status = task.status
        task.status = new_status
        await record_status_change(db, task, old_status, new_status)

    for field, value in update_data.items():
        setattr(task, field, value)

    task.updated_at = datetime.utcnow()
    await db.commit()

    logger.info(
        "Task %s updated by %s (fields: %s)",
        task_id, current_user.id, sorted(task_data.model_fields_set),
    )
    return await get_task_or_404(db, task_id)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a task",
    responses={
        204: {"description": "Task deleted successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Task not found"},
    },
)
async def delete_task(
    task_id: UUID,
    current_user: Annotated[User, Depends(require_permission("tasks", "delete"))],
    permissions: PermissionService = Depends(get_permission_service),
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Delete a task.

    The project's total counter (and completed counter, for a Done task)
    goes down in the same transaction.
    """
    task = await get_task_or_404(db, task_id, for_update=True)
    project = await db.get(Project, task.project_id)

    permissions.can_delete_task(current_user.role, current_user.id, task, project).enforce()

    await record_task_deleted(db, task)
    await db.delete(task)
    await db.commit()

    logger.warning(
        "Task %s deleted from project %s by %s",
        task_id, task.project_id, current_user.id,
    )


@router.post(
    "/{task_id}/comments",
    response_model=TaskCommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a task",
    responses={
        201: {"description": "Comment added"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Task not found"},
    },
)
async def add_task_comment(
    task_id: UUID,
    comment_data: TaskCommentCreate,
    current_user: Annotated[User, Depends(require_permission("tasks", "read"))],
    db: AsyncSession = Depends(get_db),
) -> TaskCommentResponse:
    task = await get_task_or_404(db, task_id)

    comment = TaskComment(
        task_id=task.id,
        user_id=current_user.id,
        content=comment_data.content,
    )
    db.add(comment)
    await db.commit()

    result = await db.execute(
        select(TaskComment)
        .where(TaskComment.id == comment.id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()
