"""Projects CRUD API endpoints.

All endpoints require authentication.

Access Control:
- List projects: projects:read; non-admins only see projects they created
  or are members of
- Get project: projects:read
- Create / delete projects: admin only
- Update projects and manage members: projects:update (admin, manager)

Deleting a project deletes its tasks, their comments and its member rows
in the same transaction.
"""

import logging
from datetime import datetime, timedelta
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..exceptions import Conflict, NotFound, ValidationFailed
from ..models.project import Project, ProjectStatus
from ..models.project_member import ProjectMember, ProjectMemberRole
from ..models.task import Task
from ..models.task_comment import TaskComment
from ..models.user import User
from ..schemas.project import (
    ProjectCreate,
    ProjectMemberAdd,
    ProjectResponse,
    ProjectUpdate,
)
from ..schemas.common import column_values
from ..services.guards import require_admin, require_permission
from ..services.permission_service import PermissionService, get_permission_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])

# Non-nullable columns; an explicit null for these is ignored on update
REQUIRED_PROJECT_FIELDS = ("name", "description", "status", "priority", "is_archived")


# ============================================================================
# Helper Functions
# ============================================================================


async def get_project_or_404(db: AsyncSession, project_id: UUID) -> Project:
    """
    Load a project with its creator and members.

    Any copy already held by the session is overwritten; counter
    updates and bulk deletes bypass the ORM.

    Raises:
        NotFound: If no such project exists
    """
    result = await db.execute(
        select(Project)
        .where(Project.id == project_id)
        .execution_options(populate_existing=True)
    )
    project = result.scalar_one_or_none()
    if project is None:
        raise NotFound("Project not found")
    return project


async def ensure_users_exist(db: AsyncSession, user_ids: List[UUID]) -> None:
    """Reject references to users that do not exist."""
    wanted = set(user_ids)
    if not wanted:
        return
    result = await db.execute(select(User.id).where(User.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise ValidationFailed(
            "Unknown user ID(s): " + ", ".join(sorted(str(m) for m in missing))
        )


def _replace_members(project: Project, entries) -> None:
    """
    Replace the member list, keeping join dates of users who stay.

    Entries are applied in the given order; a user listed twice keeps the
    last role given.
    """
    current = {member.user_id: member for member in project.members}
    wanted = {}
    for entry in entries:
        wanted[entry.user_id] = entry.role

    for member in list(project.members):
        if member.user_id not in wanted:
            project.members.remove(member)

    now = datetime.utcnow()
    for offset, (user_id, role) in enumerate(wanted.items()):
        if user_id in current:
            current[user_id].role = role.value
        else:
            # Distinct timestamps keep join order stable
            project.members.append(
                ProjectMember(
                    user_id=user_id,
                    role=role.value,
                    added_at=now + timedelta(microseconds=offset),
                )
            )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=List[ProjectResponse],
    summary="List projects",
    description="List projects visible to the caller, newest first.",
    responses={
        200: {"description": "Projects retrieved successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
    },
)
async def list_projects(
    current_user: Annotated[User, Depends(require_permission("projects", "read"))],
    permissions: PermissionService = Depends(get_permission_service),
    db: AsyncSession = Depends(get_db),
    status_filter: Optional[ProjectStatus] = Query(None, alias="status", description="Filter by status"),
    search: Optional[str] = Query(None, max_length=255, description="Search name and description"),
) -> List[ProjectResponse]:
    """
    List projects.

    Admins see every project. Managers and members see the projects they
    created or belong to. The status and search filters apply on top of
    that scope.
    """
    query = select(Project).where(
        permissions.project_visibility_filter(current_user.id, current_user.role)
    )

    if status_filter is not None:
        query = query.where(Project.status == status_filter.value)

    if search:
        query = query.where(
            or_(
                Project.name.ilike(f"%{search}%"),
                Project.description.ilike(f"%{search}%"),
            )
        )

    query = query.order_by(Project.created_at.desc())
    result = await db.execute(query)
    return result.scalars().all()


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new project",
    responses={
        201: {"description": "Project created successfully"},
        400: {"description": "Unknown member user"},
        401: {"description": "Not authenticated"},
        403: {"description": "Admin role required"},
    },
)
async def create_project(
    project_data: ProjectCreate,
    current_user: Annotated[User, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    """
    Create a new project.

    - **name**, **description**: Required
    - **status**, **priority**: Default to Planned / Medium
    - **members**: User IDs added with the per-project role 'member'

    The caller is recorded as creator. Counters start at zero.
    """
    member_ids = list(dict.fromkeys(project_data.members))
    await ensure_users_exist(db, member_ids)

    project = Project(
        **column_values(project_data.model_dump(exclude={"members"})),
        created_by=current_user.id,
        total_tasks=0,
        completed_tasks=0,
    )
    now = datetime.utcnow()
    project.members = [
        ProjectMember(
            user_id=user_id,
            role=ProjectMemberRole.MEMBER.value,
            added_at=now + timedelta(microseconds=offset),
        )
        for offset, user_id in enumerate(member_ids)
    ]

    db.add(project)
    await db.commit()

    logger.info("Project %s created by %s", project.id, current_user.id)
    return await get_project_or_404(db, project.id)


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Get a project by ID",
    responses={
        200: {"description": "Project retrieved successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Project not found"},
    },
)
async def get_project(
    project_id: UUID,
    current_user: Annotated[User, Depends(require_permission("projects", "read"))],
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    return await get_project_or_404(db, project_id)


@router.put(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Update a project",
    description="Update an existing project's details and optionally replace its members.",
    responses={
        200: {"description": "Project updated successfully"},
        400: {"description": "Validation error"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Project not found"},
    },
)
async def update_project(
    project_id: UUID,
    project_data: ProjectUpdate,
    current_user: Annotated[User, Depends(require_permission("projects", "update"))],
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    """
    Update an existing project.

    The creator and the task counters cannot be changed here. Sending
    **members** replaces the member list.
    """
    project = await get_project_or_404(db, project_id)

    update_data = column_values(
        {
            field: value
            for field, value in project_data.model_dump(
                exclude_unset=True, exclude={"members"}
            ).items()
            if value is not None or field not in REQUIRED_PROJECT_FIELDS
        }
    )
    if not update_data and project_data.members is None:
        raise ValidationFailed("No fields to update provided")

    if "is_archived" in update_data:
        if update_data["is_archived"] and not project.is_archived:
            project.archived_at = datetime.utcnow()
        elif not update_data["is_archived"]:
            project.archived_at = None

    for field, value in update_data.items():
        setattr(project, field, value)

    if project_data.members is not None:
        await ensure_users_exist(db, [m.user_id for m in project_data.members])
        _replace_members(project, project_data.members)

    project.updated_at = datetime.utcnow()
    await db.commit()

    logger.info(
        "Project %s updated by %s (fields: %s)",
        project_id, current_user.id, sorted(project_data.model_fields_set),
    )
    return await get_project_or_404(db, project_id)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project",
    description="Delete a project together with all of its tasks.",
    responses={
        204: {"description": "Project deleted successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Admin role required"},
        404: {"description": "Project not found"},
    },
)
async def delete_project(
    project_id: UUID,
    current_user: Annotated[User, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Delete a project.

    Tasks and their comments go with it, so no counter adjustment is needed.
    """
    project = await get_project_or_404(db, project_id)
    project_name = project.name

    task_ids = select(Task.id).where(Task.project_id == project_id)
    await db.execute(
        delete(TaskComment)
        .where(TaskComment.task_id.in_(task_ids))
        .execution_options(synchronize_session=False)
    )
    task_result = await db.execute(
        delete(Task)
        .where(Task.project_id == project_id)
        .execution_options(synchronize_session=False)
    )
    await db.delete(project)
    await db.commit()

    logger.warning(
        "Project %s (%s) deleted by %s along with %d task(s)",
        project_id, project_name, current_user.id, task_result.rowcount,
    )


@router.post(
    "/{project_id}/members",
    response_model=ProjectResponse,
    summary="Add a member to a project",
    responses={
        200: {"description": "Member added successfully"},
        400: {"description": "Unknown user"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Project not found"},
        409: {"description": "User is already a member"},
    },
)
async def add_project_member(
    project_id: UUID,
    member_data: ProjectMemberAdd,
    current_user: Annotated[User, Depends(require_permission("projects", "update"))],
    db: AsyncSession = Depends(get_db),
) -> ProjectResponse:
    project = await get_project_or_404(db, project_id)

    if member_data.user_id in project.member_ids():
        raise Conflict("User is already a member of this project")
    await ensure_users_exist(db, [member_data.user_id])

    project.members.append(
        ProjectMember(user_id=member_data.user_id, role=member_data.role.value)
    )
    project.updated_at = datetime.utcnow()
    await db.commit()

    logger.info(
        "User %s added to project %s by %s",
        member_data.user_id, project_id, current_user.id,
    )
    return await get_project_or_404(db, project_id)


@router.delete(
    "/{project_id}/members/{user_id}",
    summary="Remove a member from a project",
    responses={
        200: {"description": "Member removed (or was not a member)"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "Project not found"},
    },
)
async def remove_project_member(
    project_id: UUID,
    user_id: UUID,
    current_user: Annotated[User, Depends(require_permission("projects", "update"))],
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Remove a member. Removing someone who is not a member is a no-op."""
    project = await get_project_or_404(db, project_id)

    for member in list(project.members):
        if member.user_id == user_id:
            project.members.remove(member)
    project.updated_at = datetime.utcnow()
    await db.commit()

    logger.info("User %s removed from project %s by %s", user_id, project_id, current_user.id)
    return {"message": "Member removed successfully"}
