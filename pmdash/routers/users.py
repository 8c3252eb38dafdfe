"""Users API endpoints.

Provides endpoints for user administration: listing, statistics, profile
edits, role changes and account removal.

Access Control:
- List / get users: users:read
- Stats, update, role change, delete: admin only
- Admins cannot demote themselves, and nobody can delete their own account
"""

import logging
from datetime import datetime, timedelta
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..exceptions import Conflict, NotFound, ValidationFailed
from ..models.project_member import ProjectMember
from ..models.user import User, UserRole
from ..schemas.common import PageMeta, column_values
from ..schemas.user import (
    UserAdminUpdate,
    UserListPage,
    UserResponse,
    UserRoleUpdate,
    UserStats,
)
from ..services.auth_service import get_user_by_email
from ..services.guards import require_admin, require_permission
from ..services.permission_service import PermissionService, get_permission_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

RECENT_REGISTRATION_WINDOW = timedelta(days=7)


async def get_user_or_404(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


@router.get(
    "/stats",
    response_model=UserStats,
    summary="User statistics",
    description="Counts of users by state and role, plus recent registrations.",
    responses={
        200: {"description": "Statistics computed"},
        401: {"description": "Not authenticated"},
        403: {"description": "Admin role required"},
    },
)
async def get_user_stats(
    current_user: Annotated[User, Depends(require_admin)],
    db: AsyncSession = Depends(get_db),
) -> UserStats:
    role_rows = (
        await db.execute(select(User.role, func.count()).group_by(User.role))
    ).all()
    role_distribution = {role.value: 0 for role in UserRole}
    role_distribution.update({role: count for role, count in role_rows})

    total = sum(role_distribution.values())
    active = (
        await db.execute(
            select(func.count()).select_from(User).where(User.is_active.is_(True))
        )
    ).scalar_one()
    recent = (
        await db.execute(
            select(func.count())
            .select_from(User)
            .where(User.created_at >= datetime.utcnow() - RECENT_REGISTRATION_WINDOW)
        )
    ).scalar_one()

    return UserStats(
        total_users=total,
        active_users=active,
        inactive_users=total - active,
        role_distribution=role_distribution,
        recent_registrations=recent,
    )


@router.get(
    "",
    response_model=UserListPage,
    summary="List users",
    responses={
        200: {"description": "Users retrieved successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
    },
)
async def list_users(
    current_user: Annotated[User, Depends(require_permission("users", "read"))],
    db: AsyncSession = Depends(get_db),
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    is_active: Optional[bool] = Query(None, description="Filter by account state"),
    search: Optional[str] = Query(None, min_length=1, description="Search name or email (partial match)"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> UserListPage:
    """
    List users, newest first.

    - Searches are case-insensitive partial matches on name and email
    - Results are paginated with **page** and **limit**
    """
    stmt = select(User)
    if role is not None:
        stmt = stmt.where(User.role == role.value)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))
    if search:
        stmt = stmt.where(
            or_(User.name.ilike(f"%{search}%"), User.email.ilike(f"%{search}%"))
        )

    total = (
        await db.execute(select(func.count()).select_from(stmt.subquery()))
    ).scalar_one()
    result = await db.execute(
        stmt.order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return UserListPage(
        **PageMeta.build(page, limit, total),
        items=[UserResponse.model_validate(user) for user in result.scalars().all()],
    )


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get a user by ID",
    responses={
        200: {"description": "User retrieved successfully"},
        401: {"description": "Not authenticated"},
        403: {"description": "Insufficient permissions"},
        404: {"description": "User not found"},
    },
)
async def get_user(
    user_id: UUID,
    current_user: Annotated[User, Depends(require_permission("users", "read"))],
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    return await get_user_or_404(db, user_id)


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
    responses={
        200: {"description": "User updated successfully"},
        400: {"description": "No fields provided, or admin self-demotion"},
        401: {"description": "Not authenticated"},
        403: {"description": "Admin role required"},
        404: {"description": "User not found"},
        409: {"description": "Email already in use"},
    },
)
async def update_user(
    user_id: UUID,
    user_data: UserAdminUpdate,
    current_user: Annotated[User, Depends(require_admin)],
    permissions: PermissionService = Depends(get_permission_service),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Update a user's name, email, role or active flag.

    Role changes follow the same rule as the role endpoint.
    """
    user = await get_user_or_404(db, user_id)

    update_data = column_values(
        {k: v for k, v in user_data.model_dump(exclude_unset=True).items() if v is not None}
    )
    if not update_data:
        raise ValidationFailed("No fields to update provided")

    if "role" in update_data:
        permissions.can_change_role(
            current_user.id, current_user.role, user.id, update_data["role"]
        ).enforce()

    if "email" in update_data:
        update_data["email"] = update_data["email"].lower()
        existing = await get_user_by_email(db, update_data["email"])
        if existing is not None and existing.id != user.id:
            raise Conflict("Email is already in use")

    for field, value in update_data.items():
        setattr(user, field, value)
    user.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(user)

    logger.info(
        "User %s updated by %s (fields: %s)",
        user_id, current_user.id, sorted(update_data),
    )
    return user


@router.put(
    "/{user_id}/role",
    response_model=UserResponse,
    summary="Promote or demote a user",
    responses={
        200: {"description": "Role updated"},
        400: {"description": "Admins cannot change their own role"},
        401: {"description": "Not authenticated"},
        403: {"description": "Admin role required"},
        404: {"description": "User not found"},
    },
)
async def update_user_role(
    user_id: UUID,
    role_data: UserRoleUpdate,
    current_user: Annotated[User, Depends(require_admin)],
    permissions: PermissionService = Depends(get_permission_service),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    permissions.can_change_role(
        current_user.id, current_user.role, user_id, role_data.role
    ).enforce()

    user = await get_user_or_404(db, user_id)
    user.role = role_data.role.value
    user.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(user)

    logger.info("User %s role set to %s by %s", user_id, user.role, current_user.id)
    return user


@router.delete(
    "/{user_id}",
    summary="Delete a user",
    responses={
        200: {"description": "User deleted successfully"},
        400: {"description": "Cannot delete your own account"},
        401: {"description": "Not authenticated"},
        403: {"description": "Admin role required"},
        404: {"description": "User not found"},
    },
)
async def delete_user(
    user_id: UUID,
    current_user: Annotated[User, Depends(require_admin)],
    permissions: PermissionService = Depends(get_permission_service),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Delete a user account.

    Their project memberships are removed. Projects, tasks and comments
    they created or were assigned keep existing with the reference cleared.
    """
    permissions.can_delete_user(current_user.id, user_id).enforce()

    user = await get_user_or_404(db, user_id)

    await db.execute(
        delete(ProjectMember)
        .where(ProjectMember.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    await db.delete(user)
    await db.commit()

    logger.warning("User %s deleted by %s", user_id, current_user.id)
    return {"message": "User deleted successfully"}
