"""Authentication API endpoints.

Provides endpoints for user registration, login and profile access.
Uses JWT-based authentication for session management.

Role on registration:
- The first account ever created is an admin
- Accounts under the configured admin email domain are admins
- Everyone else starts as a member
"""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..exceptions import NotAuthenticated, ValidationFailed
from ..models.user import User, UserRole
from ..schemas.user import (
    AuthResponse,
    PasswordChange,
    UserCreate,
    UserProfileUpdate,
    UserResponse,
)
from ..services.auth_service import (
    authenticate_user,
    create_token_for_user,
    create_user,
    get_current_user,
)
from ..utils.security import get_password_hash, validate_password_strength, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="Create a new user account and return an access token.",
    responses={
        201: {"description": "User created successfully"},
        400: {"description": "Password does not meet requirements"},
        409: {"description": "Email already registered"},
    },
)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """
    Register a new user.

    - **email**: Valid email address (unique)
    - **password**: At least 8 characters with upper and lower case letters,
      a digit and a special character
    - **name**: Display name

    The initial role is decided here and cannot be chosen by the client.
    """
    user = await create_user(db, user_data)
    await db.commit()

    return AuthResponse(
        access_token=create_token_for_user(user),
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login and get access token",
    description="Authenticate with email and password to receive a JWT access token.",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"description": "Invalid credentials or deactivated account"},
    },
)
async def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """
    Login with email and password.

    Uses OAuth2 password flow with form data:
    - **username**: Email address (OAuth2 spec uses 'username')
    - **password**: User's password
    """
    user = await authenticate_user(db, form_data.username, form_data.password)

    if not user:
        logger.info("Failed login attempt for %s", form_data.username)
        raise NotAuthenticated("Invalid credentials")

    if not user.is_active:
        raise NotAuthenticated("Account has been deactivated")

    user.last_login_at = datetime.utcnow()
    await db.commit()
    await db.refresh(user)

    logger.info("User %s logged in", user.id)
    return AuthResponse(
        access_token=create_token_for_user(user),
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/setup-admin",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create the initial admin",
    description="Create an admin account. Only allowed while no users exist.",
    responses={
        201: {"description": "Admin created successfully"},
        400: {"description": "Password does not meet requirements"},
        403: {"description": "Users already exist"},
    },
)
async def setup_admin(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    user = await create_user(db, user_data, role=UserRole.ADMIN, require_empty=True)
    await db.commit()

    logger.info("Initial admin %s created", user.id)
    return AuthResponse(
        access_token=create_token_for_user(user),
        user=UserResponse.model_validate(user),
    )


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user profile",
    description="Get the profile of the currently authenticated user.",
    responses={
        200: {"description": "User profile retrieved successfully"},
        401: {"description": "Not authenticated"},
    },
)
async def get_me(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """
    Get the current authenticated user's profile.

    Requires a valid JWT token in the Authorization header.
    """
    return current_user


@router.put(
    "/me",
    response_model=UserResponse,
    summary="Update current user profile",
    responses={
        200: {"description": "Profile updated successfully"},
        400: {"description": "No fields to update provided"},
        401: {"description": "Not authenticated"},
    },
)
async def update_me(
    profile_data: UserProfileUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Update the caller's own name and avatar. Role and email are not editable here."""
    update_data = profile_data.model_dump(exclude_unset=True)
    if not update_data:
        raise ValidationFailed("No fields to update provided")

    for field, value in update_data.items():
        setattr(current_user, field, value)
    current_user.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.put(
    "/change-password",
    summary="Change password",
    responses={
        200: {"description": "Password changed successfully"},
        400: {"description": "Wrong current password or weak new password"},
        401: {"description": "Not authenticated"},
    },
)
async def change_password(
    password_data: PasswordChange,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not verify_password(password_data.current_password, current_user.password_hash):
        raise ValidationFailed("Current password is incorrect")

    errors = validate_password_strength(password_data.new_password)
    if errors:
        raise ValidationFailed("Password does not meet requirements", errors=errors)

    current_user.password_hash = get_password_hash(password_data.new_password)
    current_user.updated_at = datetime.utcnow()
    await db.commit()

    logger.info("User %s changed their password", current_user.id)
    return {"message": "Password changed successfully"}
