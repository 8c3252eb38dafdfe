"""Authentication service with JWT token generation and user management."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..exceptions import Conflict, Forbidden, NotAuthenticated, ValidationFailed
from ..models.user import User, UserRole
from ..schemas.user import UserCreate
from ..utils.security import get_password_hash, validate_password_strength, verify_password

logger = logging.getLogger(__name__)

# OAuth2 scheme for token-based authentication.
# auto_error is off so a missing token goes through NotAuthenticated like any other failure.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

# Arbitrary key for the registration advisory lock (PostgreSQL only)
REGISTRATION_LOCK_KEY = 72_104_001


class Token(BaseModel):
    """Token response schema."""

    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Token payload data schema."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary of claims to encode in the token
        expires_delta: Optional custom expiration time delta

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()

    # Set expiration time
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_expiration_minutes
        )

    to_encode.update({"exp": expire, "iss": settings.jwt_issuer})

    return jwt.encode(
        to_encode,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def create_token_for_user(user: User) -> str:
    """Issue an access token carrying the user's id, email and role."""
    return create_access_token(
        {"sub": str(user.id), "email": user.email, "role": user.role}
    )


def decode_access_token(token: str) -> Optional[TokenData]:
    """
    Decode and validate a JWT access token.

    Args:
        token: The JWT token string to decode

    Returns:
        TokenData with user information, or None if invalid, expired
        or issued by someone else
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None
    return TokenData(
        user_id=user_id,
        email=payload.get("email"),
        role=payload.get("role"),
    )


def determine_registration_role(
    email: str,
    existing_user_count: int,
    admin_email_domain: str,
) -> UserRole:
    """
    Pick the role a newly registered account starts with.

    The very first account and any account under the admin email domain
    become admins; everyone else starts as a member.

    Args:
        email: Email of the account being created
        existing_user_count: Number of users already stored
        admin_email_domain: Domain whose addresses are granted admin

    Returns:
        The initial UserRole
    """
    if existing_user_count == 0:
        return UserRole.ADMIN
    if email.lower().endswith("@" + admin_email_domain.lower()):
        return UserRole.ADMIN
    return UserRole.MEMBER


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """
    Get a user by their email address (case-insensitive).

    Args:
        db: Database session
        email: Email address to search for

    Returns:
        User object if found, None otherwise
    """
    result = await db.execute(
        select(User).where(func.lower(User.email) == email.lower())
    )
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
    """
    Get a user by their ID.

    Args:
        db: Database session
        user_id: User UUID to search for

    Returns:
        User object if found, None otherwise
    """
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def count_users(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(User))
    return result.scalar_one()


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """
    Authenticate a user with email and password.

    Args:
        db: Database session
        email: User's email address
        password: Plain text password to verify

    Returns:
        User object if authentication successful, None otherwise
    """
    user = await get_user_by_email(db, email)

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user


async def _lock_registrations(db: AsyncSession) -> None:
    """Serialize concurrent registrations until the transaction ends."""
    if db.bind is not None and db.bind.dialect.name == "postgresql":
        await db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": REGISTRATION_LOCK_KEY},
        )


async def create_user(
    db: AsyncSession,
    user_data: UserCreate,
    role: Optional[UserRole] = None,
    require_empty: bool = False,
) -> User:
    """
    Create a new user in the database.

    When ``role`` is not given the registration rules decide it. The user
    count behind that decision, and behind ``require_empty``, is read under
    the registration lock inside the same transaction as the insert.

    Args:
        db: Database session
        user_data: User creation data including password
        role: Force a role instead of applying the registration rules
        require_empty: Refuse unless no user exists yet (initial admin setup)

    Returns:
        Created User object (flushed, not yet committed)

    Raises:
        Forbidden: If require_empty is set and users already exist
        ValidationFailed: If the password is too weak
        Conflict: If email already exists
    """
    await _lock_registrations(db)

    if require_empty and await count_users(db) > 0:
        raise Forbidden("Admin user already exists. Use regular registration.")

    errors = validate_password_strength(user_data.password)
    if errors:
        raise ValidationFailed("Password does not meet requirements", errors=errors)

    existing_user = await get_user_by_email(db, user_data.email)
    if existing_user:
        raise Conflict("User already exists with this email")

    if role is None:
        role = determine_registration_role(
            user_data.email,
            await count_users(db),
            settings.admin_email_domain,
        )

    db_user = User(
        email=user_data.email.lower(),
        password_hash=get_password_hash(user_data.password),
        name=user_data.name.strip(),
        role=role.value,
        is_active=True,
    )

    db.add(db_user)
    await db.flush()
    await db.refresh(db_user)

    logger.info("Registered user %s with role %s", db_user.id, db_user.role)
    return db_user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from the JWT token.

    This is a FastAPI dependency that extracts and validates
    the JWT token from the Authorization header.

    Args:
        token: JWT token from Authorization header
        db: Database session

    Returns:
        Authenticated User object

    Raises:
        NotAuthenticated: If the token is missing or invalid, or the user
            no longer exists or has been deactivated
    """
    if not token:
        raise NotAuthenticated("Access denied. No token provided.")

    token_data = decode_access_token(token)
    if token_data is None or token_data.user_id is None:
        raise NotAuthenticated("Invalid token")

    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        raise NotAuthenticated("Invalid token")

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise NotAuthenticated("Token is not valid. User not found.")
    if not user.is_active:
        raise NotAuthenticated("Account has been deactivated")

    return user
