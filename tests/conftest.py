"""Shared pytest fixtures for backend tests."""

import os

# Point settings at an in-memory database before the app modules are imported
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pmdash.database import Base, get_db
from pmdash.main import app
from pmdash.models import Project, ProjectMember, Task, User, UserRole
from pmdash.services.auth_service import create_token_for_user

TEST_PASSWORD = "TestPassword123!"


def get_test_password_hash(password: str) -> str:
    """
    Generate a password hash for testing.

    Uses bcrypt directly; the result verifies through passlib's bcrypt scheme.
    """
    import bcrypt
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """Create a test database engine with SQLite."""
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Clean up
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database dependency override."""
    async def override_get_db():
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


async def make_user(
    db_session: AsyncSession,
    email: str,
    role: UserRole,
    name: str = "Test User",
    is_active: bool = True,
) -> User:
    user = User(
        id=uuid4(),
        email=email,
        password_hash=get_test_password_hash(TEST_PASSWORD),
        name=name,
        role=role.value,
        is_active=is_active,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def headers_for(user: User) -> dict:
    """Create authorization headers for a user."""
    return {"Authorization": f"Bearer {create_token_for_user(user)}"}


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@example.com", UserRole.ADMIN, name="Ada Admin")


@pytest_asyncio.fixture
async def manager_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "manager@example.com", UserRole.MANAGER, name="Max Manager")


@pytest_asyncio.fixture
async def member_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "member@example.com", UserRole.MEMBER, name="Mia Member")


@pytest_asyncio.fixture
async def other_member(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com", UserRole.MEMBER, name="Otto Other")


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def manager_headers(manager_user: User) -> dict:
    return headers_for(manager_user)


@pytest.fixture
def member_headers(member_user: User) -> dict:
    return headers_for(member_user)


@pytest.fixture
def other_headers(other_member: User) -> dict:
    return headers_for(other_member)


@pytest_asyncio.fixture
async def test_project(db_session: AsyncSession, admin_user: User, member_user: User) -> Project:
    """A project created by the admin with member_user as its only member."""
    project = Project(
        id=uuid4(),
        name="Test Project",
        description="A test project",
        created_by=admin_user.id,
    )
    project.members = [ProjectMember(user_id=member_user.id, role="member")]
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return project


@pytest_asyncio.fixture
async def test_task(db_session: AsyncSession, test_project: Project, admin_user: User, member_user: User) -> Task:
    """A Pending task in test_project assigned to member_user (counters kept in step)."""
    task = Task(
        id=uuid4(),
        project_id=test_project.id,
        assigned_to=member_user.id,
        created_by=admin_user.id,
        title="Test Task",
        description="A test task description",
    )
    db_session.add(task)
    test_project.total_tasks = 1
    await db_session.commit()
    await db_session.refresh(task)
    return task
