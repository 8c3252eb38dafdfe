"""FastAPI application entry point."""

import logging
import time
import traceback
from contextlib import asynccontextmanager
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import engine, get_db
from .exceptions import NotAuthenticated, PMError
from .models.user import User
from .routers import auth_router, projects_router, tasks_router, users_router
from .schemas.project import ReconciliationResult
from .services.guards import require_admin
from .services.permission_service import DEFAULT_PERMISSION_MATRIX, PermissionService
from .services.task_counter_service import recalculate_project_counters

# Configure logging to show errors
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    logger.info(f"Starting PM Dashboard API ({settings.environment})")
    yield
    # Shutdown
    logger.info("Disposing database engine...")
    await engine.dispose()
    logger.info("Database engine disposed")


# Create FastAPI application
app = FastAPI(
    title="PM Dashboard API",
    description="Project management API with role-based access control",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# The role table is fixed for the life of the process
app.state.permission_service = PermissionService(DEFAULT_PERMISSION_MATRIX)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and duration of every request."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f}ms)"
    )
    return response


# Application errors carry their own status code
@app.exception_handler(PMError)
async def pm_error_handler(request: Request, exc: PMError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, NotAuthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


# Unique constraint races (duplicate email, duplicate membership) end up here
@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Conflicting or invalid data"},
    )


# Database pool exhaustion handler - return 503 so clients can retry
@app.exception_handler(SQLAlchemyTimeoutError)
async def db_pool_exhausted_handler(request: Request, exc: SQLAlchemyTimeoutError):
    """Handle database connection pool exhaustion with 503 Service Unavailable."""
    logger.warning(
        f"Database pool exhausted on {request.method} {request.url}: {exc}"
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": "Service temporarily unavailable. Please retry.",
            "retry_after": 5,
        },
        headers={"Retry-After": "5"},
    )


# Global exception handler to log errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log all unhandled exceptions with full traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url}:")
    logger.error(f"Exception type: {type(exc).__name__}")
    logger.error(f"Exception message: {str(exc)}")
    logger.error(f"Traceback:\n{traceback.format_exc()}")

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include API routers
app.include_router(auth_router)
app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(users_router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "service": "PM Dashboard API",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check endpoint for monitoring."""
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyTimeoutError:
        database = "unavailable"
    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "database": database,
        "environment": settings.environment,
    }


@app.post("/api/admin/reconcile-counters", response_model=ReconciliationResult)
async def reconcile_counters(
    current_user: Annotated[User, Depends(require_admin)],
    project_id: Optional[UUID] = Query(None, description="Limit to one project"),
    db: AsyncSession = Depends(get_db),
) -> ReconciliationResult:
    """
    Recompute project task counters from the Tasks table (admin endpoint).

    Fixes any drift between a project's total/completed counters and its
    actual tasks. Returns the projects that were corrected.
    """
    result = await recalculate_project_counters(db, project_id)
    await db.commit()
    logger.info(
        f"Counter reconciliation run by {current_user.id}: "
        f"{result.projects_corrected}/{result.projects_checked} corrected"
    )
    return result

