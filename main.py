"""
Backoffice Admin - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware

from app.config import settings
from app.database import init_db, close_db, async_session_maker
from app.utils.error_handling import (
    AppException,
    setup_exception_handlers,
    ErrorTrackingMiddleware,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def sync_rbac():
    """Reconcile the permission/role catalogue with the database."""
    from app.services.rbac_service import RBACService

    async with async_session_maker() as session:
        summary = await RBACService(session).sync()
        logger.info(f"RBAC catalogue synced: {summary}")


async def seed_super_admin():
    """
    Seed the configured Super Admin user on startup.
    Skipped when SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD are not set.
    """
    from app.services.user_service import UserService

    async with async_session_maker() as session:
        try:
            super_admin = await UserService(session).ensure_super_admin()
        except (AppException, SQLAlchemyError) as e:
            logger.warning(f"Could not seed Super Admin: {e}")
            return
        if super_admin:
            logger.info(f"Super Admin ready: {super_admin.email}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Initialize database (dev only - schema is managed externally in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    await sync_rbac()
    await seed_super_admin()

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Back-office administration: RBAC, user impersonation and activity trail",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Signed cookie session (holds the principal and impersonation state)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    session_cookie=settings.session_cookie_name,
    max_age=settings.session_max_age_seconds,
    same_site="lax",
    https_only=settings.session_https_only or settings.is_production,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(ErrorTrackingMiddleware)

setup_exception_handlers(app)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
    }


@app.get("/api/v1")
async def api_root():
    """API v1 root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name} API v1",
        "endpoints": {
            "auth": "/api/v1/auth/token",
            "activities": "/api/v1/admin/activities",
        }
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from app.routers import (  # noqa: E402
    activities,
    auth,
    dashboard,
    impersonation,
    users,
)

app.include_router(auth.router, tags=["Authentication"])
app.include_router(auth.api_router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(dashboard.router, tags=["Dashboard"])
app.include_router(users.router, prefix="/admin/users", tags=["User Administration"])
app.include_router(impersonation.router, prefix="/impersonate", tags=["Impersonation"])
app.include_router(activities.router, prefix="/api/v1/admin/activities", tags=["Activity Log"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
