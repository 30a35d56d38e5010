"""
Backoffice Admin - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Settings are read at import time; provide test values before importing the app
os.environ.setdefault("SECRET_KEY", "test-session-secret")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DEBUG", "false")

from typing import AsyncGenerator, List, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_async_session
from app.models.rbac import Role
from app.models.user import User, UserStatus
from app.services.rbac_service import RBACService
from app.utils.permissions import SystemRole
from app.utils.security import get_password_hash
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "TestPassword123!"
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database with the RBAC catalogue synced, per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        rbac = RBACService(session)
        await rbac.sync_permissions()
        await rbac.sync_roles()
        await session.commit()
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

async def create_user(
    db: AsyncSession,
    name: str,
    email: str,
    role: Optional[str] = None,
    status: UserStatus = UserStatus.ACTIVE,
) -> User:
    """Insert a user directly, bypassing the audited service path."""
    roles: List[Role] = []
    if role is not None:
        roles = [await RBACService(db).get_role(role)]

    user = User(
        id=uuid4(),
        name=name,
        email=email,
        hashed_password=TEST_PASSWORD_HASH,
        status=status,
        roles=roles,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory fixture: ``await make_user("Name", "mail@example.com", role=...)``."""

    async def _make(name: str, email: str, role: Optional[str] = None, status: UserStatus = UserStatus.ACTIVE) -> User:
        return await create_user(db_session, name, email, role=role, status=status)

    return _make


@pytest_asyncio.fixture
async def super_admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Root Admin", "root@example.com", SystemRole.SUPER_ADMIN.value)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "John Doe", "john@example.com", SystemRole.ADMIN.value)


@pytest_asyncio.fixture
async def other_admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Alice Admin", "alice@example.com", SystemRole.ADMIN.value)


@pytest_asyncio.fixture
async def regular_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Jane Doe", "jane@example.com", SystemRole.USER.value)


@pytest_asyncio.fixture
async def inactive_user(db_session: AsyncSession) -> User:
    return await create_user(
        db_session, "Ivan Inactive", "ivan@example.com", SystemRole.USER.value, status=UserStatus.INACTIVE
    )


async def login(client: AsyncClient, user: User, password: str = TEST_PASSWORD):
    """Sign ``user`` into the client's cookie session."""
    response = await client.post("/login", json={"email": user.email, "password": password})
    assert response.status_code == 200, response.text
    return response
