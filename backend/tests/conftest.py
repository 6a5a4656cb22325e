"""Pytest configuration and fixtures for async testing."""
import os

# Settings are read at import time; point them at SQLite and keep Redis out
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("APP_ENV", "test")

from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lms.api.deps import get_db
from lms.auth.jwt import jwt_auth
from lms.database import Base
from lms.main import app
from lms.models.plan import Plan, PlanDuration, PlanName
from lms.models.user import User, UserRole

from utils.factories import PlanFactory, UserFactory

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh in-memory database and session for each test.

    Yields:
        AsyncSession: Database session for testing
    """
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
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client bound to the test database session.

    Authentication is real: use the ``auth_headers`` fixture to get a bearer token.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def transactional_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client whose session dependency commits on success and rolls
    back on error, like ``get_db`` does in production.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Bearer token header factory: ``auth_headers(user)``."""

    def _auth_headers(user: User) -> dict[str, str]:
        token = jwt_auth.create_access_token(user.id, user.email, user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest_asyncio.fixture(scope="function")
async def make_plan(db_session: AsyncSession) -> Callable[..., Awaitable[Plan]]:
    """Factory fixture persisting a plan; keyword arguments override defaults."""

    async def _make_plan(**overrides) -> Plan:
        plan = Plan(**PlanFactory.create(overrides))
        db_session.add(plan)
        await db_session.commit()
        await db_session.refresh(plan)
        return plan

    return _make_plan


@pytest_asyncio.fixture(scope="function")
async def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory fixture persisting a user; keyword arguments override defaults."""

    async def _make_user(**overrides) -> User:
        user = User(**UserFactory.create(overrides))
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture(scope="function")
async def free_plan(make_plan) -> Plan:
    """Active, indefinite default free plan."""
    return await make_plan(
        name=PlanName.FREE,
        duration=PlanDuration.INDEFINITE,
        price=None,
        max_groups=1,
        max_students_per_group=2,
        max_routes=1,
        max_resources=2,
        max_activities=2,
        is_default_free=True,
    )


@pytest_asyncio.fixture(scope="function")
async def premium_plan(make_plan) -> Plan:
    """Active monthly premium plan."""
    return await make_plan(name=PlanName.PREMIUM, duration=PlanDuration.MONTHLY, price=1999)


@pytest_asyncio.fixture(scope="function")
async def teacher(make_user, free_plan: Plan) -> User:
    """Teacher on the default free plan."""
    return await make_user(role=UserRole.TEACHER, plan_id=free_plan.id)


@pytest_asyncio.fixture(scope="function")
async def student(make_user) -> User:
    """Student account (no plan)."""
    return await make_user(role=UserRole.STUDENT)


@pytest_asyncio.fixture(scope="function")
async def admin(make_user) -> User:
    """Administrator account (no plan)."""
    return await make_user(role=UserRole.ADMINISTRATOR)
