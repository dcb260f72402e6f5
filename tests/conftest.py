"""Pytest configuration and shared fixtures for tests."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator, Callable, Iterator  # noqa: E402
from pathlib import Path  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402

from src.api.deps import get_db  # noqa: E402
from src.authz.cache import permission_cache  # noqa: E402
from src.authz.permissions import seed_default_permissions  # noqa: E402
from src.authz.roles import Role  # noqa: E402
from src.authz.tokens import create_access_token  # noqa: E402
from src.core.database import create_engine, create_session_factory  # noqa: E402
from src.main import app  # noqa: E402
from src.models import Base, User  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests.

    Returns:
        Backend name string.
    """
    return "asyncio"


@pytest.fixture(autouse=True)
def clear_permission_cache() -> Iterator[None]:
    """Start and finish every test with an empty permission cache."""
    permission_cache.clear()
    yield
    permission_cache.clear()


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """Create a mock database session.

    Returns:
        AsyncMock configured to simulate a seeded database.
    """
    session = AsyncMock()
    result = MagicMock()
    result.scalar.return_value = 63
    session.execute.return_value = result
    return session


@pytest.fixture
def mock_db_session_failing() -> AsyncMock:
    """Create a mock database session that fails on execute.

    Returns:
        AsyncMock configured to raise exception on execute.
    """
    session = AsyncMock()
    session.execute.side_effect = Exception("Database connection failed")
    return session


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis connection that succeeds.

    Returns:
        AsyncMock configured to simulate healthy Redis.
    """
    redis_mock = AsyncMock()
    redis_mock.ping.return_value = True
    return redis_mock


@pytest.fixture
def mock_redis_failing() -> AsyncMock:
    """Create a mock Redis connection that fails.

    Returns:
        AsyncMock configured to raise exception on ping.
    """
    redis_mock = AsyncMock()
    redis_mock.ping.side_effect = Exception("Redis connection refused")
    return redis_mock


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed sqlite engine with every table."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session against an empty schema."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_session(session: AsyncSession) -> AsyncSession:
    """Session against a schema holding the default permission catalog."""
    await seed_default_permissions(session)
    await session.commit()
    return session


@pytest_asyncio.fixture
async def users(seeded_session: AsyncSession) -> dict[str, User]:
    """One active user per role, keyed by role value."""
    created = {
        role.value: User(
            email=f"{role.value}@example.com",
            first_name=role.value.replace("_", " ").title(),
            last_name="User",
            role=role.value,
        )
        for role in Role
    }
    seeded_session.add_all(created.values())
    await seeded_session.commit()
    return created


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Build an Authorization header for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Create API client with DB dependency override and a mock Redis."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.redis = AsyncMock()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
