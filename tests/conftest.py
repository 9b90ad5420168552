"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite keeps the suite free of a running
  Postgres instance.
- StaticPool makes every session share the one in-memory connection;
  a second connection would see an empty database.
- The app is built with ``create_app`` and handed the test ``Database``
  and a ``CacheManager`` without a Redis URL, so the cache is a no-op
  and every read exercises the real database path.  ASGITransport does
  not run the lifespan, so these injected handles are the ones used.
- All tables are created before each test and dropped after.
- The viewer identity is sent in the ``X-Viewer-Id`` header, the way the
  upstream gateway injects it in production.
"""
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from conduit.cache import CacheManager
from conduit.database import Database
from conduit.main import create_app

# ---------------------------------------------------------------------------
# Test database and app
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

database_test = Database(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

cache_test = CacheManager()

app = create_app(database=database_test, cache=cache_test)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    await database_test.create_all()
    yield
    await database_test.drop_all()


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for service-level tests and direct seeding."""
    async with database_test.session() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def file_database(tmp_path) -> Database:
    """
    A SQLite file database whose sessions use separate connections, for
    tests that interleave two requests' transactions.
    """
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'interleave.db'}")
    await database.create_all()
    yield database
    await database.dispose()
