"""
Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup for tests
- An isolated in-memory database per test
- Guard, repository and codec fixtures with a controllable clock
- An ASGI client wired to the test database
"""

import os
import sys
from datetime import timedelta
from pathlib import Path

import pytest


# Set test environment variables BEFORE any imports
# This must happen first to ensure settings load with test values
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test_secret_key_at_least_32_characters_long_for_jwt"
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"  # Fast hashing for tests
os.environ["LOG_JSON"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"  # The shared app would keep buckets across tests

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from storefront_auth.core.database import get_db, get_session_maker  # noqa: E402
from storefront_auth.core.security import JWTTokenCodec  # noqa: E402
from storefront_auth.models import AdminAccount, Base, utc_now  # noqa: E402, F401
from storefront_auth.repositories.admin import AdminAccountRepository  # noqa: E402
from storefront_auth.services.account_guard import AdminAccountGuard  # noqa: E402

TEST_SECRET_KEY = os.environ["SECRET_KEY"]


class FakeClock:
    """Manually advanced replacement for utc_now()."""

    def __init__(self, now=None):
        self.now = now or utc_now()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database with all tables created."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return get_session_maker(engine)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def repository(db_session):
    return AdminAccountRepository(db_session)


@pytest.fixture
def codec():
    return JWTTokenCodec(TEST_SECRET_KEY)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def guard(repository, codec, clock):
    return AdminAccountGuard(
        repository,
        codec,
        password_hash_rounds=4,
        clock=clock,
    )


@pytest.fixture
def make_admin(guard):
    """
    Factory creating stored accounts.

    Example:
        bob = await make_admin("bob", "correct-horse", role="editor",
                               permissions=["products.read"])
    """

    async def _make(username, password="correct-horse", **kwargs):
        return await guard.create_account(username, password, **kwargs)

    return _make


@pytest.fixture
async def client(session_maker):
    """
    ASGI client for the app with get_db bound to the test database.

    The lifespan is not run, so no default admin is bootstrapped.
    """
    from storefront_auth.main import app

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client
    app.dependency_overrides.clear()
