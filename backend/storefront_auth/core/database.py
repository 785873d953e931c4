"""
Database configuration and session management.

Provides SQLAlchemy async engine setup, session factory, and dependency
injection for database sessions in FastAPI routes.
"""

import os
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import StaticPool

from storefront_auth.core.config import settings
from storefront_auth.models.base import Base


def get_async_engine(database_url: str | None = None) -> AsyncEngine:
    """
    Create and configure the async SQLAlchemy engine.

    For SQLite:
    - Uses StaticPool (single shared connection, required for :memory:)
    - Enables check_same_thread=False for async compatibility
    - Enables foreign keys on every new connection

    Args:
        database_url: Override for settings.database_url

    Returns:
        Configured AsyncEngine instance
    """
    url = database_url or settings.database_url
    is_sqlite = url.startswith("sqlite")

    connect_args: dict = {"check_same_thread": False} if is_sqlite else {}

    engine_kwargs = {
        "echo": False,  # Set to True for SQL query logging (debug only)
        "connect_args": connect_args,
    }

    if is_sqlite:
        engine_kwargs["poolclass"] = StaticPool
        _ensure_sqlite_directory(url)

    engine = create_async_engine(url, **engine_kwargs)

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ANN001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def _ensure_sqlite_directory(url: str) -> None:
    database = make_url(url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def get_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Keep loaded accounts usable after commit
        autoflush=False,
    )


# Global async engine instance
# Created once at import and reused by the app
engine = get_async_engine()

# Async session factory
async_session_maker = get_session_maker(engine)


async def init_db() -> None:
    """
    Create tables when explicitly enabled.

    For production, run migrations instead of create_all().
    Set ENABLE_DB_CREATE_ALL=1 (or use environment=development) to allow it.
    """
    # Import models so metadata is populated before create_all()
    from storefront_auth import models  # noqa: F401

    create_all = (
        settings.is_development
        or os.getenv("ENABLE_DB_CREATE_ALL", "").lower() in {"1", "true", "yes"}
    )
    if not create_all:
        return

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine's connections at shutdown."""
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function to get database session.

    Yields:
        AsyncSession instance for database operations

    Note:
        Repositories commit their own writes; anything left pending when
        the request fails is rolled back here.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
