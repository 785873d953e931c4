"""
Health check functions for dependency checks.

Each check returns bool (True = healthy) and never raises.
"""

import asyncio
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_auth.core.logging_config import get_logger


logger = get_logger(__name__)


async def check_database(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    timeout_seconds: float = 2.0,
) -> bool:
    """
    Check database connectivity with a SELECT 1.

    Args:
        session_maker: Session factory to check (defaults to the app's)
        timeout_seconds: Maximum time to wait for response (default: 2.0)

    Returns:
        True if database is reachable and healthy, False otherwise
    """
    if session_maker is None:
        from storefront_auth.core.database import async_session_maker
        session_maker = async_session_maker

    try:
        async with asyncio.timeout(timeout_seconds):
            async with session_maker() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()
                return True

    except asyncio.TimeoutError:
        logger.warning("Database check timed out", extra={"timeout_seconds": timeout_seconds})
        return False
    except Exception as exc:
        logger.warning("Database check failed", extra={"error": str(exc)})
        return False
