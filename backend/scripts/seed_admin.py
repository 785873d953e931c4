"""
Seed the default admin account.

Creates the bootstrap admin from ADMIN_DEFAULT_USERNAME /
ADMIN_DEFAULT_PASSWORD (defaults: admin / admin123) when no admin account
exists. Idempotent - running it again does nothing.

Usage:
    python scripts/seed_admin.py

Security:
    IMPORTANT: Change the default password immediately after first login!
"""

import asyncio
import sys
from pathlib import Path

# Add backend directory to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from storefront_auth.core.config import settings
from storefront_auth.core.database import async_session_maker, engine
from storefront_auth.core.logging_config import setup_logging
from storefront_auth.core.security import JWTTokenCodec
from storefront_auth.models.base import Base
from storefront_auth.repositories.admin import AdminAccountRepository
from storefront_auth.services.account_guard import AdminAccountGuard


async def seed_admin() -> bool:
    """
    Create the default admin if the account table is empty.

    Returns:
        True if an account was created, False if accounts already existed
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        guard = AdminAccountGuard(
            AdminAccountRepository(session),
            JWTTokenCodec(settings.secret_key),
            min_password_length=settings.min_password_length,
            password_hash_rounds=settings.bcrypt_rounds,
        )
        created = await guard.ensure_default_admin(
            settings.admin_default_username,
            settings.admin_default_password,
        )

    await engine.dispose()

    if created is None:
        print("Admin accounts already exist. Skipping...")
        return False

    print("Admin user created successfully!")
    print(f"Username: {created.username}")
    print("")
    print("WARNING: Please change this password immediately after first login!")
    return True


if __name__ == "__main__":
    setup_logging(level=settings.log_level, json_format=settings.log_json)
    print("Seeding admin user...")
    asyncio.run(seed_admin())
    print("Done!")
