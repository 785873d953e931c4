"""
Admin account repository.

SQLAlchemy implementation of IAccountStore with explicit validation and
uniqueness checks on every write.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_auth.core.exceptions import AccountValidationError
from storefront_auth.core.logging_config import get_logger
from storefront_auth.models.admin import (
    AdminAccount,
    normalize_email,
    normalize_username,
    prepare_for_save,
)
from storefront_auth.services.interfaces.account_store import IAccountStore


logger = get_logger(__name__)


class AdminAccountRepository(IAccountStore):
    """
    Repository for admin account data access.

    Every save commits immediately: lockout bookkeeping has to be durable
    even when the request that triggered it ends in an authentication error.

    Attributes:
        session: SQLAlchemy async session for database operations
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def find_by_username(self, username: str) -> Optional[AdminAccount]:
        stmt = select(AdminAccount).where(
            AdminAccount.username == normalize_username(username)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_id(self, account_id: str) -> Optional[AdminAccount]:
        return await self.session.get(AdminAccount, account_id)

    async def find_by_email(self, email: str) -> Optional[AdminAccount]:
        normalized = normalize_email(email)
        if normalized is None:
            return None
        stmt = select(AdminAccount).where(AdminAccount.email == normalized)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(AdminAccount)
        )
        return result.scalar_one()

    async def list_accounts(self) -> list[AdminAccount]:
        """All accounts ordered by username."""
        result = await self.session.execute(
            select(AdminAccount).order_by(AdminAccount.username)
        )
        return list(result.scalars().all())

    async def save(self, account: AdminAccount) -> AdminAccount:
        """
        Validate, upsert and commit an account.

        Args:
            account: New or loaded account

        Returns:
            The persisted account (id and timestamps populated)

        Raises:
            AccountValidationError: On a field rule violation or when the
                username/email is already taken by another account
            SQLAlchemyError: Any other storage failure, after rollback
        """
        prepare_for_save(account)
        await self._check_unique(account)

        # Rollback expires loaded attributes, so keep what the error log needs
        log_context = {"admin_id": account.id, "username": account.username}

        self.session.add(account)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            # Lost a race against a concurrent insert
            raise AccountValidationError(
                "username",
                "An account with this username or email already exists",
                conflict=True,
            ) from exc
        except Exception:
            await self.session.rollback()
            logger.error(
                "Failed to persist admin account",
                extra=log_context,
                exc_info=True,
            )
            raise

        return account

    async def _check_unique(self, account: AdminAccount) -> None:
        with self.session.no_autoflush:
            existing = await self.find_by_username(account.username)
            if existing is not None and existing is not account:
                raise AccountValidationError(
                    "username",
                    f"Username '{account.username}' is already taken",
                    conflict=True,
                )

            if account.email is not None:
                existing = await self.find_by_email(account.email)
                if existing is not None and existing is not account:
                    raise AccountValidationError(
                        "email",
                        "Email address is already in use",
                        conflict=True,
                    )
