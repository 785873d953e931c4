"""
Account Store Interface (IAccountStore)

Abstract base class for persisting admin account records.

Implementation guide:
- All methods must be async
- Lookups by username expect the normalized (lowercase) form
- save() must run prepare_for_save() and make the write durable before
  returning; storage errors propagate to the caller
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from storefront_auth.models.admin import AdminAccount


class IAccountStore(ABC):
    """
    Abstract interface for admin account persistence.

    The guard reads and writes accounts only through this contract, so the
    lockout bookkeeping is independent of the database in use.
    """

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[AdminAccount]:
        """
        Look up an account by its normalized username.

        Returns:
            The account, or None if no account uses that username
        """
        pass

    @abstractmethod
    async def find_by_id(self, account_id: str) -> Optional[AdminAccount]:
        """
        Look up an account by primary key.

        Returns:
            The account, or None if it does not exist (e.g. deleted)
        """
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[AdminAccount]:
        """Look up an account by normalized email address."""
        pass

    @abstractmethod
    async def save(self, account: AdminAccount) -> AdminAccount:
        """
        Validate and upsert the full account record.

        Raises:
            AccountValidationError: If the record breaks a field or
                uniqueness rule
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Number of stored accounts."""
        pass

    @abstractmethod
    async def list_accounts(self) -> List[AdminAccount]:
        """All accounts ordered by username."""
        pass
