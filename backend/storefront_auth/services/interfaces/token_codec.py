"""
Token Codec Interface (ITokenCodec)

Signs and verifies bearer session tokens that bind an account id to an
expiry time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """
    Verified contents of a session token.

    Attributes:
        account_id: Identifier of the authenticated account
        expires_at: Naive UTC expiry time
    """
    account_id: str
    expires_at: datetime


class ITokenCodec(ABC):
    """Abstract interface for session token signing and verification."""

    @abstractmethod
    def issue(self, account_id: str, ttl: timedelta) -> str:
        """
        Sign a token for `account_id` that expires after `ttl`.

        Returns:
            Encoded token string suitable for an Authorization header
        """
        pass

    @abstractmethod
    def verify(self, token: str) -> TokenPayload:
        """
        Check signature and expiry and return the embedded claims.

        Raises:
            InvalidToken: On an empty, malformed, expired or forged token
        """
        pass
