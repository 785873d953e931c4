"""
Security primitives for admin authentication.

Provides bcrypt password hashing and the JWT session token codec
(python-jose) consumed by AdminAccountGuard.
"""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from storefront_auth.core.exceptions import InvalidToken
from storefront_auth.services.interfaces.token_codec import ITokenCodec, TokenPayload

# JWT Algorithm
ALGORITHM = "HS256"

# Value of the "typ" claim carried by admin session tokens
SESSION_TOKEN_TYPE = "admin_session"

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    return password_bytes


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Args:
        plain_password: The plain text password to verify
        hashed_password: The hashed password to compare against

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    if isinstance(hashed_password, str):
        hashed_bytes = hashed_password.encode('utf-8')
    else:
        hashed_bytes = hashed_password

    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_bytes)
    except ValueError:
        # Not a bcrypt hash
        return False


def get_password_hash(password: str, rounds: int = 12) -> str:
    """
    Hash a password using bcrypt with a fresh salt.

    Args:
        password: Plain text password to hash
        rounds: bcrypt cost factor

    Returns:
        Hashed password string

    Note:
        Bcrypt has a 72-byte password limit. Longer passwords are truncated.
    """
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode('utf-8')


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    return get_password_hash("storefront-auth-timing-equalizer", rounds=rounds)


def burn_password_check(plain_password: str, rounds: int = 12) -> None:
    """
    Run a bcrypt comparison against a throwaway hash.

    Used when the username is unknown so the response time matches a
    wrong-password attempt. `rounds` must be the cost used for real
    account hashes; one throwaway hash is cached per cost.
    """
    verify_password(plain_password, _dummy_hash(rounds))


class JWTTokenCodec(ITokenCodec):
    """
    HS256 JWT implementation of ITokenCodec.

    Claims: sub (account id), iat, exp and typ="admin_session".

    Example:
        >>> codec = JWTTokenCodec(settings.secret_key)
        >>> token = codec.issue(account.id, timedelta(days=7))
        >>> codec.verify(token).account_id == account.id
        True
    """

    def __init__(self, secret_key: str, algorithm: str = ALGORITHM):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def issue(self, account_id: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(account_id),
            "iat": now,
            "exp": now + ttl,
            "typ": SESSION_TOKEN_TYPE,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> TokenPayload:
        if not token or not token.strip():
            raise InvalidToken("No session token provided")

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm]
            )
        except JWTError as exc:
            # Covers bad signature, malformed token and expired token
            raise InvalidToken() from exc

        account_id = payload.get("sub")
        exp = payload.get("exp")
        if not account_id or exp is None or payload.get("typ") != SESSION_TOKEN_TYPE:
            raise InvalidToken()

        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc).replace(tzinfo=None)
        return TokenPayload(account_id=account_id, expires_at=expires_at)
