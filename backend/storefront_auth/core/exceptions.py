"""
Authentication error taxonomy.

The guard raises these; the HTTP layer translates them into responses
(see storefront_auth.main). Messages are safe to show to API clients.
"""

from datetime import datetime
from typing import Optional


class AuthError(Exception):
    """Base exception for admin authentication failures"""

    code = "auth_error"
    default_message = "Authentication failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidCredentials(AuthError):
    """Unknown username or wrong password (deliberately indistinguishable)"""

    code = "invalid_credentials"
    default_message = "Invalid username or password"


class AccountDisabled(AuthError):
    """Raised when an inactive account tries to authenticate"""

    code = "account_disabled"
    default_message = "Account is deactivated"


class AccountLocked(AuthError):
    """Raised while an account's lockout window is still open"""

    code = "account_locked"
    default_message = (
        "Account is temporarily locked due to multiple failed login attempts. "
        "Please try again later."
    )

    def __init__(self, locked_until: Optional[datetime] = None, message: Optional[str] = None):
        super().__init__(message)
        self.locked_until = locked_until


class InvalidToken(AuthError):
    """Missing, malformed, expired or forged session token"""

    code = "invalid_token"
    default_message = "Could not validate credentials"


class WeakPassword(AuthError):
    """New password does not satisfy the password policy"""

    code = "weak_password"

    def __init__(self, min_length: int, message: Optional[str] = None):
        super().__init__(message or f"Password must be at least {min_length} characters")
        self.min_length = min_length


class AccountValidationError(ValueError):
    """
    Account record violates a field rule or a uniqueness constraint.

    Attributes:
        field: Name of the offending field
        conflict: True when the value collides with another account
    """

    def __init__(self, field: str, message: str, conflict: bool = False):
        super().__init__(message)
        self.field = field
        self.message = message
        self.conflict = conflict
