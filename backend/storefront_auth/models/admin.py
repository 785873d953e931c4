"""
Admin account model for storefront back-office authentication.

Holds credentials, role and permission grants, and the lockout
bookkeeping used by AdminAccountGuard.
"""

from datetime import datetime
from typing import Iterable, List, Optional
import json
import re

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from storefront_auth.core.exceptions import AccountValidationError
from storefront_auth.models.base import Base, UUIDMixin, TimestampMixin


ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_EDITOR = "editor"
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_EDITOR)

PERMISSIONS = (
    "products.read",
    "products.create",
    "products.update",
    "products.delete",
    "categories.read",
    "categories.create",
    "categories.update",
    "categories.delete",
    "admins.read",
    "admins.create",
    "admins.update",
    "admins.delete",
    "analytics.read",
    "settings.read",
    "settings.update",
)

_ROLE_PERMISSIONS = {
    ROLE_ADMIN: list(PERMISSIONS),
    ROLE_MANAGER: [
        "products.read", "products.create", "products.update", "products.delete",
        "categories.read", "categories.create", "categories.update", "categories.delete",
        "analytics.read",
    ],
    ROLE_EDITOR: [
        "products.read", "products.create", "products.update",
        "categories.read",
    ],
}

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
USERNAME_PATTERN = re.compile(r"^[a-z0-9_]+$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
BCRYPT_HASH_PATTERN = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")


def role_permissions(role: str) -> List[str]:
    """Default permission set granted to a role (empty for unknown roles)."""
    return list(_ROLE_PERMISSIONS.get(role, []))


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


class AdminAccount(Base, UUIDMixin, TimestampMixin):
    """
    Back-office admin account.

    Attributes:
        id: UUID primary key (from UUIDMixin)
        username: Unique lowercase login name
        hashed_password: bcrypt hash (never store plaintext)
        email: Optional unique contact address
        role: One of admin, manager, editor
        permissions: JSON list of capability tokens (ignored for role=admin)
        is_active: Inactive accounts can never authenticate
        failed_attempt_count: Consecutive failed logins since last success
        locked_until: While in the future, logins are refused outright
        last_login_at: Time of the last successful authentication

    Security considerations:
        - Never log or expose hashed_password
        - failed_attempt_count/locked_until are internal bookkeeping and
          are not part of the public representation
    """

    __tablename__ = "admin_accounts"

    username = Column(
        String(USERNAME_MAX_LENGTH),
        nullable=False,
        unique=True,
        doc="Unique lowercase username for authentication"
    )

    hashed_password = Column(
        String,
        nullable=False,
        doc="Bcrypt-hashed password (never store plaintext)"
    )

    email = Column(
        String(255),
        nullable=True,
        unique=True,
        doc="Optional contact email, unique when present"
    )

    role = Column(
        String(20),
        nullable=False,
        default=ROLE_ADMIN,
        doc="admin, manager or editor"
    )

    permissions = Column(
        Text,
        nullable=False,
        default="[]",
        doc="JSON list of granted permission tokens"
    )

    is_active = Column(Boolean, nullable=False, default=True)

    failed_attempt_count = Column(Integer, nullable=False, default=0)

    locked_until = Column(DateTime, nullable=True)

    last_login_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_admin_accounts_username", "username"),
        Index("idx_admin_accounts_is_active", "is_active"),
    )

    def get_permissions(self) -> List[str]:
        """
        Parse the permissions JSON column.

        Returns:
            List of permission tokens in grant order
        """
        if not self.permissions:
            return []
        return json.loads(self.permissions)

    def set_permissions(self, permissions: Iterable[str]) -> None:
        self.permissions = json.dumps(list(permissions))

    def is_locked(self, now: datetime) -> bool:
        """True while locked_until lies after `now` (expiry is evaluated lazily)."""
        return self.locked_until is not None and self.locked_until > now

    def __repr__(self) -> str:
        return f"AdminAccount(id={self.id!r}, username={self.username!r}, role={self.role!r})"


def prepare_for_save(account: AdminAccount) -> AdminAccount:
    """
    Normalize and validate an account before it is written.

    Called explicitly by the account store on every save, in place of
    implicit ORM lifecycle hooks.

    Args:
        account: Account about to be persisted (modified in place)

    Returns:
        The same account, normalized

    Raises:
        AccountValidationError: If any field rule is violated
    """
    account.username = normalize_username(account.username)
    username = account.username
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise AccountValidationError(
            "username",
            f"Username must be between {USERNAME_MIN_LENGTH} and "
            f"{USERNAME_MAX_LENGTH} characters",
        )
    if not USERNAME_PATTERN.match(username):
        raise AccountValidationError(
            "username",
            "Username can only contain lowercase letters, numbers, and underscores",
        )

    account.email = normalize_email(account.email)
    if account.email is not None and not EMAIL_PATTERN.match(account.email):
        raise AccountValidationError("email", "Please provide a valid email address")

    if account.role is None:
        account.role = ROLE_ADMIN
    if account.role not in ROLES:
        raise AccountValidationError("role", "Role must be admin, manager, or editor")

    granted: List[str] = []
    for permission in account.get_permissions():
        if permission not in PERMISSIONS:
            raise AccountValidationError("permissions", f"Unknown permission: {permission}")
        if permission not in granted:
            granted.append(permission)
    account.set_permissions(granted)

    if not account.hashed_password or not BCRYPT_HASH_PATTERN.match(account.hashed_password):
        raise AccountValidationError("password", "Password must be stored as a bcrypt hash")

    if account.failed_attempt_count is None:
        account.failed_attempt_count = 0
    if account.failed_attempt_count < 0:
        raise AccountValidationError(
            "failed_attempt_count", "Failed attempt count cannot be negative"
        )
    if account.is_active is None:
        account.is_active = True

    return account
