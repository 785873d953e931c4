"""
Admin account guard.

Owns credential verification, failed-attempt counting, temporary lockout,
session token issuance/verification and permission checks for back-office
admins.

Lockout state machine (per account):
    ACTIVE_UNLOCKED --(Nth consecutive failure)--> LOCKED
    LOCKED --(locked_until elapsed)--> ACTIVE_UNLOCKED (counter kept)
    ACTIVE_UNLOCKED --(failure with counter >= N)--> LOCKED
    ACTIVE_UNLOCKED --(success)--> ACTIVE_UNLOCKED (counter and lock cleared)
    any --(is_active=False)--> DISABLED

Expiry is lazy: nothing sweeps locks in the background, the lock is
re-evaluated on the next authentication attempt (or via lock_status()).

Concurrency:
    Counter updates are read-modify-write through the account store.
    Two simultaneous failures against one account may be counted once.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import math
from typing import Callable, Iterable, List, Optional, Union

from storefront_auth.core.exceptions import (
    AccountDisabled,
    AccountLocked,
    AccountValidationError,
    InvalidCredentials,
    InvalidToken,
    WeakPassword,
)
from storefront_auth.core.logging_config import get_logger
from storefront_auth.core.security import (
    burn_password_check,
    get_password_hash,
    verify_password,
)
from storefront_auth.models.admin import (
    ROLE_ADMIN,
    AdminAccount,
    normalize_username,
    role_permissions,
)
from storefront_auth.models.base import utc_now
from storefront_auth.schemas.auth import AdminOverview, AdminPrincipal, LockStatus
from storefront_auth.services.interfaces.account_store import IAccountStore
from storefront_auth.services.interfaces.token_codec import ITokenCodec


logger = get_logger(__name__)

AccountLike = Union[AdminAccount, AdminPrincipal]


@dataclass
class AuthResult:
    """Outcome of a successful login."""
    account: AdminAccount
    token: str
    expires_at: datetime


class AdminAccountGuard:
    """
    Authentication and authorization for admin accounts.

    Args:
        store: Account persistence
        codec: Session token signer/verifier
        max_failed_attempts: Consecutive failures that trigger a lock
        lockout_duration: How long a triggered lock lasts
        session_ttl: Lifetime of issued session tokens
        min_password_length: Password policy for new passwords
        password_hash_rounds: bcrypt cost for new hashes
        clock: Returns the current naive UTC time

    Example:
        guard = AdminAccountGuard(AdminAccountRepository(session), JWTTokenCodec(key))
        result = await guard.authenticate("bob", "secret1")
        principal = await guard.verify_session(result.token)
        guard.has_permission(principal, "products.read")
    """

    def __init__(
        self,
        store: IAccountStore,
        codec: ITokenCodec,
        *,
        max_failed_attempts: int = 5,
        lockout_duration: timedelta = timedelta(minutes=30),
        session_ttl: timedelta = timedelta(days=7),
        min_password_length: int = 6,
        password_hash_rounds: int = 12,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.codec = codec
        self.max_failed_attempts = max_failed_attempts
        self.lockout_duration = lockout_duration
        self.session_ttl = session_ttl
        self.min_password_length = min_password_length
        self.password_hash_rounds = password_hash_rounds
        self._clock = clock

    async def authenticate(self, username: str, password: str) -> AuthResult:
        """
        Verify credentials and issue a session token.

        Args:
            username: Username as typed (matched case-insensitively)
            password: Plaintext password

        Returns:
            AuthResult with the account, token and token expiry

        Raises:
            InvalidCredentials: Unknown username or wrong password
            AccountDisabled: Account is inactive
            AccountLocked: Lock window still open (checked before the password)
        """
        now = self._clock()
        normalized = normalize_username(username)
        account = await self.store.find_by_username(normalized)

        if account is None:
            burn_password_check(password, rounds=self.password_hash_rounds)
            logger.info(
                "Admin login failed",
                extra={"event": "login_failed", "username": normalized, "reason": "unknown_username"},
            )
            raise InvalidCredentials()

        if not account.is_active:
            logger.warning(
                "Login rejected for deactivated admin",
                extra={"event": "login_rejected_disabled", "admin_id": account.id, "username": account.username},
            )
            raise AccountDisabled()

        if account.is_locked(now):
            logger.warning(
                "Login rejected for locked admin",
                extra={
                    "event": "login_rejected_locked",
                    "admin_id": account.id,
                    "username": account.username,
                    "locked_until": account.locked_until,
                },
            )
            raise AccountLocked(account.locked_until)

        if not verify_password(password, account.hashed_password):
            await self._record_failure(account, now)
            raise InvalidCredentials()

        account.failed_attempt_count = 0
        account.locked_until = None
        account.last_login_at = now
        await self.store.save(account)

        token = self.codec.issue(account.id, self.session_ttl)
        expires_at = self.codec.verify(token).expires_at

        logger.info(
            "Admin login succeeded",
            extra={"event": "login_succeeded", "admin_id": account.id, "username": account.username},
        )
        return AuthResult(account=account, token=token, expires_at=expires_at)

    async def _record_failure(self, account: AdminAccount, now: datetime) -> None:
        account.failed_attempt_count = (account.failed_attempt_count or 0) + 1
        if account.failed_attempt_count >= self.max_failed_attempts:
            account.locked_until = now + self.lockout_duration

        # A storage error here propagates: the attempt fails closed
        await self.store.save(account)

        if account.locked_until is not None:
            logger.warning(
                "Admin account locked after repeated failures",
                extra={
                    "event": "account_locked",
                    "admin_id": account.id,
                    "username": account.username,
                    "failed_attempt_count": account.failed_attempt_count,
                    "locked_until": account.locked_until,
                },
            )
        else:
            logger.info(
                "Admin login failed",
                extra={
                    "event": "login_failed",
                    "admin_id": account.id,
                    "username": account.username,
                    "failed_attempt_count": account.failed_attempt_count,
                },
            )

    async def verify_session(self, token: Optional[str]) -> AdminPrincipal:
        """
        Resolve a bearer token to the admin it was issued for.

        Raises:
            InvalidToken: Token empty, malformed, forged, expired, or its
                account no longer exists
            AccountDisabled: Account has been deactivated since login
            AccountLocked: Account is currently locked
        """
        payload = self.codec.verify(token)

        account = await self.store.find_by_id(payload.account_id)
        if account is None:
            logger.warning(
                "Session token refers to a missing admin",
                extra={"event": "session_rejected", "admin_id": payload.account_id, "reason": "not_found"},
            )
            raise InvalidToken()

        if not account.is_active:
            raise AccountDisabled()

        if account.is_locked(self._clock()):
            raise AccountLocked(account.locked_until)

        return AdminPrincipal.model_validate(account)

    @staticmethod
    def has_permission(account: AccountLike, permission: str) -> bool:
        """Admins pass every check; other roles need the token granted."""
        if account.role == ROLE_ADMIN:
            return True
        return permission in _granted(account)

    @classmethod
    def has_any_permission(cls, account: AccountLike, permissions: Iterable[str]) -> bool:
        return any(cls.has_permission(account, permission) for permission in permissions)

    @staticmethod
    def has_role(account: AccountLike, roles: Union[str, Iterable[str]]) -> bool:
        if isinstance(roles, str):
            roles = [roles]
        return account.role in set(roles)

    async def change_password(
        self,
        account: AccountLike,
        current_password: str,
        new_password: str,
    ) -> AdminAccount:
        """
        Replace the password after re-checking the current one.

        A wrong current password does not count towards lockout.

        Raises:
            InvalidCredentials: current_password does not match
            WeakPassword: new_password is shorter than the policy minimum
        """
        record = await self._load(account)

        if not verify_password(current_password, record.hashed_password):
            logger.info(
                "Password change rejected",
                extra={"event": "password_change_rejected", "admin_id": record.id, "username": record.username},
            )
            raise InvalidCredentials("Current password is incorrect")

        self._check_password_policy(new_password)

        record.hashed_password = get_password_hash(new_password, rounds=self.password_hash_rounds)
        await self.store.save(record)

        logger.info(
            "Admin password changed",
            extra={"event": "password_changed", "admin_id": record.id, "username": record.username},
        )
        return record

    async def update_profile(self, account: AccountLike, email: Optional[str]) -> AdminAccount:
        """
        Set or clear the admin's email.

        Raises:
            AccountValidationError: Malformed or already-used email
        """
        record = await self._load(account)
        previous = record.email
        record.email = email
        try:
            await self.store.save(record)
        except AccountValidationError:
            record.email = previous
            raise

        logger.info(
            "Admin profile updated",
            extra={"event": "profile_updated", "admin_id": record.id, "username": record.username},
        )
        return record

    async def create_account(
        self,
        username: str,
        password: str,
        *,
        role: str = ROLE_ADMIN,
        permissions: Optional[List[str]] = None,
        email: Optional[str] = None,
    ) -> AdminAccount:
        """
        Create a new admin account.

        Permissions default to the role's standard set.

        Raises:
            WeakPassword: Password shorter than the policy minimum
            AccountValidationError: Invalid field or duplicate username/email
        """
        self._check_password_policy(password)

        account = AdminAccount(
            username=username,
            hashed_password=get_password_hash(password, rounds=self.password_hash_rounds),
            email=email,
            role=role,
            is_active=True,
            failed_attempt_count=0,
        )
        account.set_permissions(role_permissions(role) if permissions is None else permissions)
        await self.store.save(account)

        logger.info(
            "Admin account created",
            extra={"event": "account_created", "admin_id": account.id, "username": account.username, "role": role},
        )
        return account

    async def ensure_default_admin(self, username: str, password: str) -> Optional[AdminAccount]:
        """
        Create the bootstrap admin when no account exists yet.

        Returns:
            The created account, or None if accounts already exist
        """
        if await self.store.count() > 0:
            return None

        account = await self.create_account(username, password, role=ROLE_ADMIN)
        logger.warning(
            "Default admin account created; change its password after first login",
            extra={"event": "default_admin_created", "admin_id": account.id, "username": account.username},
        )
        return account

    async def list_admins(self) -> List[AdminOverview]:
        """
        Every account with its lock state evaluated now.

        Locks whose window has passed are reported as unlocked even though
        locked_until is only cleared by the next successful login.
        """
        accounts = await self.store.list_accounts()
        return [
            AdminOverview(
                user=AdminPrincipal.model_validate(account),
                failed_attempt_count=account.failed_attempt_count or 0,
                lock=self.lock_status(account),
            )
            for account in accounts
        ]

    def lock_status(self, account: AdminAccount) -> LockStatus:
        """Current lock state, evaluated without a login attempt."""
        now = self._clock()
        if not account.is_locked(now):
            return LockStatus(locked=False)
        remaining = math.ceil((account.locked_until - now).total_seconds())
        return LockStatus(locked=True, locked_until=account.locked_until, remaining_seconds=remaining)

    def _check_password_policy(self, password: str) -> None:
        if password is None or len(password) < self.min_password_length:
            raise WeakPassword(self.min_password_length)

    async def _load(self, account: AccountLike) -> AdminAccount:
        if isinstance(account, AdminAccount):
            return account
        record = await self.store.find_by_id(account.id)
        if record is None:
            raise InvalidToken()
        return record


def _granted(account: AccountLike) -> List[str]:
    if isinstance(account, AdminAccount):
        return account.get_permissions()
    return list(account.permissions)
