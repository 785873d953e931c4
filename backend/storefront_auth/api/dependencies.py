"""
FastAPI dependency functions.

Wires AdminAccountGuard into the request pipeline: guard construction,
bearer-token session verification, and permission/role guards for
privileged routes.
"""

from datetime import timedelta
from typing import Annotated, Callable, Iterable, Optional, Union

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_auth.core.config import settings
from storefront_auth.core.database import get_db
from storefront_auth.core.exceptions import InvalidToken
from storefront_auth.core.security import JWTTokenCodec
from storefront_auth.repositories.admin import AdminAccountRepository
from storefront_auth.schemas.auth import AdminPrincipal
from storefront_auth.services.account_guard import AdminAccountGuard


# auto_error=False so a missing header goes through the guard's InvalidToken path
bearer_scheme = HTTPBearer(auto_error=False)


def get_token_codec() -> JWTTokenCodec:
    return JWTTokenCodec(settings.secret_key)


async def get_account_guard(
    db: Annotated[AsyncSession, Depends(get_db)],
    codec: Annotated[JWTTokenCodec, Depends(get_token_codec)],
) -> AdminAccountGuard:
    """
    Build a request-scoped guard from the session and settings.

    Returns:
        AdminAccountGuard backed by AdminAccountRepository
    """
    return AdminAccountGuard(
        AdminAccountRepository(db),
        codec,
        max_failed_attempts=settings.max_login_attempts,
        lockout_duration=timedelta(minutes=settings.lockout_minutes),
        session_ttl=timedelta(minutes=settings.access_token_expire_minutes),
        min_password_length=settings.min_password_length,
        password_hash_rounds=settings.bcrypt_rounds,
    )


async def get_current_admin(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    guard: Annotated[AdminAccountGuard, Depends(get_account_guard)],
) -> AdminPrincipal:
    """
    Dependency to get the authenticated admin from the bearer token.

    Raises:
        InvalidToken: Header missing or token rejected (401)
        AccountDisabled: Account deactivated (403)
        AccountLocked: Account currently locked (423)

    Note:
        Guard errors are translated to responses by the handlers
        registered in storefront_auth.main.

    Example:
        @router.get("/protected")
        async def protected_route(admin: CurrentAdmin):
            return {"message": f"Hello {admin.username}"}
    """
    if credentials is None:
        raise InvalidToken("Not authorized, no token provided")

    principal = await guard.verify_session(credentials.credentials)
    request.state.admin_id = principal.id
    return principal


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def require_permission(permission: str) -> Callable:
    """
    Build a dependency that requires one permission.

    Example:
        @router.delete("/products/{id}", dependencies=[Depends(require_permission("products.delete"))])
    """

    async def dependency(
        admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    ) -> AdminPrincipal:
        if not AdminAccountGuard.has_permission(admin, permission):
            raise _forbidden("Insufficient permissions")
        return admin

    return dependency


def require_any_permission(permissions: Iterable[str]) -> Callable:
    """Build a dependency that requires at least one of `permissions`."""
    required = list(permissions)

    async def dependency(
        admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    ) -> AdminPrincipal:
        if not AdminAccountGuard.has_any_permission(admin, required):
            raise _forbidden("Insufficient permissions")
        return admin

    return dependency


def require_role(roles: Union[str, Iterable[str]]) -> Callable:
    """Build a dependency that requires the admin's role to be in `roles`."""
    allowed = [roles] if isinstance(roles, str) else list(roles)

    async def dependency(
        admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    ) -> AdminPrincipal:
        if not AdminAccountGuard.has_role(admin, allowed):
            raise _forbidden("Insufficient role privileges")
        return admin

    return dependency


# Type aliases for dependency injection
CurrentAdmin = Annotated[AdminPrincipal, Depends(get_current_admin)]
AccountGuard = Annotated[AdminAccountGuard, Depends(get_account_guard)]
