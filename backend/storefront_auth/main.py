"""
Storefront Admin Auth - FastAPI Application Entry Point

Initializes the FastAPI application with middleware, routes, error
translation for the authentication taxonomy, and lifecycle handlers.
"""

from contextlib import asynccontextmanager
import math
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront_auth.core.config import settings
from storefront_auth.core.database import async_session_maker, close_db, init_db
from storefront_auth.core.exceptions import (
    AccountDisabled,
    AccountLocked,
    AccountValidationError,
    AuthError,
    InvalidCredentials,
    InvalidToken,
    WeakPassword,
)
from storefront_auth.core.logging_config import get_logger, setup_logging
from storefront_auth.core.security import JWTTokenCodec
from storefront_auth.middleware.logging import LoggingMiddleware
from storefront_auth.middleware.rate_limit import RateLimitMiddleware
from storefront_auth.middleware.request_id import RequestIDMiddleware
from storefront_auth.middleware.security_headers import SecurityHeadersMiddleware
from storefront_auth.models.base import utc_now
from storefront_auth.repositories.admin import AdminAccountRepository
from storefront_auth.services.account_guard import AdminAccountGuard


logger = get_logger(__name__)

_STATUS_BY_ERROR = {
    InvalidCredentials: status.HTTP_401_UNAUTHORIZED,
    InvalidToken: status.HTTP_401_UNAUTHORIZED,
    AccountDisabled: status.HTTP_403_FORBIDDEN,
    AccountLocked: status.HTTP_423_LOCKED,
    WeakPassword: status.HTTP_400_BAD_REQUEST,
}


async def bootstrap_default_admin() -> None:
    """Create the default admin if the account table is empty."""
    async with async_session_maker() as session:
        guard = AdminAccountGuard(
            AdminAccountRepository(session),
            JWTTokenCodec(settings.secret_key),
            min_password_length=settings.min_password_length,
            password_hash_rounds=settings.bcrypt_rounds,
        )
        await guard.ensure_default_admin(
            settings.admin_default_username,
            settings.admin_default_password,
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Startup:
        - Set up logging
        - Initialize database
        - Create the default admin when no account exists

    Shutdown:
        - Close database connections
    """
    setup_logging(level=settings.log_level, json_format=settings.log_json)
    await init_db()
    await bootstrap_default_admin()

    yield

    await close_db()


def auth_error_response(exc: AuthError) -> JSONResponse:
    """Translate a guard error into its HTTP response."""
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_401_UNAUTHORIZED)
    headers = {}

    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    if isinstance(exc, AccountLocked) and exc.locked_until is not None:
        remaining = math.ceil((exc.locked_until - utc_now()).total_seconds())
        headers["Retry-After"] = str(max(remaining, 0))

    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
    return auth_error_response(exc)


async def handle_validation_error(request: Request, exc: AccountValidationError) -> JSONResponse:
    status_code = status.HTTP_409_CONFLICT if exc.conflict else status.HTTP_400_BAD_REQUEST
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "field": exc.field},
    )


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title=settings.project_name,
        version="0.1.0",
        description="Admin authentication and authorization for the storefront back office",
        openapi_url=f"{settings.api_v1_prefix}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_exception_handler(AuthError, handle_auth_error)
    app.add_exception_handler(AccountValidationError, handle_validation_error)

    # Middleware is executed in reverse order of registration
    # (last registered = first executed)
    app.add_middleware(
        SecurityHeadersMiddleware,
        enable_csp=settings.csp_enabled,
        csp_policy=settings.csp_policy,
        hsts_max_age=settings.hsts_max_age,
    )
    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            login_paths=[
                f"{settings.api_v1_prefix}/auth/login",
                f"{settings.api_v1_prefix}/auth/token",
            ],
            login_limit=settings.rate_limit_login_per_minute,
            default_limit=settings.rate_limit_default_per_minute,
        )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from storefront_auth.api.v1 import auth, health

    app.include_router(health.router, prefix=settings.api_v1_prefix, tags=["health"])
    app.include_router(auth.router, prefix=f"{settings.api_v1_prefix}/auth", tags=["auth"])

    @app.get("/")
    async def root():
        return {
            "message": "Storefront Admin Auth API",
            "version": "0.1.0",
            "docs": "/docs",
        }

    return app


app = create_app()
