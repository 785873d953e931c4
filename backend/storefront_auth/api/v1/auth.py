"""
Authentication endpoints for storefront admins.

Login, session verification, profile and password management. All
credential logic lives in AdminAccountGuard; these handlers only shape
requests and responses.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from storefront_auth.api.dependencies import AccountGuard, CurrentAdmin, require_permission
from storefront_auth.core.config import settings
from storefront_auth.core.logging_config import get_logger
from storefront_auth.schemas.auth import (
    AdminOverview,
    AdminPrincipal,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdateRequest,
    Token,
)


logger = get_logger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(payload: LoginRequest, guard: AccountGuard) -> LoginResponse:
    """
    Authenticate an admin with username and password.

    Example:
        POST /api/v1/auth/login
        {"username": "admin", "password": "admin123"}

        Response:
        {
            "access_token": "eyJ...",
            "token_type": "bearer",
            "expires_at": "2025-12-01T10:30:00",
            "user": {"id": "...", "username": "admin", "role": "admin", ...}
        }

    Errors:
        401 invalid credentials (same message for unknown username)
        403 account deactivated
        423 account temporarily locked
    """
    result = await guard.authenticate(payload.username, payload.password)
    return LoginResponse(
        access_token=result.token,
        token_type="bearer",
        expires_at=result.expires_at,
        user=AdminPrincipal.model_validate(result.account),
    )


@router.post("/token", response_model=Token, status_code=status.HTTP_200_OK)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    guard: AccountGuard,
) -> Token:
    """
    OAuth2 compatible token login endpoint.

    Same semantics as /login, with form fields so the OpenAPI docs'
    "Authorize" button works.
    """
    result = await guard.authenticate(form_data.username, form_data.password)
    return Token(access_token=result.token, token_type="bearer")


@router.get("/verify", response_model=AdminPrincipal)
async def verify(current_admin: CurrentAdmin) -> AdminPrincipal:
    """Return the admin bound to the presented token."""
    return current_admin


@router.get("/profile", response_model=AdminPrincipal)
async def get_profile(current_admin: CurrentAdmin) -> AdminPrincipal:
    """Current admin (email, role, permissions, last login)."""
    return current_admin


@router.put("/profile", response_model=AdminPrincipal)
async def update_profile(
    payload: ProfileUpdateRequest,
    current_admin: CurrentAdmin,
    guard: AccountGuard,
) -> AdminPrincipal:
    """Update the current admin's email (empty or null clears it)."""
    account = await guard.update_profile(current_admin, payload.email)
    return AdminPrincipal.model_validate(account)


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    current_admin: CurrentAdmin,
    guard: AccountGuard,
) -> MessageResponse:
    """
    Change the current admin's password.

    Errors:
        401 current password incorrect
        400 new password too short
    """
    await guard.change_password(current_admin, payload.current_password, payload.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(current_admin: CurrentAdmin) -> MessageResponse:
    """
    Acknowledge logout.

    Tokens are stateless; the client discards its copy.
    """
    logger.info(
        "Admin logged out",
        extra={"event": "logout", "admin_id": current_admin.id, "username": current_admin.username},
    )
    return MessageResponse(message="Logout successful")


@router.post(
    "/create-default",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_default_admin(guard: AccountGuard) -> MessageResponse:
    """
    Create the bootstrap admin (development environment only).

    Idempotent: does nothing when any account already exists.
    """
    if not settings.is_development:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This endpoint is only available in development mode",
        )

    created = await guard.ensure_default_admin(
        settings.admin_default_username,
        settings.admin_default_password,
    )
    if created is None:
        return MessageResponse(message="Admin accounts already exist")
    return MessageResponse(message="Default admin created successfully")


@router.get(
    "/admins",
    response_model=List[AdminOverview],
    dependencies=[Depends(require_permission("admins.read"))],
)
async def list_admins(guard: AccountGuard) -> List[AdminOverview]:
    """
    List admin accounts with their lock state.

    Requires the admins.read permission (admins always pass). A lock whose
    window has elapsed is reported as unlocked.
    """
    return await guard.list_admins()
