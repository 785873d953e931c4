"""
Pydantic schemas for admin authentication endpoints.

AdminPrincipal is the hash-free view of an account that session
verification hands to route logic; the other models are request and
response bodies for /auth.
"""

from datetime import datetime
from typing import List, Optional
import json

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AdminPrincipal(BaseModel):
    """
    Authenticated admin attached to a request.

    Never carries the password hash or lockout counters.
    """
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    username: str
    email: Optional[str] = None
    role: str
    permissions: List[str] = Field(default_factory=list)
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("permissions", mode="before")
    @classmethod
    def parse_permissions(cls, v):
        """Accept the JSON text stored on the ORM model as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return json.loads(v) if v else []
        return v


class LoginRequest(BaseModel):
    """Username/password login body."""
    username: str = Field(..., min_length=1, max_length=100, description="Username")
    password: str = Field(..., min_length=1, max_length=256, description="Password")


class Token(BaseModel):
    """
    Access token response model.

    Returned by the OAuth2-compatible /auth/token endpoint.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")


class LoginResponse(Token):
    """Login response with token expiry and the authenticated admin."""
    expires_at: datetime = Field(..., description="UTC expiry of the access token")
    user: AdminPrincipal


class LockStatus(BaseModel):
    """Lock state of an account evaluated at a given instant."""
    locked: bool
    locked_until: Optional[datetime] = None
    remaining_seconds: int = 0


class AdminOverview(BaseModel):
    """Row of the admin list: the principal plus its lockout bookkeeping."""
    user: AdminPrincipal
    failed_attempt_count: int = 0
    lock: LockStatus


class ProfileUpdateRequest(BaseModel):
    """Profile update body; an empty or null email clears it."""
    email: Optional[str] = Field(default=None, max_length=255)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=1, description="New password")


class MessageResponse(BaseModel):
    message: str
