"""
Centralized configuration management using Pydantic Settings.

This module provides type-safe configuration for the admin authentication
service, loading settings from environment variables and .env files.
"""

from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Secrets should never be committed to code - use .env file (gitignored).
    """

    # API Configuration
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version 1 prefix for all endpoints"
    )
    project_name: str = Field(
        default="Storefront Admin Auth",
        description="Project name displayed in API docs"
    )
    environment: Literal["development", "production", "test"] = Field(
        default="development",
        description="Deployment environment; development unlocks bootstrap endpoints"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/storefront_admin.db",
        description="Database connection URL (SQLite for local use, PostgreSQL-ready format)"
    )

    # Session tokens
    secret_key: str = Field(
        ...,
        description="Secret key for JWT token signing (generate with: openssl rand -hex 32)"
    )
    access_token_expire_minutes: int = Field(
        default=7 * 24 * 60,
        gt=0,
        description="Admin session token lifetime in minutes (default: 7 days)"
    )

    # Lockout policy
    max_login_attempts: int = Field(
        default=5,
        ge=1,
        description="Consecutive failed logins before the account is locked"
    )
    lockout_minutes: int = Field(
        default=30,
        ge=1,
        description="How long an account stays locked after hitting the threshold"
    )
    min_password_length: int = Field(
        default=6,
        ge=1,
        description="Minimum length accepted for new admin passwords"
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor used for new password hashes"
    )

    # Default admin bootstrap
    admin_default_username: str = Field(
        default="admin",
        description="Username of the admin created when no account exists"
    )
    admin_default_password: str = Field(
        default="admin123",
        description="Password of the bootstrap admin (change after first login)"
    )

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=["http://localhost:8080"],
        description="Allowed CORS origins (storefront admin UI)"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow cookies/credentials in CORS requests"
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Throttle requests per client IP"
    )
    rate_limit_login_per_minute: int = Field(
        default=10,
        ge=1,
        description="Requests per minute per client on /auth/login and /auth/token"
    )
    rate_limit_default_per_minute: int = Field(
        default=60,
        ge=1,
        description="Requests per minute per client on every other path"
    )

    # Security headers
    csp_enabled: bool = Field(
        default=True,
        description="Send a Content-Security-Policy header"
    )
    csp_policy: Optional[str] = Field(
        default=None,
        description="Custom Content-Security-Policy (default: same-origin only)"
    )
    hsts_max_age: int = Field(
        default=0,
        ge=0,
        description="Strict-Transport-Security max-age in seconds (0 disables; use 15552000 behind TLS)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    log_json: bool = Field(
        default=True,
        description="Emit JSON log lines (False for human-readable output)"
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | List[str]) -> List[str]:
        """
        Parse cors_origins from JSON string or list.

        Supports comma-separated origins for easier .env configuration.
        """
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """
        Validate that secret_key is properly configured.

        Raises ValueError if still using placeholder value or too short.
        JWT signing keys must be at least 32 characters.
        """
        if not v or v.strip() == "":
            raise ValueError(
                "SECRET_KEY is required and cannot be empty. "
                "Generate one with: openssl rand -hex 32"
            )
        if v in ["generate-with-openssl-rand-hex-32", "CHANGE_ME_32_CHARS_MIN", "your-secret-key-here"]:
            raise ValueError(
                "SECRET_KEY must be set to a secure random value (not placeholder). "
                "Generate one with: openssl rand -hex 32"
            )
        if len(v) < 32:
            raise ValueError(
                f"SECRET_KEY must be at least 32 characters long. "
                f"Current length: {len(v)}. Generate with: openssl rand -hex 32"
            )
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Ensure the URL uses one of the supported async drivers."""
        if not v or v.strip() == "":
            raise ValueError("DATABASE_URL is required and cannot be empty")

        valid_schemes = ["sqlite", "sqlite+aiosqlite", "postgresql", "postgresql+asyncpg"]
        if not any(v.startswith(scheme + "://") for scheme in valid_schemes):
            raise ValueError(
                f"DATABASE_URL must start with one of: {', '.join(valid_schemes)}. "
                f"Got: {v[:20]}..."
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got {v!r}")
        return level

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


# Global settings instance
# Import this instance throughout the application
settings = Settings()
