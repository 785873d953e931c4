"""
SQLAlchemy ORM models for the storefront admin service.

Import models from this module to ensure they're registered with SQLAlchemy.
"""

from storefront_auth.models.base import Base, TimestampMixin, UUIDMixin, utc_now
from storefront_auth.models.admin import AdminAccount

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    # Models
    "AdminAccount",
]
