"""
Security headers middleware.

Adds the usual hardening headers to every response of the admin API:
- X-Content-Type-Options: no MIME-type sniffing
- X-Frame-Options / CSP frame-ancestors: no embedding (clickjacking)
- X-XSS-Protection: legacy browser XSS filter
- Content-Security-Policy: the API only serves JSON, so the default
  policy allows nothing but same-origin resources
- Referrer-Policy and Permissions-Policy
- Strict-Transport-Security when enabled (production behind TLS)

The interactive docs pages load Swagger UI / ReDoc assets from a CDN, so
they are served without the CSP header.
"""

from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from storefront_auth.core.logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_CSP_POLICY = (
    "default-src 'self'; "
    "img-src 'self' data:; "
    "frame-ancestors 'none'; "
    "form-action 'self'; "
    "base-uri 'self'; "
    "object-src 'none'"
)

PERMISSIONS_POLICY = (
    "geolocation=(), "
    "microphone=(), "
    "camera=(), "
    "payment=(), "
    "usb=(), "
    "magnetometer=(), "
    "gyroscope=(), "
    "accelerometer=()"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all HTTP responses.

    Example:
        app.add_middleware(
            SecurityHeadersMiddleware,
            csp_policy=settings.csp_policy,
            hsts_max_age=settings.hsts_max_age,
        )
    """

    def __init__(
        self,
        app,
        enable_csp: bool = True,
        csp_policy: Optional[str] = None,
        hsts_max_age: int = 0,
        csp_exempt_paths: Iterable[str] = ("/docs", "/redoc"),
    ):
        """
        Args:
            app: ASGI application
            enable_csp: Whether to send Content-Security-Policy
            csp_policy: Custom CSP policy (default: DEFAULT_CSP_POLICY)
            hsts_max_age: Strict-Transport-Security max-age in seconds; 0 disables it
            csp_exempt_paths: Path prefixes served without CSP
        """
        super().__init__(app)
        self.enable_csp = enable_csp
        self.csp_policy = csp_policy or DEFAULT_CSP_POLICY
        self.hsts_max_age = hsts_max_age
        self.csp_exempt_paths = tuple(csp_exempt_paths)

        logger.info(
            "Security headers middleware initialized",
            extra={
                "enable_csp": enable_csp,
                "hsts_enabled": hsts_max_age > 0,
            },
        )

    def _wants_csp(self, path: str) -> bool:
        if not self.enable_csp:
            return False
        return not any(path.startswith(prefix) for prefix in self.csp_exempt_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = PERMISSIONS_POLICY

        if self._wants_csp(request.url.path):
            response.headers["Content-Security-Policy"] = self.csp_policy

        if self.hsts_max_age > 0:
            response.headers["Strict-Transport-Security"] = (
                f"max-age={self.hsts_max_age}; includeSubDomains"
            )

        return response
