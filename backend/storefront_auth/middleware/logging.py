"""
Logging middleware for request/response tracking.

Logs method, path, status code, latency, request correlation ID and,
for authenticated requests, the admin id resolved by session verification.

Must be registered AFTER RequestIDMiddleware to access request_id.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from storefront_auth.core.logging_config import get_logger


logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests and responses.

    Log output (JSON):
        {
            "timestamp": "2025-11-24T10:30:00.123456",
            "level": "INFO",
            "message": "Request completed",
            "method": "GET",
            "path": "/api/v1/auth/verify",
            "status_code": 200,
            "latency_ms": 12.5,
            "request_id": "abc-123",
            "admin_id": "5b0c..."
        }
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        method = request.method
        path = request.url.path
        request_id = getattr(request.state, "request_id", None)

        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as exc:
            latency_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {exc}",
                extra={
                    "method": method,
                    "path": path,
                    "latency_ms": round(latency_ms, 2),
                    "request_id": request_id,
                    "exception_type": type(exc).__name__,
                },
                exc_info=True
            )
            raise

        latency_ms = (time.time() - start_time) * 1000
        logger.info(
            "Request completed",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
                "request_id": request_id,
                "admin_id": getattr(request.state, "admin_id", None),
            }
        )
        return response
