"""
Request ID middleware for correlation tracking.

Reuses the client's X-Request-ID header or generates a UUID, stores it on
request.state and echoes it in the response, so every log line for a login
or session check can be tied to one request.
"""

import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a correlation ID to every request.

    Example:
        app.add_middleware(RequestIDMiddleware)

    Usage in routes:
        request.state.request_id
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
