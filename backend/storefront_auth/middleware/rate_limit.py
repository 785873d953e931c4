"""
Per-client rate limiting for the admin API.

Token bucket per (client IP, scope). The credential endpoints
(/auth/login and /auth/token) get their own, stricter bucket so that
password guessing from one address is throttled before the per-account
lockout ever has to kick in. Every other path shares the default bucket.

Token Bucket Algorithm:
- Each client gets a bucket holding at most `limit` tokens
- Tokens are refilled at limit/60 per second
- Each request consumes one token
- An empty bucket rejects the request with 429

Note: buckets live in process memory. Several workers each keep their own
counts, so the effective limit scales with the worker count.
"""

import time
from typing import Callable, Dict, Iterable, Tuple

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront_auth.core.logging_config import get_logger


logger = get_logger(__name__)

LOGIN_SCOPE = "login"
DEFAULT_SCOPE = "default"


class TokenBucket:
    """
    Token bucket for rate limiting.

    Attributes:
        capacity: Maximum number of tokens in the bucket
        refill_rate: Number of tokens added per second
        tokens: Current number of available tokens
        last_refill: Clock reading of the last refill
    """

    def __init__(
        self,
        capacity: int,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self._clock = clock
        self.last_refill = clock()

    def consume(self, tokens: int = 1) -> bool:
        """
        Attempt to consume tokens from the bucket.

        Refills tokens based on elapsed time before checking availability.

        Returns:
            True if tokens were available and consumed, False otherwise
        """
        now = self._clock()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def get_wait_time(self) -> float:
        """Seconds until the next token is available."""
        if self.tokens >= 1:
            return 0.0
        return (1 - self.tokens) / self.refill_rate


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware using a token bucket per client and scope.

    Example:
        app.add_middleware(
            RateLimitMiddleware,
            login_paths=["/api/v1/auth/login", "/api/v1/auth/token"],
            login_limit=10,
            default_limit=60,
        )

    Responses carry X-RateLimit-Limit and X-RateLimit-Remaining; rejected
    requests get 429 with Retry-After.

    Security Notes:
    - The client is the first X-Forwarded-For entry when present, so only
      deploy behind a proxy that overwrites that header
    """

    def __init__(
        self,
        app,
        login_paths: Iterable[str] = ("/auth/login", "/auth/token"),
        login_limit: int = 10,
        default_limit: int = 60,
        cleanup_interval: int = 300,
        idle_timeout: int = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            app: ASGI application
            login_paths: Exact paths that use the login bucket
            login_limit: Requests per minute on the login paths
            default_limit: Requests per minute everywhere else
            cleanup_interval: Seconds between sweeps of idle buckets
            idle_timeout: Seconds without traffic before a bucket is dropped
            clock: Monotonic time source, replaceable in tests
        """
        super().__init__(app)
        self.login_paths = frozenset(p.rstrip("/") for p in login_paths)
        self.login_limit = login_limit
        self.default_limit = default_limit
        self.cleanup_interval = cleanup_interval
        self.idle_timeout = idle_timeout
        self._clock = clock

        # {(ip, scope): (bucket, last_access)}
        self.buckets: Dict[Tuple[str, str], Tuple[TokenBucket, float]] = {}
        self.last_cleanup = clock()

        logger.info(
            "Rate limiting initialized",
            extra={
                "login_limit": login_limit,
                "default_limit": default_limit,
                "login_paths": sorted(self.login_paths),
            },
        )

    def _get_client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            # First entry is the original client
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _get_scope(self, path: str) -> Tuple[str, int]:
        """Bucket scope and per-minute limit for a request path."""
        if path.rstrip("/") in self.login_paths:
            return LOGIN_SCOPE, self.login_limit
        return DEFAULT_SCOPE, self.default_limit

    def _get_or_create_bucket(self, ip: str, scope: str, limit: int) -> TokenBucket:
        now = self._clock()

        if now - self.last_cleanup > self.cleanup_interval:
            self._cleanup_old_buckets(now)

        key = (ip, scope)
        if key in self.buckets:
            bucket, _ = self.buckets[key]
            self.buckets[key] = (bucket, now)
            return bucket

        # Capacity = limit (burst), refill_rate = limit/60 (per second)
        bucket = TokenBucket(capacity=limit, refill_rate=limit / 60.0, clock=self._clock)
        self.buckets[key] = (bucket, now)
        return bucket

    def _cleanup_old_buckets(self, now: float) -> None:
        """Drop buckets idle for longer than idle_timeout."""
        stale = [
            key for key, (_, last_access) in self.buckets.items()
            if now - last_access > self.idle_timeout
        ]
        for key in stale:
            del self.buckets[key]

        if stale:
            logger.info(
                "Cleaned up idle rate limit buckets",
                extra={"count": len(stale)},
            )

        self.last_cleanup = now

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = self._get_client_ip(request)
        path = request.url.path
        scope, limit = self._get_scope(path)

        bucket = self._get_or_create_bucket(client_ip, scope, limit)

        if not bucket.consume():
            retry_after = int(bucket.get_wait_time()) + 1

            logger.warning(
                "Rate limit exceeded",
                extra={
                    "event": "rate_limited",
                    "client_ip": client_ip,
                    "path": path,
                    "method": request.method,
                    "limit": limit,
                    "retry_after": retry_after,
                    "request_id": getattr(request.state, "request_id", None),
                },
            )

            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Too many requests, please try again later",
                    "code": "rate_limited",
                    "limit": limit,
                    "window": "1 minute",
                    "retry_after": retry_after,
                },
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(int(bucket.tokens))

        return response
