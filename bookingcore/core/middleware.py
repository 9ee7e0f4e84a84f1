"""HTTP middleware and the Redis-backed rate limiter."""

import logging
import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

import redis.asyncio as redis

from bookingcore.config import settings
from bookingcore.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

# Paths never counted by the global limiter
UNLIMITED_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")


def client_address(request: Request) -> str:
    """Caller address, honouring proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")


class SlidingWindow:
    """Per-key request counter over the last minute, stored in a Redis sorted set."""

    def __init__(self, limit: int, key_prefix: str, redis_url: str | None = None) -> None:
        self.limit = limit
        self.key_prefix = key_prefix
        self.redis_url = redis_url or settings.redis_url
        self._redis: redis.Redis | None = None

    def client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        return self._redis

    async def hit(self, identity: str) -> int:
        """Record one request and return how many preceded it in the window.

        Raises:
            redis.RedisError: If Redis cannot be reached
        """
        key = f"{self.key_prefix}:{identity}"
        now = time.time()
        async with self.client().pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, 0, now - WINDOW_SECONDS)
            pipe.zcard(key)
            pipe.zadd(key, {uuid.uuid4().hex: now})
            pipe.expire(key, WINDOW_SECONDS)
            results = await pipe.execute()
        return results[1]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Global per-address limit. Lets traffic through when Redis is down."""

    def __init__(self, app, requests_per_minute: int = 100, redis_url: str | None = None):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.window = SlidingWindow(requests_per_minute, "rate_limit", redis_url)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in UNLIMITED_PATHS or settings.debug:
            return await call_next(request)

        try:
            seen = await self.window.hit(client_address(request))
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing {request.url.path}: {e}")
            return await call_next(request)

        reset = str(int(time.time()) + WINDOW_SECONDS)
        if seen >= self.requests_per_minute:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later.", "retry_after": WINDOW_SECONDS},
                headers={
                    "Retry-After": str(WINDOW_SECONDS),
                    "X-RateLimit-Limit": str(self.requests_per_minute),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": reset,
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.requests_per_minute - seen - 1))
        response.headers["X-RateLimit-Reset"] = reset
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns the request id used to correlate command logs, and times each request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id

        response = await call_next(request)

        duration = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        logger.info(
            f"[{request_id}] {request.method} {request.url.path} "
            f"-> {response.status_code} in {duration:.3f}s"
        )
        if duration > 1.0:
            logger.warning(
                f"[{request_id}] SLOW REQUEST: {request.method} {request.url.path} took {duration:.3f}s"
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(self.HEADERS)
        if not settings.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RateLimiter:
    """Endpoint-level limit used as a FastAPI dependency.

    Raises RateLimitExceeded when the caller is over the limit; lets the
    request through when Redis is unavailable.
    """

    def __init__(self, requests_per_minute: int = 10, key_prefix: str = "api"):
        self.requests_per_minute = requests_per_minute
        self.key_prefix = key_prefix
        self.window = SlidingWindow(requests_per_minute, f"rate:{key_prefix}")

    async def __call__(self, request: Request) -> None:
        try:
            seen = await self.window.hit(client_address(request))
        except redis.RedisError as e:
            logger.warning(f"Rate limiter {self.key_prefix} unavailable: {e}")
            return

        if seen >= self.requests_per_minute:
            logger.info(f"[{getattr(request.state, 'request_id', None)}] {self.key_prefix} rate limit hit")
            raise RateLimitExceeded()


command_limiter = RateLimiter(
    requests_per_minute=settings.command_rate_limit_per_minute,
    key_prefix="command",
)
