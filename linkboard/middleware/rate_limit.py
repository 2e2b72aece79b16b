"""Redis-based sliding window rate limiting middleware."""

import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from linkboard.exceptions import error_response
from linkboard.logging_config import get_logger

logger = get_logger(__name__)

# Skip rate limiting for these paths
SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

DEFAULT_LIMIT = 60
DEFAULT_WINDOW = 60  # seconds


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis sliding window rate limiter (ZADD + ZREMRANGEBYSCORE).

    ``redis_getter`` returns the client to use, or None to let every
    request through.
    """

    def __init__(
        self,
        app,
        redis_getter,
        limit: int = DEFAULT_LIMIT,
        window: int = DEFAULT_WINDOW,
        cookie_name: str = "auth_session",
    ):
        super().__init__(app)
        self._redis_getter = redis_getter
        self._limit = limit
        self._window = window
        self._cookie_name = cookie_name

    def _identify(self, request: Request) -> str:
        # Prefer the session cookie prefix, fall back to IP
        token = request.cookies.get(self._cookie_name, "")
        if len(token) >= 8:
            return f"session:{token[:8]}"
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        redis = self._redis_getter()
        if redis is None:
            return await call_next(request)

        identifier = self._identify(request)
        key = f"ratelimit:{identifier}:{request.url.path}"

        try:
            now = time.time()
            window_start = now - self._window

            pipe = redis.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zadd(key, {str(now): now})
            pipe.zcard(key)
            pipe.expire(key, self._window + 1)
            results = await pipe.execute()
        except Exception as e:
            # If Redis is down, allow the request through
            logger.warning("rate_limit_redis_error", error=str(e))
            return await call_next(request)

        request_count = results[2]
        if request_count > self._limit:
            logger.warning(
                "rate_limit_exceeded",
                identifier=identifier,
                path=request.url.path,
                count=request_count,
                limit=self._limit,
            )
            return error_response(
                429,
                f"Rate limit exceeded: {self._limit} requests per {self._window}s",
                headers={"Retry-After": str(self._window)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self._limit - request_count))
        return response
