"""Fixed-window request rate limiting.

Every response carries ``X-RateLimit-Limit``, ``X-RateLimit-Remaining`` and
``X-RateLimit-Reset`` (epoch seconds). Requests over the limit get a 429 with
``Retry-After`` and ``retryAfter`` in the error details.
"""

import logging
import math
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse

from api.core.dependencies import extract_token
from api.core.errors import RATE_LIMITED, error_detail
from api.services import AuthService

logger = logging.getLogger(__name__)

EXEMPT_PATHS = frozenset({"/health", "/status", "/ping"})


@dataclass(frozen=True)
class RateLimitState:
    limit: int
    remaining: int
    reset: int  # epoch seconds
    retry_after: int | None = None

    @property
    def exceeded(self) -> bool:
        return self.retry_after is not None

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class FixedWindowRateLimiter:
    """Count hits per client key inside windows of ``window_seconds``."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        *,
        max_clients: int = 10_000,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        # (key, window index) -> hits; entries expire with their window
        self._hits: TTLCache = TTLCache(maxsize=max_clients, ttl=window_seconds * 2, timer=clock)
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitState:
        now = self._clock()
        window = int(now // self.window_seconds)
        reset = (window + 1) * self.window_seconds

        with self._lock:
            count = self._hits.get((key, window), 0) + 1
            self._hits[(key, window)] = count

        if count > self.limit:
            return RateLimitState(
                limit=self.limit,
                remaining=0,
                reset=reset,
                retry_after=max(1, math.ceil(reset - now)),
            )
        return RateLimitState(limit=self.limit, remaining=self.limit - count, reset=reset)


def client_key(request: Request, auth_service: AuthService, cookie_name: str) -> str:
    """Bucket a request by its verified user, else by client address."""
    token = extract_token(request, cookie_name)
    if token:
        payload = auth_service.verify_token(token)
        if payload:
            return f"user:{payload['sub']}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def rate_limit_middleware(
    limiter: FixedWindowRateLimiter, auth_service: AuthService, cookie_name: str
) -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    """Build an ``@app.middleware("http")`` function around ``limiter``."""

    async def middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        state = limiter.hit(client_key(request, auth_service, cookie_name))
        if state.exceeded:
            logger.warning(
                f"[{getattr(request.state, 'request_id', '-')}] Rate limited "
                f"{request.method} {request.url.path} (retry in {state.retry_after}s)"
            )
            return JSONResponse(
                status_code=429,
                content={
                    "detail": error_detail(
                        RATE_LIMITED,
                        "Too many requests.",
                        {"retryAfter": state.retry_after},
                    )
                },
                headers=state.headers(),
            )

        response = await call_next(request)
        response.headers.update(state.headers())
        return response

    return middleware
