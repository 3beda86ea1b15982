"""Rate limiting middleware for FastAPI."""
from __future__ import annotations

import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Optional, Tuple

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""
    requests_per_minute: int = 60
    requests_per_hour: int = 1000
    ai_requests_per_minute: int = 10  # Summaries call a paid model
    ai_requests_per_hour: int = 100
    burst_limit: int = 10  # Max requests in 1 second
    ai_path_suffixes: Tuple[str, ...] = ("/summary",)


@dataclass
class ClientWindows:
    """Request timestamps for one client, oldest first."""
    second: Deque[float] = field(default_factory=deque)
    minute: Deque[float] = field(default_factory=deque)
    hour: Deque[float] = field(default_factory=deque)

    def expire(self, now: float) -> None:
        for window, span in ((self.second, 1), (self.minute, 60), (self.hour, 3600)):
            while window and window[0] <= now - span:
                window.popleft()

    def record(self, now: float) -> None:
        self.second.append(now)
        self.minute.append(now)
        self.hour.append(now)


def _too_many(detail: str, retry_after: float) -> JSONResponse:
    seconds = max(int(retry_after), 1)
    return JSONResponse(
        status_code=429,
        content={"detail": detail, "retry_after": seconds},
        headers={"Retry-After": str(seconds)},
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiting per client address.

    Every request counts against the general limits. Requests to AI
    endpoints are also tracked in their own windows and checked against the
    stricter AI limits, so ordinary traffic never uses up the AI allowance.
    """

    def __init__(self, app, config: RateLimitConfig = None, clock: Callable[[], float] = time.monotonic):
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self.clients: Dict[str, ClientWindows] = defaultdict(ClientWindows)
        self.ai_clients: Dict[str, ClientWindows] = defaultdict(ClientWindows)
        self._clock = clock

    def _get_client_id(self, request: Request) -> str:
        # Use X-Forwarded-For if behind a proxy, otherwise use client host
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _is_ai_endpoint(self, path: str) -> bool:
        return path.rstrip("/").endswith(self.config.ai_path_suffixes)

    def _check(self, windows: ClientWindows, now: float, minute_limit: int, hour_limit: int) -> Optional[JSONResponse]:
        if len(windows.minute) >= minute_limit:
            return _too_many(
                f"Rate limit exceeded: {minute_limit} requests per minute",
                60 - (now - windows.minute[0]),
            )
        if len(windows.hour) >= hour_limit:
            return _too_many(
                f"Rate limit exceeded: {hour_limit} requests per hour",
                3600 - (now - windows.hour[0]),
            )
        return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        now = self._clock()
        client_id = self._get_client_id(request)
        windows = self.clients[client_id]
        windows.expire(now)

        if len(windows.second) >= self.config.burst_limit:
            return _too_many("Rate limit exceeded: too many requests per second", 1)
        rejected = self._check(windows, now, self.config.requests_per_minute, self.config.requests_per_hour)
        if rejected is not None:
            return rejected

        if self._is_ai_endpoint(request.url.path):
            limited = self.ai_clients[client_id]
            limited.expire(now)
            minute_limit = self.config.ai_requests_per_minute
            rejected = self._check(limited, now, minute_limit, self.config.ai_requests_per_hour)
            if rejected is not None:
                return rejected
            limited.record(now)
        else:
            limited = windows
            minute_limit = self.config.requests_per_minute

        windows.record(now)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(minute_limit)
        response.headers["X-RateLimit-Remaining"] = str(max(minute_limit - len(limited.minute), 0))
        return response
