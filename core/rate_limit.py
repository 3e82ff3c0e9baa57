# core/rate_limit.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Tuple

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """
    At most `max_requests` hits per key per `window_seconds`.
    Windows are aligned to the first hit of a key, not to the wall clock.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (window_start, count)
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> bool:
        """Record one request; False when the key is over its limit."""
        now = self._clock()
        with self._lock:
            start, count = self._windows.get(key, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0
            count += 1
            self._windows[key] = (start, count)
            if len(self._windows) > 10_000:
                self._prune(now)
            return count <= self.max_requests

    def retry_after(self, key: str) -> int:
        with self._lock:
            start, _ = self._windows.get(key, (self._clock(), 0))
        return max(0, int(self.window_seconds - (self._clock() - start)))

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _prune(self, now: float) -> None:
        expired = [k for k, (s, _) in self._windows.items() if now - s >= self.window_seconds]
        for k in expired:
            del self._windows[k]


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: FixedWindowRateLimiter, path_prefix: str = "/api/") -> None:
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(self.path_prefix):
            key = request.client.host if request.client else "unknown"
            if not self.limiter.hit(key):
                logger.warning("rate limit exceeded for %s", key)
                return JSONResponse(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    content={"success": False, "error": "Too many requests, please try again later"},
                    headers={"Retry-After": str(self.limiter.retry_after(key))},
                )
        return await call_next(request)
