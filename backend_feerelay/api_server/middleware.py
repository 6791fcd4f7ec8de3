"""
HTTP middleware — per-client rate limiting in front of the sponsor endpoint.

Rejected requests never reach the pipeline. Counts are kept in process memory
using fixed windows keyed by client IP (first X-Forwarded-For hop when present).
"""

from __future__ import annotations

import threading
import time
from ipaddress import ip_address
from typing import Callable, Iterable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from backend_feerelay.relay_logging import get_logger

logger = get_logger(__name__)

RATE_LIMITED_MESSAGE = "rate limit exceeded"


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int,
        window_sec: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_sec <= 0:
            raise ValueError("window_sec must be positive")
        self._max = max_requests
        self._window = window_sec
        self._clock = clock
        self._counts: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._last_purge = clock()

    def allow(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            if now - self._last_purge >= self._window:
                self._counts = {k: v for k, v in self._counts.items() if now - v[0] < self._window}
                self._last_purge = now
            start, count = self._counts.get(key, (now, 0))
            if now - start >= self._window:
                start, count = now, 0
            count += 1
            self._counts[key] = (start, count)
            return count <= self._max


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    candidate = forwarded or (request.client.host if request.client else "")
    try:
        ip_address(candidate)
    except ValueError:
        return "unknown"
    return candidate


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: FixedWindowRateLimiter, paths: Iterable[str] = ("/api/sponsor",)) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.paths = tuple(paths)

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or not request.url.path.startswith(self.paths):
            return await call_next(request)
        ip = client_ip(request)
        if not self.limiter.allow(ip):
            logger.info("rate_limited", client_ip=ip, path=request.url.path)
            return JSONResponse({"status": "error", "message": RATE_LIMITED_MESSAGE}, status_code=429)
        return await call_next(request)
