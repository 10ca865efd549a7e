from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding-window limiter, per client and per kind of request.

    Reads (opening share links, looking tests up) and writes (creating tests,
    uploading answers) are counted in separate buckets so a burst of uploads
    cannot lock a student out of the test page. ``exempt_paths`` are never
    counted.
    """

    def __init__(
        self,
        app,
        *,
        requests: int = 120,
        write_requests: int | None = None,
        window_seconds: int = 60,
        key_func: Callable[[Request], str] | None = None,
        exempt_paths: Iterable[str] = ("/health",),
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.limits = {
            "read": max(1, requests),
            "write": max(1, write_requests if write_requests is not None else requests),
        }
        self.window = max(1, window_seconds)
        self.key_func = key_func or self._client_host
        self.exempt_paths = frozenset(exempt_paths)
        self._clock = clock
        self._buckets: Dict[Tuple[str, str], Deque[float]] = {}
        self._lock = asyncio.Lock()
        self._swept_at = clock()

    @staticmethod
    def _client_host(request: Request) -> str:
        return request.client.host if request.client else "unknown"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        kind = "write" if request.method in WRITE_METHODS else "read"
        bucket_key = (self.key_func(request), kind)
        now = self._clock()

        async with self._lock:
            self._sweep(now)
            hits = self._buckets.setdefault(bucket_key, deque())
            horizon = now - self.window
            while hits and hits[0] <= horizon:
                hits.popleft()

            if len(hits) >= self.limits[kind]:
                wait = int(hits[0] - horizon) + 1
                return JSONResponse(
                    {"detail": "Too many requests. Reduce your request rate and try again."},
                    status_code=429,
                    headers={"Retry-After": str(wait)},
                )
            hits.append(now)

        return await call_next(request)

    def _sweep(self, now: float) -> None:
        # at most once per window; forget clients idle for two windows
        if now - self._swept_at < self.window:
            return
        stale = now - 2 * self.window
        for key in [k for k, hits in self._buckets.items() if not hits or hits[-1] < stale]:
            del self._buckets[key]
        self._swept_at = now
