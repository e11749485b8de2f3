"""Request timing middleware.

Every request is logged at DEBUG with its duration; requests slower than the
configured threshold are logged at WARNING.
"""

from __future__ import annotations

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

logger = logging.getLogger("mini_server.timing")


class TimingMiddleware(BaseHTTPMiddleware):
    """Measures wall-clock time spent in each request."""

    def __init__(self, app: ASGIApp, slow_request_ms: int = 1000):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # type: ignore[override]
        start_ts = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_ts) * 1000

        response.headers["X-Process-Time-Ms"] = f"{duration_ms:.1f}"
        if duration_ms >= self.slow_request_ms:
            logger.warning(
                "Slow request %s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, duration_ms
            )
        else:
            logger.debug("%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, duration_ms)
        return response
