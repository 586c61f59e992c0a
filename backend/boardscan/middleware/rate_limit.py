"""
BoardScan Backend — Rate Limiting Middleware
==============================================

What:  Per-client sliding-window limit of RATE_LIMIT_REQUESTS per
       RATE_LIMIT_WINDOW seconds; excess requests get 429 with Retry-After.
How:   In-memory deque of request timestamps per client IP. Timestamps older
       than the window are dropped on every request from that client, and
       idle clients are swept periodically.

State lives in the worker process. With several uvicorn workers each one
enforces the limit independently.
"""

import logging
import time
from collections import deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from boardscan.config import settings
from boardscan.exceptions import RateLimitExceededError
from boardscan.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

SWEEP_EVERY = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, Deque[float]] = {}
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - settings.rate_limit_window

        timestamps = self._requests.setdefault(client_ip, deque())
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        if len(timestamps) >= settings.rate_limit_requests:
            retry_after = int(timestamps[0] + settings.rate_limit_window - now) + 1
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds window",
                client_ip,
                len(timestamps),
                settings.rate_limit_window,
            )
            error = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": error.message,
                    "details": error.context,
                    "request_id": request_id_var.get("") or None,
                },
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)

        self._seen += 1
        if self._seen % SWEEP_EVERY == 0:
            self._sweep(window_start)

        return await call_next(request)

    def _sweep(self, window_start: float) -> None:
        idle = [ip for ip, ts in self._requests.items() if not ts or ts[-1] <= window_start]
        for ip in idle:
            del self._requests[ip]
        if idle:
            logger.debug("Dropped rate-limit state for %d idle client(s)", len(idle))
