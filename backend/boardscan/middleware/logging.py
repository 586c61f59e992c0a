"""
BoardScan Backend — Access Log Middleware
===========================================

What:  One log line per request: method, path, status, duration, request id,
       acting user id and client IP.
Why:   uvicorn's access log has no request id or user correlation; it is
       silenced in main.setup_logging and replaced by this one.

Level follows the outcome: 5xx → ERROR, 4xx → WARNING, otherwise INFO.
Health probes are not logged. Request bodies (images, coordinates) never
are.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from boardscan.middleware.request_id import request_id_var

logger = logging.getLogger("boardscan.access")

QUIET_PATHS = {"/health"}


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"
        user_id = request.headers.get("X-User-ID", "-")
        rid = request_id_var.get("")
        status = response.status_code

        logger.log(
            _level_for(status),
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            request.url.path,
            status,
            duration_ms,
            rid,
            user_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "user_id": user_id,
                "client_ip": client_ip,
            },
        )
        return response
