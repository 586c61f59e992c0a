"""
BoardScan Backend — Request ID Middleware
===========================================

What:  Assigns every request a correlation id, exposes it to loggers and
       error handlers through a ContextVar, and echoes it in X-Request-ID.

A client-supplied X-Request-ID is reused when it looks sane (short,
printable, no whitespace), so a mobile client can correlate its own error
reports with server logs. Anything else is replaced with a fresh id.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER, "")
        rid = supplied if _CLIENT_ID_PATTERN.match(supplied) else _new_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
