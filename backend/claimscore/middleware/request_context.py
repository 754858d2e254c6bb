"""
Request context middleware.

Accepts a caller-supplied X-Request-ID (or mints one), keeps it in a
ContextVar for log records emitted while the request is handled, and writes
one access log line per request.
"""

import logging
import re
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

access_logger = logging.getLogger("claimscore.access")

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Caller ids end up in logs verbatim
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Polled endpoints are logged at DEBUG
_QUIET_PATHS = frozenset({"/metrics", "/api/health"})


def get_request_id() -> str:
    return _request_id_var.get()


def _incoming_request_id(request: Request) -> str:
    supplied = request.headers.get("X-Request-ID", "")
    return supplied if _VALID_REQUEST_ID.match(supplied) else uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = _incoming_request_id(request)
        token = _request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            level = logging.DEBUG if request.url.path in _QUIET_PATHS else logging.INFO
            access_logger.log(
                level,
                "%s %s -> %d (%.0fms)",
                request.method, request.url.path, response.status_code, duration_ms,
                extra={"duration_ms": duration_ms},
            )
        finally:
            _request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response
