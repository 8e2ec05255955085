"""Request ID middleware — binds an X-Request-ID to every request's log context."""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

log = structlog.get_logger("wpintake.api")

# Polled by load balancers; logged at debug only.
_QUIET_PATHS = frozenset({"/health"})


def _request_id(request: Request) -> str:
    incoming = request.headers.get("x-request-id", "")
    try:
        return str(uuid.UUID(incoming))
    except ValueError:
        return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse a well-formed incoming X-Request-ID or mint one; echo it back.

    For streamed responses (the job event feed) ``request.completed`` is
    logged once headers are sent, not when the stream closes.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        path = request.url.path
        fields = {"request_id": request_id, "method": request.method, "path": path}
        length = request.headers.get("content-length", "")
        if request.method == "POST" and length.isdigit():
            fields["body_bytes"] = int(length)
        tokens = structlog.contextvars.bind_contextvars(**fields)

        emit = log.debug if path in _QUIET_PATHS else log.info
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("request.failed", elapsed_ms=_elapsed_ms(started))
            raise
        else:
            emit("request.completed", status_code=response.status_code, elapsed_ms=_elapsed_ms(started))
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.reset_contextvars(**tokens)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)
