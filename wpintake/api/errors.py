"""Error responses — service, engine and request errors rendered as ``{"detail": ...}``."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wpintake.dao.base import InvalidCursorError
from wpintake.engines.exceptions import ExtractionError, IntakeError, UnsafePathError
from wpintake.services import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)

log = structlog.get_logger("wpintake.api")

# Most specific class wins (looked up along the MRO).
_STATUS_MAP: dict[type[Exception], int] = {
    NotFoundError: 404,
    ConflictError: 409,
    ValidationError: 422,
    AuthenticationError: 401,
    InvalidCursorError: 422,
    UnsafePathError: 422,
    ExtractionError: 422,
}


def _status_for(exc: Exception, default: int) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_MAP:
            return _STATUS_MAP[cls]
    return default


async def _service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    status = _status_for(exc, 500)
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return JSONResponse(status_code=status, content={"detail": str(exc)}, headers=headers)


async def _intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    status = _status_for(exc, 500)
    if status >= 500:
        log.error("request.intake_error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": "; ".join(messages)})


async def _invalid_cursor_handler(_request: Request, exc: InvalidCursorError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntakeError, _intake_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidCursorError, _invalid_cursor_handler)  # type: ignore[arg-type]
