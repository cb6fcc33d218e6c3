"""
TaskDesk Error Responder — The single place where errors become HTTP responses.

First match wins:
    1. ValidationError (and FastAPI's RequestValidationError) → 400 with every violation
    2. InvalidIdentifierError → 400 "Invalid ID format"
    3. RateLimitError → 429 + Retry-After
    4. NotFoundError → 404 with its message
    5. Anything carrying a status_code → that status (401 adds the gate's reason)
    6. Everything else → 500 "Internal Server Error"

Every error is logged before translation. Messages of 5xx errors are never
returned to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskdesk.engine.context import RequestContext
from taskdesk.engine.errors import (
    InvalidIdentifierError,
    NotFoundError,
    RateLimitError,
    TaskDeskError,
    UnauthorizedError,
    ValidationError,
)
from taskdesk.engine.logging import log, log_api_error, log_security_event

logger = logging.getLogger("taskdesk.api.responder")

INTERNAL_ERROR_MESSAGE = "Internal Server Error"

_LOCATION_PREFIXES = ("body", "path", "query", "header")


def validation_error_from_request(exc: RequestValidationError) -> ValidationError:
    """Convert FastAPI's request parsing failure into our ValidationError."""
    violations: List[Dict[str, Any]] = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in _LOCATION_PREFIXES]
        violations.append({
            "field": ".".join(loc) or "body",
            "message": err.get("msg", "is invalid"),
            "value": jsonable_encoder(err.get("input")),
        })
    if not violations:
        violations.append({"field": "body", "message": "is invalid", "value": None})
    return ValidationError.from_violations(violations, operation="request")


def _request_context(request: Optional[Request]) -> Optional[RequestContext]:
    if request is None:
        return None
    return getattr(request.state, "context", None)


def translate(exc: BaseException) -> Tuple[int, Dict[str, Any], Dict[str, str]]:
    """Map an exception to (status, body, headers)."""
    if isinstance(exc, RequestValidationError):
        exc = validation_error_from_request(exc)

    if isinstance(exc, ValidationError):
        return 400, {"message": "Validation Error", "errors": exc.errors, "detail": exc.message}, {}
    if isinstance(exc, InvalidIdentifierError):
        return 400, {"message": "Invalid ID format"}, {}
    if isinstance(exc, RateLimitError):
        return 429, {"message": exc.message}, {"Retry-After": str(exc.retry_after)}
    if isinstance(exc, NotFoundError):
        return 404, {"message": exc.message}, {}
    if isinstance(exc, UnauthorizedError):
        return 401, {"message": exc.message, "error": exc.reason}, {}

    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and 400 <= status < 600:
        if status >= 500:
            return status, {"message": INTERNAL_ERROR_MESSAGE}, {}
        if isinstance(exc, TaskDeskError):
            return status, {"message": exc.message}, {}
        detail = getattr(exc, "detail", None)
        headers = dict(getattr(exc, "headers", None) or {})
        return status, {"message": detail if isinstance(detail, str) else str(exc)}, headers

    return 500, {"message": INTERNAL_ERROR_MESSAGE}, {}


def _log_error(exc: BaseException, status: int, request: Optional[Request]) -> None:
    ctx = _request_context(request)
    method = request.method if request is not None else None
    path = request.url.path if request is not None else None
    request_id = ctx.request_id if ctx else None
    subject = ctx.subject if ctx else None

    if status >= 500:
        logger.error(f"{method} {path} → {status}: {exc!r}", exc_info=exc)
    else:
        logger.warning(f"{method} {path} → {status}: {exc!r}")

    details = exc.to_dict() if isinstance(exc, TaskDeskError) else {
        "error_type": type(exc).__name__,
        "message": str(exc),
    }
    log(log_api_error(details, status, method, path, request_id, subject))

    if isinstance(exc, (UnauthorizedError, RateLimitError)):
        log(log_security_event(
            event="auth_rejected" if isinstance(exc, UnauthorizedError) else "rate_limited",
            reason=getattr(exc, "reason", "rate_limit_exceeded"),
            provider=ctx.principal.provider if ctx else "none",
            client_ip=ctx.client_ip if ctx else None,
            request_id=request_id,
        ))


def error_response(exc: BaseException, request: Optional[Request] = None) -> JSONResponse:
    """Log the error and build its JSON response."""
    status, body, headers = translate(exc)
    _log_error(exc, status, request)
    return JSONResponse(status_code=status, content=body, headers=headers or None)


async def _handle(request: Request, exc: Exception) -> JSONResponse:
    return error_response(exc, request)


def register_error_handlers(app: FastAPI) -> None:
    """Route every handled exception type through error_response."""
    app.add_exception_handler(TaskDeskError, _handle)
    app.add_exception_handler(RequestValidationError, _handle)
    app.add_exception_handler(StarletteHTTPException, _handle)
