"""Error taxonomy and API handlers."""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from habitrat.core.logging import get_run_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, run_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.run_id = run_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class InsufficientDataError(AppError):
    """Not enough history to compute a metric; the unit of work is skipped."""
    code = "insufficient_data"
    status_code = 422


class UpstreamReadError(AppError):
    """Log store or habit directory could not be read for one user/habit."""
    code = "upstream_read_failed"
    status_code = 503


class PersistenceError(AppError):
    """An upsert/append still failed after its retry."""
    code = "persistence_failed"
    status_code = 500


class DispatchError(AppError):
    """Push transport rejected or failed a batch. Never retried here."""
    code = "dispatch_failed"
    status_code = 502


def _extract_run_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "run_id", None)
        or get_run_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, run_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "run_id": run_id},
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.run_id or _extract_run_id(request)
    payload = _error_payload(exc.code, exc.message, rid)
    logger = logging.getLogger("habitrat")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"run_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_run_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("habitrat")
    logger.warning("http.error", extra={"run_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_run_id(request)
    logger = logging.getLogger("habitrat")
    logger.error("unhandled.exception", exc_info=True, extra={"run_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
