# src/careops/utils/error_handler.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException as FastAPIHTTPException
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.careops.exceptions import CareOpsError

logger = logging.getLogger("fastapi")

SESSION_EXPIRED_MESSAGE = "Your session has timed out for security reasons. Please log in again."

# Stock texts replaced by a friendlier banner; anything else passes through
_BANNER_OVERRIDES = {
    403: "Access denied. You do not have permission to access this page.",
    404: "The requested resource was not found.",
    500: "Internal Server Error. Please try again later.",
}
_GENERIC_401 = ("", "Unauthorized", "Not authenticated")


def _exc_args(exc: Exception) -> str:
    args = getattr(exc, "args", None)
    return repr(args) if args else "-"


def banner_message(status_code: int, message: str) -> str:
    if status_code == 401:
        return SESSION_EXPIRED_MESSAGE if message in _GENERIC_401 else message
    return _BANNER_OVERRIDES.get(status_code, message)


def banner_response(
    status_code: int,
    message: str,
    exc: Exception,
    extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Every error leaves the API in one shape so the dashboard can render it as
    a dismissible banner.
    """
    body: Dict[str, Any] = {
        "message": banner_message(status_code, message),
        "error_type": type(exc).__name__,
        "status_code": status_code,
        "dismissible": True,
    }
    if extra:
        body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def _log_failure(request: Request, status_code: int, detail: str, exc: Exception) -> None:
    """
    404 -> INFO, 401/403 -> WARNING, other 4xx -> ERROR, 5xx -> stack trace.
    """
    where = f"{request.method} {request.url.path}"

    if status_code == 404:
        logger.info("404 %s", where)
    elif status_code in (401, 403):
        logger.warning("%s %s | %s", status_code, where, detail)
    elif status_code < 500:
        logger.error("%s %s | %s | args=%s", status_code, where, detail, _exc_args(exc))
    else:
        logger.error("%s %s | %s", status_code, where, detail, exc_info=exc)


def validation_details(exc: RequestValidationError) -> list:
    # ctx may hold exception instances that JSONResponse cannot encode
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


async def custom_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, (StarletteHTTPException, FastAPIHTTPException)):
        status, detail = int(exc.status_code), str(exc.detail)
    elif isinstance(exc, RequestValidationError):
        logger.warning("422 %s %s | %s", request.method, request.url.path, exc.errors())
        return banner_response(
            422,
            "Validation error occurred",
            exc,
            extra={"validation_errors": validation_details(exc)},
        )
    elif isinstance(exc, CareOpsError):
        # BackendError carries the backend's own status
        status, detail = exc.status_code, exc.message
    else:
        status, detail = 500, str(exc)

    _log_failure(request, status, detail, exc)
    return banner_response(status, detail, exc)
