"""Service error type and handlers for consistent error responses."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gig_market_service.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI, Request
    from starlette.types import ExceptionHandler

__all__ = ["ServiceError", "register_exception_handlers"]


class ServiceError(Exception):
    """
    Business-level error carried to the HTTP layer.

    ``error`` is a stable machine-readable code, ``message`` is shown to the
    user, ``status_code`` is the HTTP status returned to the caller.
    """

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details: dict[str, Any] = details if details is not None else {}

    def __repr__(self) -> str:
        return f"ServiceError({self.error!r}, {self.message!r}, {self.status_code})"


_HTTP_ERROR_CODES: dict[int, tuple[str, str]] = {
    404: ("NOT_FOUND", "Resource not found"),
    405: ("METHOD_NOT_ALLOWED", "Method not allowed"),
}


def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "details": details or {}},
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Turn a ServiceError into its JSON body; every one is logged at WARNING."""
    get_logger(__name__).warning(
        "Request refused",
        extra={
            "error_code": exc.error,
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )
    return _error_response(exc.status_code, exc.error, exc.message, exc.details)


async def unhandled_exception_handler(request: Request, _exc: Exception) -> JSONResponse:
    get_logger(__name__).exception("Unhandled exception", extra={"path": request.url.path})
    return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


async def http_exception_handler(
    _request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Routing failures (unknown path, wrong verb) in the service's error shape."""
    error, message = _HTTP_ERROR_CODES.get(exc.status_code, ("HTTP_ERROR", str(exc.detail)))
    return _error_response(exc.status_code, error, message)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the app."""
    app.add_exception_handler(ServiceError, cast("ExceptionHandler", service_error_handler))
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.add_exception_handler(
        StarletteHTTPException,
        cast("ExceptionHandler", http_exception_handler),
    )
