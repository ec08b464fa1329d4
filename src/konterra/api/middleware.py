"""API error handling middleware: consistent error responses.

Registers FastAPI exception handlers that convert domain exceptions into
standardised ``{"error": {"code": "...", "message": "..."}}`` JSON responses.

Status code mapping:
- ``NotFoundError`` → 404 Not Found
- ``ValueError`` (including ``ValidationError``) and request-body validation → 400 Bad Request
- ``UnauthorizedError`` → 401 Unauthorized
- Any other ``Exception`` → 500 Internal Server Error
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from konterra.api.models import ErrorDetail, ErrorResponse
from konterra.errors import NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def _handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    logger.info("Not found: %s", exc)
    return _error(404, "NOT_FOUND", str(exc))


async def _handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Return 400 for validation / value errors."""
    logger.info("Validation error: %s", exc)
    return _error(400, "VALIDATION_ERROR", str(exc))


async def _handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 for malformed request bodies, query strings, and path params."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
    logger.info("Request validation error on %s: %s", request.url.path, message)
    return _error(400, "VALIDATION_ERROR", message)


async def _handle_unauthorized(request: Request, exc: UnauthorizedError) -> JSONResponse:
    return _error(401, "UNAUTHORIZED", str(exc) or "Unauthorized")


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    This sits above the Starlette exception handler layer, so exceptions not
    matched by ``add_exception_handler`` are still converted to the standard
    error envelope rather than a plain-text 500.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return _error(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    Call this from ``create_app()`` after constructing the ``FastAPI`` instance.
    """
    app.add_exception_handler(NotFoundError, _handle_not_found)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, _handle_value_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(UnauthorizedError, _handle_unauthorized)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
