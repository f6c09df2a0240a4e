"""
Error handling middleware with security-compliant error sanitization.

Every failure leaves the service in the response envelope
``{"success": false, "error": <display string>, "errorKind": <stable kind>}``
so clients can branch on ``errorKind`` and show ``error``.
"""

import logging
import re
import traceback
from typing import Any, Callable

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import StorageUnavailable, WorkflowError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'\b\d{3}-\d{2}-\d{4}\b'),  # SSN
    re.compile(r'\b\d{16}\b'),  # Credit card
]

HTTP_ERROR_KINDS = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_details: bool = False) -> dict[str, Any]:
    """
    Extract safe error details without exposing sensitive information.

    Args:
        exc: The exception to extract details from
        include_details: Whether to include the stack trace (only in dev)

    Returns:
        Dictionary with safe error details
    """
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }

    if include_details:
        details["traceback"] = traceback.format_exc()

    return details


def error_envelope(
    message: str,
    error_kind: str,
    details: Any = None,
) -> dict[str, Any]:
    """Build the failure envelope."""
    payload: dict[str, Any] = {
        "success": False,
        "error": sanitize_error_message(message),
        "errorKind": error_kind,
    }
    if details:
        payload["details"] = details
    return payload


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Format request validation errors without echoing sensitive input."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        })
    return errors


def build_error_response(
    exc: Exception,
    path: str,
    method: str,
    debug: bool = False,
) -> JSONResponse:
    """
    Map an exception to an enveloped JSON response.

    Args:
        exc: The exception to handle
        path: Request path, for logging
        method: Request method, for logging
        debug: Whether to include internal details

    Returns:
        JSONResponse with the failure envelope
    """
    if isinstance(exc, (OperationalError, DBAPIError)) and not isinstance(exc, IntegrityError):
        logger.error(f"Record store error: {method} {path}", exc_info=True)
        exc = StorageUnavailable()

    if isinstance(exc, WorkflowError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"{exc.error_kind}: {method} {path} - {sanitize_error_message(exc.message)}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    if isinstance(exc, StarletteHTTPException):
        message = sanitize_error_message(str(exc.detail))
        logger.warning(
            f"HTTP exception: {method} {path} - Status: {exc.status_code}, Message: {message}"
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(
                message, HTTP_ERROR_KINDS.get(exc.status_code, "http_error")
            ),
            headers=getattr(exc, "headers", None),
        )

    if isinstance(exc, RequestValidationError):
        errors = format_validation_errors(exc)
        logger.warning(f"Validation error: {method} {path} - Errors: {errors}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_envelope("Request validation failed", "validation_error", errors),
        )

    if isinstance(exc, IntegrityError):
        logger.error(f"Database integrity error: {method} {path}", exc_info=not debug)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_envelope(
                "Database integrity constraint violated",
                "integrity_error",
                get_safe_error_details(exc, include_details=True) if debug else None,
            ),
        )

    if isinstance(exc, SQLAlchemyError):
        logger.error(f"SQLAlchemy error: {method} {path}", exc_info=not debug)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_envelope(
                "A database error occurred",
                "database_error",
                get_safe_error_details(exc, include_details=True) if debug else None,
            ),
        )

    logger.error(
        f"Unhandled exception: {method} {path} - "
        f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(
            "An unexpected error occurred",
            "internal_error",
            get_safe_error_details(exc, include_details=True) if debug else None,
        ),
    )


class ErrorHandlingMiddleware:
    """
    Outermost error boundary.

    Catches anything that escapes the route-level exception handlers and
    renders it in the failure envelope.
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include detailed error information
        """
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = build_error_response(
                exc,
                scope.get("path", "unknown"),
                scope.get("method", "unknown"),
                self.debug,
            )
            await response(scope, receive, send)


def setup_error_handlers(app, debug: bool = False):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Whether to include detailed error information
    """

    async def handle(request: Request, exc: Exception):
        return build_error_response(exc, str(request.url.path), request.method, debug)

    app.add_exception_handler(WorkflowError, handle)
    app.add_exception_handler(StarletteHTTPException, handle)
    app.add_exception_handler(RequestValidationError, handle)
    app.add_exception_handler(SQLAlchemyError, handle)
