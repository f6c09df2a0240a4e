"""
Core middleware package.

This package provides:
- Error handling rendering every failure in the response envelope
- Structured logging with PII masking
- Authentication attaching the caller identity from a bearer token
- The authorization gate shared by routes and services
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
    get_logger,
)

from core.middleware.authentication import (
    AuthenticationMiddleware,
    AuthenticationError,
)

from core.middleware.authorization import (
    AUTHORIZATION_TABLE,
    AuthorizationGate,
    Caller,
    Operation,
    Role,
    Rule,
    allowed,
    get_caller,
    require_operation,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    "get_logger",
    # Authentication
    "AuthenticationMiddleware",
    "AuthenticationError",
    # Authorization
    "AUTHORIZATION_TABLE",
    "AuthorizationGate",
    "Caller",
    "Operation",
    "Role",
    "Rule",
    "allowed",
    "get_caller",
    "require_operation",
]
