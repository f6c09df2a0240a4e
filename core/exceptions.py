"""
Workflow error taxonomy.

Every rejected operation raises one of these. Each carries a stable
machine-readable ``error_kind`` and the HTTP status the API maps it to;
the message is the display string.
"""

from typing import Any, Optional


class WorkflowError(Exception):
    """Base class for typed workflow failures."""

    error_kind: str = "workflow_error"
    status_code: int = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "errorKind": self.error_kind,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(WorkflowError):
    """Malformed or missing input; the caller can fix and resubmit."""

    error_kind = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class InvalidTransition(WorkflowError):
    """Requested state change is not legal from the current state."""

    error_kind = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str, reason: Optional[str] = None):
        message = reason or f"Cannot move from '{current}' to '{target}'"
        super().__init__(message, {"current": current, "target": target})
        self.current = current
        self.target = target


class ApplicationLocked(InvalidTransition):
    """The candidate's application can no longer be edited as a draft."""

    error_kind = "application_locked"

    def __init__(self, current: str):
        super().__init__(
            current,
            "draft",
            f"Application is '{current}' and can no longer be edited",
        )


class NotFound(WorkflowError):
    """Referenced record does not exist."""

    error_kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: Any = None):
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} {identifier} not found"
        super().__init__(message, {"resource": resource})
        self.resource = resource
        self.identifier = identifier


class Forbidden(WorkflowError):
    """Caller's role or ownership does not permit the operation."""

    error_kind = "forbidden"
    status_code = 403


class ConcurrentModification(WorkflowError):
    """Record changed between read and write; re-read and retry."""

    error_kind = "concurrent_modification"
    status_code = 409

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} {identifier} was modified concurrently, please retry",
            {"resource": resource},
        )
        self.resource = resource
        self.identifier = identifier


class StorageUnavailable(WorkflowError):
    """Underlying record store failed."""

    error_kind = "storage_unavailable"
    status_code = 503

    def __init__(self, message: str = "Record store temporarily unavailable"):
        super().__init__(message)
