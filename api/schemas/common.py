"""Common Pydantic schemas shared across the API."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    page_size: int = Field(default=20, ge=1, le=100, description="Items per page")


class Envelope(BaseModel):
    """Response envelope used by every endpoint."""

    success: bool = Field(description="Whether the operation succeeded")
    data: Optional[Any] = Field(None, description="Operation result")
    error: Optional[str] = Field(None, description="Display message when success is false")
    errorKind: Optional[str] = Field(None, description="Stable machine-readable error kind")
    details: Optional[dict[str, Any]] = Field(None, description="Extra error context")


def ok(data: Any = None) -> dict[str, Any]:
    """Wrap a result in the success envelope."""
    return {"success": True, "data": data}
