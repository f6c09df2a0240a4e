"""Request schemas for application endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class SaveDraftRequest(BaseModel):
    """Draft sections; omitted sections are left unchanged."""

    personal_info: Optional[dict[str, Any]] = Field(None, description="Personal details")
    education_info: Optional[dict[str, Any]] = Field(None, description="Education history")
    technical_info: Optional[dict[str, Any]] = Field(None, description="Technical background")
    motivation: Optional[dict[str, Any]] = Field(None, description="Motivation answers")
    documents: Optional[list[str]] = Field(
        None, description="Opaque URIs of uploaded documents"
    )

    def sections(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ReviewRequest(BaseModel):
    """Staff review decision."""

    status: str = Field(description="One of under_review, accepted, rejected")
    notes: Optional[str] = Field(None, max_length=5000, description="Review notes")


class BulkReviewRequest(BaseModel):
    """One staff decision applied to several applications."""

    application_ids: list[int] = Field(
        min_length=1, max_length=100, description="Applications to review"
    )
    status: str = Field(description="One of under_review, accepted, rejected")
    notes: Optional[str] = Field(
        None, max_length=5000, description="Review notes; required for rejection"
    )
