"""
Application Models

A candidate's membership application: free-form sections, opaque document
references and the review state machine's status plus its audit fields.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Enum as SQLEnum,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.utils.datetime import isoformat_or_none
from database.engine import Base
from database.types import UTCDateTime


# ==================== Application Enums ===================== #
class ApplicationStatus(str, PyEnum):
    """Application review status."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_APPLICATION_STATUSES


TERMINAL_APPLICATION_STATUSES = frozenset(
    {ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN}
)

ACTIVE_APPLICATION_STATUSES = frozenset(
    status for status in ApplicationStatus if status not in TERMINAL_APPLICATION_STATUSES
)

# Staff review may only move an application into one of these
REVIEW_TARGET_STATUSES = frozenset(
    {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED}
)

# Sections a candidate fills in while drafting
APPLICATION_SECTIONS = (
    "personal_info",
    "education_info",
    "technical_info",
    "motivation",
    "documents",
)

_ACTIVE_STATUS_SQL = ", ".join(
    f"'{status.value}'" for status in ApplicationStatus if status in ACTIVE_APPLICATION_STATUSES
)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Application(Base):
    """
    Membership application - one active record per candidate.

    Terminal applications (accepted, rejected, withdrawn) are kept; a
    withdrawn or rejected candidate starts over with a new row.
    """

    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    candidate_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Sections
    personal_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    education_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    technical_info: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    motivation: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    documents: Mapped[list[str] | None] = mapped_column(JSON)  # Opaque URIs

    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(
            ApplicationStatus,
            native_enum=False,
            length=50,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ApplicationStatus.DRAFT,
        index=True,
    )

    # Review
    review_notes: Mapped[str | None] = mapped_column(Text)
    reviewed_by: Mapped[str | None] = mapped_column(String(100))
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    withdrawn_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_applications_status_created", "status", "created_at"),
        # At most one non-terminal application per candidate
        Index(
            "uq_applications_active_candidate",
            "candidate_id",
            unique=True,
            sqlite_where=text(f"status IN ({_ACTIVE_STATUS_SQL})"),
            postgresql_where=text(f"status IN ({_ACTIVE_STATUS_SQL})"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Application {self.id} candidate={self.candidate_id} status={self.status.value}>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "candidate_id": self.candidate_id,
            "personal_info": self.personal_info,
            "education_info": self.education_info,
            "technical_info": self.technical_info,
            "motivation": self.motivation,
            "documents": self.documents or [],
            "status": self.status.value,
            "review_notes": self.review_notes,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": isoformat_or_none(self.reviewed_at),
            "submitted_at": isoformat_or_none(self.submitted_at),
            "withdrawn_at": isoformat_or_none(self.withdrawn_at),
            "version": self.version,
            "created_at": isoformat_or_none(self.created_at),
            "updated_at": isoformat_or_none(self.updated_at),
        }
