"""
Interview Models

Interviews scheduled against a membership application. The meeting time is a
single UTC instant; location-specific contact details live in their own
columns and only the one matching ``location`` is populated.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.utils.datetime import isoformat_or_none
from database.engine import Base
from database.types import UTCDateTime


# ==================== Interview Enums ===================== #
class InterviewStatus(str, PyEnum):
    """Status of an interview."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_SHOW = "no-show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_INTERVIEW_STATUSES


TERMINAL_INTERVIEW_STATUSES = frozenset(
    {
        InterviewStatus.COMPLETED,
        InterviewStatus.CANCELLED,
        InterviewStatus.RESCHEDULED,
        InterviewStatus.NO_SHOW,
    }
)

OPEN_INTERVIEW_STATUSES = frozenset(
    {InterviewStatus.SCHEDULED, InterviewStatus.CONFIRMED}
)


class InterviewLocation(str, PyEnum):
    """Where the interview takes place."""

    ONLINE = "online"
    OFFICE = "office"
    PHONE = "phone"


# Column that must be filled for each location
LOCATION_FIELDS: dict[InterviewLocation, str] = {
    InterviewLocation.ONLINE: "meeting_link",
    InterviewLocation.OFFICE: "office_address",
    InterviewLocation.PHONE: "phone_number",
}


class InterviewType(str, PyEnum):
    """Types of interviews."""

    TECHNICAL = "technical"
    HR = "hr"
    FINAL = "final"
    PANEL = "panel"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Interview(Base):
    """Scheduled interview for one application and one candidate."""

    __tablename__ = "interviews"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    # References
    application_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    candidate_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Interview details
    interview_type: Mapped[InterviewType] = mapped_column(
        SQLEnum(InterviewType, native_enum=False, length=50, values_callable=_enum_values),
        nullable=False,
        default=InterviewType.HR,
    )
    status: Mapped[InterviewStatus] = mapped_column(
        SQLEnum(InterviewStatus, native_enum=False, length=50, values_callable=_enum_values),
        nullable=False,
        default=InterviewStatus.SCHEDULED,
        index=True,
    )
    interview_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)

    # Location
    location: Mapped[InterviewLocation] = mapped_column(
        SQLEnum(InterviewLocation, native_enum=False, length=20, values_callable=_enum_values),
        nullable=False,
    )
    meeting_link: Mapped[str | None] = mapped_column(String(1000))
    meeting_password: Mapped[str | None] = mapped_column(String(255))
    office_address: Mapped[str | None] = mapped_column(String(500))
    phone_number: Mapped[str | None] = mapped_column(String(50))

    interviewers: Mapped[list[str] | None] = mapped_column(JSON)  # Staff ids, informational
    notes: Mapped[str | None] = mapped_column(Text)

    # Assessment
    feedback: Mapped[str | None] = mapped_column(Text)
    score: Mapped[int | None] = mapped_column(Integer)  # 0-100

    # Reschedule / cancel audit
    reschedule_reason: Mapped[str | None] = mapped_column(Text)
    reschedule_requested_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    reschedule_requested_by: Mapped[str | None] = mapped_column(String(100))
    cancelled_reason: Mapped[str | None] = mapped_column(Text)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    cancelled_by: Mapped[str | None] = mapped_column(String(100))
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    scheduled_by: Mapped[str | None] = mapped_column(String(100))

    # Optimistic concurrency token
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_interviews_candidate_time", "candidate_id", "interview_at"),
    )

    def __repr__(self) -> str:
        return f"<Interview {self.id} application={self.application_id} status={self.status.value}>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "candidate_id": self.candidate_id,
            "interview_type": self.interview_type.value,
            "status": self.status.value,
            "interview_at": isoformat_or_none(self.interview_at),
            "duration_minutes": self.duration_minutes,
            "location": self.location.value,
            "meeting_link": self.meeting_link,
            "meeting_password": self.meeting_password,
            "office_address": self.office_address,
            "phone_number": self.phone_number,
            "interviewers": self.interviewers or [],
            "notes": self.notes,
            "feedback": self.feedback,
            "score": self.score,
            "reschedule_reason": self.reschedule_reason,
            "reschedule_requested_at": isoformat_or_none(self.reschedule_requested_at),
            "reschedule_requested_by": self.reschedule_requested_by,
            "cancelled_reason": self.cancelled_reason,
            "cancelled_at": isoformat_or_none(self.cancelled_at),
            "cancelled_by": self.cancelled_by,
            "completed_at": isoformat_or_none(self.completed_at),
            "scheduled_by": self.scheduled_by,
            "version": self.version,
            "created_at": isoformat_or_none(self.created_at),
            "updated_at": isoformat_or_none(self.updated_at),
        }
