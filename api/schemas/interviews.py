"""Request schemas for interview endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CreateInterviewRequest(BaseModel):
    """Staff request to schedule an interview."""

    application_id: int = Field(description="Application the interview belongs to")
    candidate_id: str = Field(description="Candidate who owns the application")
    interview_at: datetime = Field(description="Interview start as an ISO 8601 instant (UTC if naive)")
    duration_minutes: int = Field(default=60, description="Length in minutes (15-480)")
    location: Optional[str] = Field(None, description="online, office or phone")
    meeting_link: Optional[str] = Field(None, description="Required for online interviews")
    meeting_password: Optional[str] = Field(None, description="Optional, online interviews only")
    office_address: Optional[str] = Field(None, description="Required for office interviews")
    phone_number: Optional[str] = Field(None, description="Required for phone interviews")
    interviewers: list[str] = Field(default_factory=list, description="Staff ids")
    interview_type: str = Field(default="hr", description="technical, hr, final or panel")
    notes: Optional[str] = Field(None, max_length=5000)


class RescheduleRequest(BaseModel):
    reason: str = Field(description="Why the candidate needs another time")


class CancelRequest(BaseModel):
    reason: str = Field(description="Why the interview is cancelled")


class CompleteRequest(BaseModel):
    feedback: Optional[str] = Field(None, description="Interviewer feedback")
    score: Optional[int] = Field(None, description="Score from 0 to 100")


class FeedbackRequest(BaseModel):
    feedback: str = Field(description="Interviewer feedback")
    score: Optional[int] = Field(None, description="Score from 0 to 100")
