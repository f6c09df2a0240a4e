"""
Interview scheduling service.

Owns the interview state machine. ``scheduled`` and ``confirmed`` are open;
``completed``, ``cancelled``, ``rescheduled`` and ``no-show`` are final and
the record is immutable afterwards. Time-based eligibility is measured in
hours until the interview against the injected clock.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.services.base import WorkflowService
from core.events import (
    InterviewCancelled,
    InterviewCompleted,
    InterviewConfirmed,
    InterviewCreated,
    InterviewNoShow,
    InterviewRescheduleRequested,
)
from core.exceptions import InvalidTransition, NotFound, ValidationError
from core.identity import Caller
from core.middleware.authorization import Operation
from core.utils.datetime import day_key, ensure_utc, hours_between
from database.models.interviews import (
    LOCATION_FIELDS,
    OPEN_INTERVIEW_STATUSES,
    Interview,
    InterviewLocation,
    InterviewStatus,
    InterviewType,
)
from database.stores.applications import ApplicationStore
from database.stores.interviews import InterviewStore

logger = logging.getLogger(__name__)

# Eligibility windows, in hours before the interview
RESCHEDULE_WINDOW_HOURS = 24
CONFIRM_WINDOW_HOURS = 0
CREATE_WINDOW_HOURS = 0

MIN_RESCHEDULE_REASON_LENGTH = 10

DEFAULT_DURATION_MINUTES = 60
MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 480

MIN_SCORE = 0
MAX_SCORE = 100


def hours_until(interview_at: datetime, now: datetime) -> float:
    return hours_between(now, interview_at)


def _parse_enum(enum_cls, value: Any, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {field} '{value}'", field=field)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def validate_location(location: InterviewLocation, fields: dict[str, Optional[str]]) -> dict[str, str]:
    """
    Check that exactly the contact field ``location`` needs is filled.

    Args:
        location: Interview location
        fields: meeting_link, office_address, phone_number and meeting_password

    Returns:
        Cleaned contact fields to store

    Raises:
        ValidationError: If the required field is missing or another location's field is set
    """
    required = LOCATION_FIELDS[location]
    if _blank(fields.get(required)):
        raise ValidationError(
            f"{required.replace('_', ' ').capitalize()} is required for {location.value} interviews",
            field=required,
        )

    for other in LOCATION_FIELDS.values():
        if other != required and not _blank(fields.get(other)):
            raise ValidationError(
                f"{other.replace('_', ' ').capitalize()} is not allowed for {location.value} interviews",
                field=other,
            )

    cleaned = {required: fields[required].strip()}
    password = fields.get("meeting_password")
    if not _blank(password):
        if location != InterviewLocation.ONLINE:
            raise ValidationError(
                "Meeting password is only allowed for online interviews",
                field="meeting_password",
            )
        cleaned["meeting_password"] = password.strip()
    return cleaned


def validate_score(score: Optional[int]) -> None:
    if score is None:
        return
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(
            f"Score must be an integer between {MIN_SCORE} and {MAX_SCORE}", field="score"
        )


def group_by_day(interviews: Iterable[Interview]) -> dict[str, list[Interview]]:
    """Group interviews by UTC calendar day (YYYY-MM-DD), keeping input order."""
    grouped: dict[str, list[Interview]] = OrderedDict()
    for interview in interviews:
        grouped.setdefault(day_key(interview.interview_at), []).append(interview)
    return grouped


def _day_bounds(day: Any) -> tuple[datetime, datetime]:
    if isinstance(day, str):
        try:
            day = date.fromisoformat(day)
        except ValueError:
            raise ValidationError(f"Invalid date '{day}', expected YYYY-MM-DD", field="date")
    if isinstance(day, datetime):
        day = ensure_utc(day).date()
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class InterviewSchedulingService(WorkflowService):
    """Staff scheduling and candidate responses for interviews."""

    async def _load_owned(
        self, session: AsyncSession, caller: Caller, interview_id: int, operation: Operation
    ) -> tuple[InterviewStore, Interview]:
        store = InterviewStore(session)
        interview = await store.get(interview_id)
        if interview is None:
            raise NotFound("Interview", interview_id)
        self.gate.authorize(caller, operation, owner_id=interview.candidate_id)
        return store, interview

    async def create(
        self,
        caller: Caller,
        application_id: int,
        candidate_id: str,
        interview_at: datetime,
        location: Any,
        duration_minutes: int = DEFAULT_DURATION_MINUTES,
        meeting_link: Optional[str] = None,
        office_address: Optional[str] = None,
        phone_number: Optional[str] = None,
        meeting_password: Optional[str] = None,
        interviewers: Optional[list[str]] = None,
        interview_type: Any = InterviewType.HR,
        notes: Optional[str] = None,
    ) -> Interview:
        """
        Schedule an interview for a non-terminal application.

        Raises:
            ValidationError: On bad location fields, duration, type or candidate mismatch
            NotFound: If the application does not exist
            InvalidTransition: If the application is terminal or the time is not in the future
        """
        self.gate.authorize(caller, Operation.CREATE_INTERVIEW)

        if location is None:
            raise ValidationError("Location is required", field="location")
        location = _parse_enum(InterviewLocation, location, "location")
        interview_type = _parse_enum(InterviewType, interview_type or InterviewType.HR, "interview_type")
        contact = validate_location(
            location,
            {
                "meeting_link": meeting_link,
                "office_address": office_address,
                "phone_number": phone_number,
                "meeting_password": meeting_password,
            },
        )
        if not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES:
            raise ValidationError(
                f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes",
                field="duration_minutes",
            )
        if not isinstance(interview_at, datetime):
            raise ValidationError("Interview time is required", field="interview_at")
        interview_at = ensure_utc(interview_at)

        async def attempt(session: AsyncSession):
            application = await ApplicationStore(session).get(application_id)
            if application is None:
                raise NotFound("Application", application_id)
            if application.status.is_terminal:
                raise InvalidTransition(
                    application.status.value,
                    InterviewStatus.SCHEDULED.value,
                    f"Cannot schedule an interview for a {application.status.value} application",
                )
            if application.candidate_id != str(candidate_id):
                raise ValidationError(
                    "Candidate does not match the application", field="candidate_id"
                )

            now = self.clock.now()
            if hours_until(interview_at, now) <= CREATE_WINDOW_HOURS:
                raise InvalidTransition(
                    "new",
                    InterviewStatus.SCHEDULED.value,
                    "Interview time must be in the future",
                )

            interview = Interview(
                application_id=application.id,
                candidate_id=application.candidate_id,
                interview_at=interview_at,
                duration_minutes=duration_minutes,
                location=location,
                interview_type=interview_type,
                interviewers=list(interviewers or []),
                notes=notes,
                status=InterviewStatus.SCHEDULED,
                scheduled_by=caller.id,
                created_at=now,
                updated_at=now,
                **contact,
            )
            await InterviewStore(session).add(interview)
            return interview, InterviewCreated(
                interview_id=interview.id,
                application_id=interview.application_id,
                candidate_id=interview.candidate_id,
                interview_at=interview.interview_at,
                location=location.value,
                interviewers=list(interview.interviewers or []),
            )

        return await self._write(f"create interview for application {application_id}", attempt)

    async def confirm(self, caller: Caller, interview_id: int) -> Interview:
        """
        Candidate confirms a scheduled, still-future interview.

        Raises:
            Forbidden: If the caller does not own the interview
            InvalidTransition: If not scheduled or the time has passed
        """
        self.gate.authorize(caller, Operation.CONFIRM_INTERVIEW)

        async def attempt(session: AsyncSession):
            store, interview = await self._load_owned(
                session, caller, interview_id, Operation.CONFIRM_INTERVIEW
            )
            target = InterviewStatus.CONFIRMED.value
            if interview.status != InterviewStatus.SCHEDULED:
                raise InvalidTransition(interview.status.value, target)

            now = self.clock.now()
            if hours_until(interview.interview_at, now) <= CONFIRM_WINDOW_HOURS:
                raise InvalidTransition(
                    interview.status.value, target, "Interview time has already passed"
                )

            interview.status = InterviewStatus.CONFIRMED
            interview.updated_at = now
            await store.save(interview)
            return interview, InterviewConfirmed(
                interview_id=interview.id,
                application_id=interview.application_id,
                candidate_id=interview.candidate_id,
            )

        return await self._write(f"confirm interview {interview_id}", attempt)

    async def request_reschedule(self, caller: Caller, interview_id: int, reason: str) -> Interview:
        """
        Candidate asks for a different time.

        The reason is checked before the window. The interview is closed as
        ``rescheduled``; staff create the replacement.

        Raises:
            Forbidden: If the caller does not own the interview
            ValidationError: If the reason is shorter than the minimum
            InvalidTransition: If not open or within the reschedule window
        """
        self.gate.authorize(caller, Operation.REQUEST_RESCHEDULE)

        async def attempt(session: AsyncSession):
            store, interview = await self._load_owned(
                session, caller, interview_id, Operation.REQUEST_RESCHEDULE
            )
            cleaned = (reason or "").strip()
            if len(cleaned) < MIN_RESCHEDULE_REASON_LENGTH:
                raise ValidationError(
                    f"Please provide a reason of at least {MIN_RESCHEDULE_REASON_LENGTH} characters",
                    field="reason",
                )

            target = InterviewStatus.RESCHEDULED.value
            if interview.status not in OPEN_INTERVIEW_STATUSES:
                raise InvalidTransition(interview.status.value, target)

            now = self.clock.now()
            if hours_until(interview.interview_at, now) <= RESCHEDULE_WINDOW_HOURS:
                raise InvalidTransition(
                    interview.status.value,
                    target,
                    f"Reschedule requests must be made more than {RESCHEDULE_WINDOW_HOURS} "
                    "hours before the interview",
                )

            interview.status = InterviewStatus.RESCHEDULED
            interview.reschedule_reason = cleaned
            interview.reschedule_requested_at = now
            interview.reschedule_requested_by = caller.id
            interview.updated_at = now
            await store.save(interview)
            return interview, InterviewRescheduleRequested(
                interview_id=interview.id,
                application_id=interview.application_id,
                candidate_id=interview.candidate_id,
                reason=cleaned,
            )

        return await self._write(f"reschedule request for interview {interview_id}", attempt)

    async def cancel(self, caller: Caller, interview_id: int, reason: str) -> Interview:
        """
        Staff cancel an open interview.

        Raises:
            ValidationError: If no reason is given
            InvalidTransition: If the interview is already final
        """
        self.gate.authorize(caller, Operation.CANCEL_INTERVIEW)
        if _blank(reason):
            raise ValidationError("Cancellation reason is required", field="reason")
        cleaned = reason.strip()

        async def attempt(session: AsyncSession):
            store, interview = await self._load_owned(
                session, caller, interview_id, Operation.CANCEL_INTERVIEW
            )
            if interview.status.is_terminal:
                raise InvalidTransition(interview.status.value, InterviewStatus.CANCELLED.value)

            now = self.clock.now()
            interview.status = InterviewStatus.CANCELLED
            interview.cancelled_reason = cleaned
            interview.cancelled_at = now
            interview.cancelled_by = caller.id
            interview.updated_at = now
            await store.save(interview)
            return interview, InterviewCancelled(
                interview_id=interview.id,
                application_id=interview.application_id,
                candidate_id=interview.candidate_id,
                reason=cleaned,
                cancelled_by=caller.id,
            )

        return await self._write(f"cancel interview {interview_id}", attempt)

    async def complete(
        self,
        caller: Caller,
        interview_id: int,
        feedback: Optional[str] = None,
        score: Optional[int] = None,
    ) -> Interview:
        """
        Staff mark an open interview completed, optionally with feedback and score.

        Raises:
            ValidationError: If the score is outside 0..100
            InvalidTransition: If the interview is already final
        """
        self.gate.authorize(caller, Operation.COMPLETE_INTERVIEW)
        validate_score(score)

        async def attempt(session: AsyncSession):
            store, interview = await self._load_owned(
                session, caller, interview_id, Operation.COMPLETE_INTERVIEW
            )
            if interview.status not in OPEN_INTERVIEW_STATUSES:
                raise InvalidTransition(interview.status.value, InterviewStatus.COMPLETED.value)

            now = self.clock.now()
            interview.status = InterviewStatus.COMPLETED
            interview.completed_at = now
            if feedback is not None:
                interview.feedback = feedback
            if score is not None:
                interview.score = score
            interview.updated_at = now
            await store.save(interview)
            return interview, InterviewCompleted(
                interview_id=interview.id,
                application_id=interview.application_id,
                candidate_id=interview.candidate_id,
                score=interview.score,
            )

        return await self._write(f"complete interview {interview_id}", attempt)

    async def add_feedback(
        self,
        caller: Caller,
        interview_id: int,
        feedback: str,
        score: Optional[int] = None,
    ) -> Interview:
        """Attach feedback (and optionally a score) to an open interview without closing it."""
        self.gate.authorize(caller, Operation.ADD_INTERVIEW_FEEDBACK)
        if _blank(feedback):
            raise ValidationError("Feedback is required", field="feedback")
        validate_score(score)

        async def attempt(session: AsyncSession):
            store, interview = await self._load_owned(
                session, caller, interview_id, Operation.ADD_INTERVIEW_FEEDBACK
            )
            if interview.status.is_terminal:
                raise InvalidTransition(
                    interview.status.value,
                    interview.status.value,
                    f"Interview is {interview.status.value} and can no longer be changed",
                )

            interview.feedback = feedback
            if score is not None:
                interview.score = score
            interview.updated_at = self.clock.now()
            await store.save(interview)
            return interview, None

        return await self._write(f"feedback on interview {interview_id}", attempt)

    async def mark_no_show(self, caller: Caller, interview_id: int) -> Interview:
        """
        Staff record that the candidate did not attend.

        Raises:
            InvalidTransition: If the interview is final or has not started yet
        """
        self.gate.authorize(caller, Operation.MARK_NO_SHOW)

        async def attempt(session: AsyncSession):
            store, interview = await self._load_owned(
                session, caller, interview_id, Operation.MARK_NO_SHOW
            )
            target = InterviewStatus.NO_SHOW.value
            if interview.status not in OPEN_INTERVIEW_STATUSES:
                raise InvalidTransition(interview.status.value, target)

            now = self.clock.now()
            if interview.interview_at > now:
                raise InvalidTransition(
                    interview.status.value, target, "Interview has not started yet"
                )

            interview.status = InterviewStatus.NO_SHOW
            interview.updated_at = now
            await store.save(interview)
            return interview, InterviewNoShow(
                interview_id=interview.id,
                application_id=interview.application_id,
                candidate_id=interview.candidate_id,
            )

        return await self._write(f"no-show for interview {interview_id}", attempt)

    # Reads

    async def my_interviews(self, caller: Caller) -> list[Interview]:
        self.gate.authorize(caller, Operation.VIEW_OWN_INTERVIEWS)
        return await self._read(lambda session: InterviewStore(session).for_candidate(caller.id))

    async def upcoming(self, caller: Caller) -> list[Interview]:
        """Open interviews from now on, earliest first."""
        self.gate.authorize(caller, Operation.VIEW_OWN_INTERVIEWS)
        now = self.clock.now()
        return await self._read(
            lambda session: InterviewStore(session).upcoming_for_candidate(caller.id, now)
        )

    async def past(self, caller: Caller) -> list[Interview]:
        """Interviews whose time has passed or that are final, latest first."""
        self.gate.authorize(caller, Operation.VIEW_OWN_INTERVIEWS)
        now = self.clock.now()
        return await self._read(
            lambda session: InterviewStore(session).past_for_candidate(caller.id, now)
        )

    async def next_interview(self, caller: Caller) -> Optional[Interview]:
        self.gate.authorize(caller, Operation.VIEW_OWN_INTERVIEWS)
        now = self.clock.now()
        upcoming = await self._read(
            lambda session: InterviewStore(session).upcoming_for_candidate(caller.id, now, limit=1)
        )
        return upcoming[0] if upcoming else None

    async def statistics(self, caller: Caller) -> dict[str, int]:
        """Counts of the caller's interviews: total, upcoming, completed, cancelled."""
        self.gate.authorize(caller, Operation.VIEW_OWN_INTERVIEWS)
        now = self.clock.now()
        interviews = await self._read(
            lambda session: InterviewStore(session).for_candidate(caller.id)
        )
        return {
            "total": len(interviews),
            "upcoming": sum(
                1 for i in interviews
                if i.status in OPEN_INTERVIEW_STATUSES and i.interview_at >= now
            ),
            "completed": sum(1 for i in interviews if i.status == InterviewStatus.COMPLETED),
            "cancelled": sum(1 for i in interviews if i.status == InterviewStatus.CANCELLED),
        }

    async def schedule(self, caller: Caller, application_id: int) -> dict[str, list[Interview]]:
        """
        Interviews of one application grouped by UTC day.

        Staff see any application; candidates only their own.
        """
        self.gate.authorize(caller, Operation.VIEW_SCHEDULE)

        async def reader(session: AsyncSession):
            application = await ApplicationStore(session).get(application_id)
            if application is None:
                raise NotFound("Application", application_id)
            self.gate.authorize(caller, Operation.VIEW_SCHEDULE, owner_id=application.candidate_id)
            return await InterviewStore(session).for_application(application_id)

        return group_by_day(await self._read(reader))

    async def get_interview(self, caller: Caller, interview_id: int) -> Interview:
        self.gate.authorize(caller, Operation.VIEW_INTERVIEW)

        async def reader(session: AsyncSession):
            _, interview = await self._load_owned(
                session, caller, interview_id, Operation.VIEW_INTERVIEW
            )
            return interview

        return await self._read(reader)

    async def list_interviews(
        self,
        caller: Caller,
        status: Optional[Any] = None,
        day: Optional[Any] = None,
        candidate_id: Optional[str] = None,
    ) -> list[Interview]:
        """Staff listing, newest first, capped at 100 rows."""
        self.gate.authorize(caller, Operation.LIST_INTERVIEWS)
        status_filter = _parse_enum(InterviewStatus, status, "status") if status else None
        starts_from, starts_before = _day_bounds(day) if day else (None, None)

        return await self._read(
            lambda session: InterviewStore(session).list_recent(
                status=status_filter,
                starts_from=starts_from,
                starts_before=starts_before,
                candidate_id=candidate_id,
            )
        )
