"""
Tests for the interview scheduling service.

Tests:
- Creation guards (application state, location fields, future time)
- Confirm / reschedule eligibility windows
- Ownership isolation for candidate operations
- Staff transitions: cancel, complete, feedback, no-show
- Candidate and staff read projections
- End-to-end workflow scenarios
"""

import pytest
from datetime import timedelta

from core.events import InterviewCancelled, InterviewCreated, InterviewRescheduleRequested
from core.exceptions import Forbidden, InvalidTransition, NotFound, ValidationError
from database.models.applications import ApplicationStatus
from database.models.interviews import InterviewStatus
from tests.factories import scheduled_interview, submitted_application, tomorrow_at


class TestCreate:
    """Test interview creation."""

    @pytest.mark.asyncio
    async def test_create_online_interview(self, services, candidate, staff, clock, notifier):
        """Test that a valid request schedules the interview and emits an event."""
        application = await submitted_application(services, candidate)

        interview = await scheduled_interview(
            services,
            staff,
            application,
            tomorrow_at(clock),
            meeting_password="s3cret",
            interviewers=["staff-1", "staff-2"],
            interview_type="technical",
        )

        assert interview.status == InterviewStatus.SCHEDULED
        assert interview.candidate_id == candidate.id
        assert interview.duration_minutes == 60
        assert interview.meeting_link == "https://meet.example.com/abc"
        assert interview.meeting_password == "s3cret"
        assert interview.interviewers == ["staff-1", "staff-2"]
        assert interview.scheduled_by == staff.id
        created = [e for e in notifier.events if isinstance(e, InterviewCreated)]
        assert created[0].interview_id == interview.id

    @pytest.mark.asyncio
    async def test_default_type_is_hr(self, services, candidate, staff, clock):
        """Test that interviews default to the hr type."""
        application = await submitted_application(services, candidate)

        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        assert interview.interview_type.value == "hr"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("location,field,value", [
        ("online", "meeting_link", "https://x"),
        ("office", "office_address", "12 Main Street"),
        ("phone", "phone_number", "+33 1 23 45 67 89"),
    ])
    async def test_location_field_coupling(self, services, candidate, staff, clock, location, field, value):
        """Test that each location needs exactly its own contact field."""
        application = await submitted_application(services, candidate)
        base = {"meeting_link": None, "location": location}

        with pytest.raises(ValidationError) as exc_info:
            await scheduled_interview(services, staff, application, tomorrow_at(clock), **base)
        assert exc_info.value.field == field

        with pytest.raises(ValidationError):
            await scheduled_interview(
                services, staff, application, tomorrow_at(clock), **{**base, field: "   "}
            )

        interview = await scheduled_interview(
            services, staff, application, tomorrow_at(clock), **{**base, field: value}
        )
        assert getattr(interview, field) == value

    @pytest.mark.asyncio
    async def test_other_location_fields_rejected(self, services, candidate, staff, clock):
        """Test that fields belonging to another location are refused."""
        application = await submitted_application(services, candidate)

        with pytest.raises(ValidationError) as exc_info:
            await scheduled_interview(
                services, staff, application, tomorrow_at(clock), phone_number="+33 1 23 45 67 89"
            )

        assert exc_info.value.field == "phone_number"

    @pytest.mark.asyncio
    async def test_missing_or_unknown_location(self, services, candidate, staff, clock):
        """Test that location must be present and known."""
        application = await submitted_application(services, candidate)

        with pytest.raises(ValidationError):
            await scheduled_interview(services, staff, application, tomorrow_at(clock), location=None)
        with pytest.raises(ValidationError):
            await scheduled_interview(services, staff, application, tomorrow_at(clock), location="moon")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [10, 481])
    async def test_duration_bounds(self, services, candidate, staff, clock, duration):
        """Test that durations outside 15..480 minutes are refused."""
        application = await submitted_application(services, candidate)

        with pytest.raises(ValidationError):
            await scheduled_interview(
                services, staff, application, tomorrow_at(clock), duration_minutes=duration
            )

    @pytest.mark.asyncio
    async def test_time_must_be_future(self, services, candidate, staff, clock):
        """Test that an interview at or before now is an invalid transition."""
        application = await submitted_application(services, candidate)

        with pytest.raises(InvalidTransition):
            await scheduled_interview(services, staff, application, clock.now())
        with pytest.raises(InvalidTransition):
            await scheduled_interview(services, staff, application, clock.now() - timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_missing_application(self, services, candidate, staff, clock):
        """Test NotFound for an unknown application."""
        with pytest.raises(NotFound):
            await services.interviews.create(
                staff,
                application_id=404,
                candidate_id=candidate.id,
                interview_at=tomorrow_at(clock),
                location="online",
                meeting_link="https://x",
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("decision", ["accepted", "rejected"])
    async def test_terminal_application(self, services, candidate, staff, clock, decision):
        """Test that decided applications cannot get interviews."""
        application = await submitted_application(services, candidate)
        await services.applications.review(staff, application.id, decision, "Decided")

        with pytest.raises(InvalidTransition):
            await scheduled_interview(services, staff, application, tomorrow_at(clock))

    @pytest.mark.asyncio
    async def test_candidate_must_match_application(self, services, candidate, staff, clock):
        """Test that the candidate id must be the application's owner."""
        application = await submitted_application(services, candidate)

        with pytest.raises(ValidationError) as exc_info:
            await services.interviews.create(
                staff,
                application_id=application.id,
                candidate_id="someone-else",
                interview_at=tomorrow_at(clock),
                location="online",
                meeting_link="https://x",
            )

        assert exc_info.value.field == "candidate_id"

    @pytest.mark.asyncio
    async def test_candidates_cannot_create(self, services, candidate, clock):
        """Test that creation is staff-only."""
        application = await submitted_application(services, candidate)

        with pytest.raises(Forbidden):
            await scheduled_interview(services, candidate, application, tomorrow_at(clock))

    @pytest.mark.asyncio
    async def test_first_interview_marks_application(self, services, candidate, staff, clock):
        """Test that a submitted application moves to interview_scheduled."""
        application = await submitted_application(services, candidate)

        await scheduled_interview(services, staff, application, tomorrow_at(clock))
        await scheduled_interview(services, staff, application, tomorrow_at(clock, hour=14))

        current = await services.applications.get_application(staff, application.id)
        assert current.status == ApplicationStatus.INTERVIEW_SCHEDULED

    @pytest.mark.asyncio
    async def test_under_review_application_left_alone(self, services, candidate, staff, clock):
        """Test that an application under review keeps its status."""
        application = await submitted_application(services, candidate)
        await services.applications.review(staff, application.id, "under_review")

        await scheduled_interview(services, staff, application, tomorrow_at(clock))

        current = await services.applications.get_application(staff, application.id)
        assert current.status == ApplicationStatus.UNDER_REVIEW


class TestConfirm:
    """Test candidate confirmation."""

    @pytest.mark.asyncio
    async def test_confirm_future_scheduled(self, services, candidate, staff, clock):
        """Test confirm one hour ahead succeeds and is not idempotent."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(
            services, staff, application, clock.now() + timedelta(hours=1)
        )

        confirmed = await services.interviews.confirm(candidate, interview.id)
        assert confirmed.status == InterviewStatus.CONFIRMED

        with pytest.raises(InvalidTransition) as exc_info:
            await services.interviews.confirm(candidate, interview.id)
        assert exc_info.value.current == "confirmed"

    @pytest.mark.asyncio
    async def test_confirm_past_interview(self, services, candidate, staff, clock):
        """Test confirm fails once the interview time has passed."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(
            services, staff, application, clock.now() + timedelta(hours=1)
        )
        clock.advance(hours=2)

        with pytest.raises(InvalidTransition):
            await services.interviews.confirm(candidate, interview.id)

    @pytest.mark.asyncio
    async def test_confirm_by_other_candidate(self, services, candidate, other_candidate, staff, clock):
        """Test ownership isolation: another authenticated candidate is Forbidden."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        with pytest.raises(Forbidden):
            await services.interviews.confirm(other_candidate, interview.id)

        unchanged = await services.interviews.get_interview(staff, interview.id)
        assert unchanged.status == InterviewStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_staff_cannot_confirm(self, services, candidate, staff, clock):
        """Test that confirm is candidate-only."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        with pytest.raises(Forbidden):
            await services.interviews.confirm(staff, interview.id)

    @pytest.mark.asyncio
    async def test_confirm_missing_interview(self, services, candidate):
        """Test NotFound for an unknown interview."""
        with pytest.raises(NotFound):
            await services.interviews.confirm(candidate, 12345)


class TestRequestReschedule:
    """Test the reschedule window and reason rules."""

    REASON = "need to change due to exam"

    @pytest.mark.asyncio
    async def test_window_boundary(self, services, candidate, staff, clock):
        """Test 24h + 1s ahead succeeds while 24h - 1s ahead fails."""
        application = await submitted_application(services, candidate)
        interview_at = clock.now() + timedelta(days=3)
        early = await scheduled_interview(services, staff, application, interview_at)
        late = await scheduled_interview(services, staff, application, interview_at)

        clock.set(interview_at - timedelta(hours=24, seconds=1))
        rescheduled = await services.interviews.request_reschedule(candidate, early.id, self.REASON)
        assert rescheduled.status == InterviewStatus.RESCHEDULED
        assert rescheduled.reschedule_reason == self.REASON
        assert rescheduled.reschedule_requested_by == candidate.id
        assert rescheduled.reschedule_requested_at == clock.now()

        clock.set(interview_at - timedelta(hours=24) + timedelta(seconds=1))
        with pytest.raises(InvalidTransition):
            await services.interviews.request_reschedule(candidate, late.id, self.REASON)

    @pytest.mark.asyncio
    async def test_reschedule_from_confirmed(self, services, candidate, staff, clock, notifier):
        """Test that confirmed interviews may also be rescheduled."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(
            services, staff, application, clock.now() + timedelta(days=5)
        )
        await services.interviews.confirm(candidate, interview.id)

        await services.interviews.request_reschedule(candidate, interview.id, self.REASON)

        events = [e for e in notifier.events if isinstance(e, InterviewRescheduleRequested)]
        assert events[0].reason == self.REASON

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "   ", "too early", "  short  "])
    async def test_reason_too_short(self, services, candidate, staff, clock, reason):
        """Test that trimmed reasons under 10 characters are refused."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(
            services, staff, application, clock.now() + timedelta(days=5)
        )

        with pytest.raises(ValidationError) as exc_info:
            await services.interviews.request_reschedule(candidate, interview.id, reason)

        assert exc_info.value.field == "reason"

    @pytest.mark.asyncio
    async def test_reschedule_is_final(self, services, candidate, staff, clock):
        """Test that a rescheduled interview accepts no further transitions."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(
            services, staff, application, clock.now() + timedelta(days=5)
        )
        await services.interviews.request_reschedule(candidate, interview.id, self.REASON)

        with pytest.raises(InvalidTransition):
            await services.interviews.confirm(candidate, interview.id)
        with pytest.raises(InvalidTransition):
            await services.interviews.request_reschedule(candidate, interview.id, self.REASON)
        with pytest.raises(InvalidTransition):
            await services.interviews.cancel(staff, interview.id, "No longer needed")
        with pytest.raises(InvalidTransition):
            await services.interviews.add_feedback(staff, interview.id, "Late note")

    @pytest.mark.asyncio
    async def test_reschedule_by_other_candidate(self, services, candidate, other_candidate, staff, clock):
        """Test that only the owner may ask for another time."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(
            services, staff, application, clock.now() + timedelta(days=5)
        )

        with pytest.raises(Forbidden):
            await services.interviews.request_reschedule(other_candidate, interview.id, self.REASON)


class TestStaffTransitions:
    """Test cancel, complete, feedback and no-show."""

    @pytest.mark.asyncio
    async def test_cancel_records_audit(self, services, candidate, staff, clock, notifier):
        """Test that cancel stores reason, time and staff id."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        cancelled = await services.interviews.cancel(staff, interview.id, "  Panel unavailable ")

        assert cancelled.status == InterviewStatus.CANCELLED
        assert cancelled.cancelled_reason == "Panel unavailable"
        assert cancelled.cancelled_by == staff.id
        assert cancelled.cancelled_at == clock.now()
        assert any(isinstance(e, InterviewCancelled) for e in notifier.events)

    @pytest.mark.asyncio
    async def test_cancel_requires_reason(self, services, candidate, staff, clock):
        """Test that a blank reason is refused."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        with pytest.raises(ValidationError):
            await services.interviews.cancel(staff, interview.id, "  ")

    @pytest.mark.asyncio
    async def test_cancel_twice(self, services, candidate, staff, clock):
        """Test that a cancelled interview cannot be cancelled again."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))
        await services.interviews.cancel(staff, interview.id, "Panel unavailable")

        with pytest.raises(InvalidTransition):
            await services.interviews.cancel(staff, interview.id, "Panel unavailable")

    @pytest.mark.asyncio
    async def test_candidate_cannot_cancel(self, services, candidate, staff, clock):
        """Test that cancel is staff-only."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        with pytest.raises(Forbidden):
            await services.interviews.cancel(candidate, interview.id, "I changed my mind")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [-1, 101])
    async def test_complete_score_bounds(self, services, candidate, staff, clock, score):
        """Test that scores outside 0..100 are refused."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        with pytest.raises(ValidationError):
            await services.interviews.complete(staff, interview.id, score=score)

    @pytest.mark.asyncio
    async def test_feedback_before_completion(self, services, candidate, staff, clock):
        """Test that feedback can be attached without closing the interview."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        noted = await services.interviews.add_feedback(staff, interview.id, "Good start", score=70)
        assert noted.status == InterviewStatus.SCHEDULED
        assert noted.score == 70

        completed = await services.interviews.complete(staff, interview.id)
        assert completed.status == InterviewStatus.COMPLETED
        assert completed.feedback == "Good start"
        assert completed.score == 70

        with pytest.raises(InvalidTransition):
            await services.interviews.add_feedback(staff, interview.id, "Too late")

    @pytest.mark.asyncio
    async def test_no_show_only_after_start(self, services, candidate, staff, clock):
        """Test that no-show requires the interview time to have arrived."""
        application = await submitted_application(services, candidate)
        interview_at = tomorrow_at(clock)
        interview = await scheduled_interview(services, staff, application, interview_at)

        with pytest.raises(InvalidTransition):
            await services.interviews.mark_no_show(staff, interview.id)

        clock.set(interview_at)
        marked = await services.interviews.mark_no_show(staff, interview.id)
        assert marked.status == InterviewStatus.NO_SHOW
        assert marked.to_dict()["status"] == "no-show"

        with pytest.raises(InvalidTransition):
            await services.interviews.complete(staff, interview.id)


class TestReads:
    """Test candidate and staff read projections."""

    @pytest.mark.asyncio
    async def test_candidate_views(self, services, candidate, staff, clock):
        """Test my/upcoming/past/next and statistics."""
        application = await submitted_application(services, candidate)
        soon = await scheduled_interview(services, staff, application, clock.now() + timedelta(hours=3))
        later = await scheduled_interview(services, staff, application, clock.now() + timedelta(days=3))
        cancelled = await scheduled_interview(services, staff, application, clock.now() + timedelta(days=2))
        await services.interviews.cancel(staff, cancelled.id, "Duplicate booking")
        clock.advance(hours=4)

        mine = await services.interviews.my_interviews(candidate)
        assert [i.id for i in mine] == [soon.id, cancelled.id, later.id]

        upcoming = await services.interviews.upcoming(candidate)
        assert [i.id for i in upcoming] == [later.id]

        past = await services.interviews.past(candidate)
        assert [i.id for i in past] == [cancelled.id, soon.id]

        next_interview = await services.interviews.next_interview(candidate)
        assert next_interview.id == later.id

        stats = await services.interviews.statistics(candidate)
        assert stats == {"total": 3, "upcoming": 1, "completed": 0, "cancelled": 1}

    @pytest.mark.asyncio
    async def test_next_interview_none(self, services, candidate):
        """Test that a candidate with nothing booked has no next interview."""
        assert await services.interviews.next_interview(candidate) is None

    @pytest.mark.asyncio
    async def test_schedule_grouped_by_day(self, services, candidate, other_candidate, staff, clock):
        """Test day grouping and who may see an application's schedule."""
        application = await submitted_application(services, candidate)
        first_day = tomorrow_at(clock, hour=10)
        await scheduled_interview(services, staff, application, first_day)
        await scheduled_interview(services, staff, application, first_day + timedelta(hours=4))
        await scheduled_interview(services, staff, application, first_day + timedelta(days=1))

        grouped = await services.interviews.schedule(staff, application.id)
        assert list(grouped) == ["2026-10-20", "2026-10-21"]
        assert len(grouped["2026-10-20"]) == 2

        own = await services.interviews.schedule(candidate, application.id)
        assert list(own) == list(grouped)

        with pytest.raises(Forbidden):
            await services.interviews.schedule(other_candidate, application.id)

    @pytest.mark.asyncio
    async def test_get_interview_ownership(self, services, candidate, other_candidate, staff, clock):
        """Test that candidates only see their own interviews."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))

        assert (await services.interviews.get_interview(candidate, interview.id)).id == interview.id
        assert (await services.interviews.get_interview(staff, interview.id)).id == interview.id
        with pytest.raises(Forbidden):
            await services.interviews.get_interview(other_candidate, interview.id)

    @pytest.mark.asyncio
    async def test_list_interviews_filters(self, services, candidate, other_candidate, staff, clock):
        """Test staff listing filters and newest-first order."""
        first = await submitted_application(services, candidate)
        second = await submitted_application(services, other_candidate)
        a = await scheduled_interview(services, staff, first, tomorrow_at(clock))
        b = await scheduled_interview(services, staff, second, tomorrow_at(clock) + timedelta(days=1))
        await services.interviews.confirm(other_candidate, b.id)

        everything = await services.interviews.list_interviews(staff)
        assert [i.id for i in everything] == [b.id, a.id]

        confirmed = await services.interviews.list_interviews(staff, status="confirmed")
        assert [i.id for i in confirmed] == [b.id]

        on_day = await services.interviews.list_interviews(staff, day="2026-10-20")
        assert [i.id for i in on_day] == [a.id]

        by_candidate = await services.interviews.list_interviews(staff, candidate_id=other_candidate.id)
        assert [i.id for i in by_candidate] == [b.id]

        with pytest.raises(ValidationError):
            await services.interviews.list_interviews(staff, status="postponed")
        with pytest.raises(ValidationError):
            await services.interviews.list_interviews(staff, day="20/10/2026")
        with pytest.raises(Forbidden):
            await services.interviews.list_interviews(candidate)


class TestScenarios:
    """End-to-end workflow scenarios."""

    @pytest.mark.asyncio
    async def test_review_interview_complete(self, services, candidate, staff, clock):
        """Test draft, submit, review, interview, confirm and completion with score 85."""
        await services.applications.save_draft(candidate, {"personal_info": {"full_name": "Dana"}})
        application = await services.applications.submit(candidate)
        await services.applications.review(staff, application.id, "under_review")
        interview = await scheduled_interview(services, staff, application, tomorrow_at(clock))
        await services.interviews.confirm(candidate, interview.id)

        clock.advance(days=2)
        completed = await services.interviews.complete(
            staff, interview.id, feedback="Clear thinker", score=85
        )

        final_application = await services.applications.get_application(staff, application.id)
        assert final_application.status == ApplicationStatus.UNDER_REVIEW
        assert completed.status == InterviewStatus.COMPLETED
        assert completed.score == 85

    @pytest.mark.asyncio
    async def test_short_reason_then_inside_window(self, services, candidate, staff, clock):
        """Test reason validation runs before the 24h window check."""
        application = await submitted_application(services, candidate)
        interview = await scheduled_interview(
            services, staff, application, clock.now() + timedelta(hours=23)
        )

        with pytest.raises(ValidationError):
            await services.interviews.request_reschedule(candidate, interview.id, "too early")

        with pytest.raises(InvalidTransition):
            await services.interviews.request_reschedule(
                candidate, interview.id, "need to change due to exam"
            )
