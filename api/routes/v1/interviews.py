"""
Interview scheduling endpoints.

Staff schedule, cancel, complete and assess interviews; candidates view
their own, confirm them and ask for another time.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_services
from api.schemas.common import Envelope, ok
from api.schemas.interviews import (
    CancelRequest,
    CompleteRequest,
    CreateInterviewRequest,
    FeedbackRequest,
    RescheduleRequest,
)
from api.services import Services
from core.identity import Caller
from core.middleware.authorization import Operation, require_operation

router = APIRouter(prefix="/interviews", tags=["interviews"])


@router.get("/my-interviews", response_model=Envelope, summary="My Interviews")
async def get_my_interviews(
    caller: Caller = Depends(require_operation(Operation.VIEW_OWN_INTERVIEWS)),
    services: Services = Depends(get_services),
):
    interviews = await services.interviews.my_interviews(caller)
    return ok([interview.to_dict() for interview in interviews])


@router.get("/upcoming", response_model=Envelope, summary="Upcoming Interviews")
async def get_upcoming_interviews(
    caller: Caller = Depends(require_operation(Operation.VIEW_OWN_INTERVIEWS)),
    services: Services = Depends(get_services),
):
    interviews = await services.interviews.upcoming(caller)
    return ok([interview.to_dict() for interview in interviews])


@router.get("/past", response_model=Envelope, summary="Past Interviews")
async def get_past_interviews(
    caller: Caller = Depends(require_operation(Operation.VIEW_OWN_INTERVIEWS)),
    services: Services = Depends(get_services),
):
    interviews = await services.interviews.past(caller)
    return ok([interview.to_dict() for interview in interviews])


@router.get("/next", response_model=Envelope, summary="Next Interview")
async def get_next_interview(
    caller: Caller = Depends(require_operation(Operation.VIEW_OWN_INTERVIEWS)),
    services: Services = Depends(get_services),
):
    interview = await services.interviews.next_interview(caller)
    return ok(interview.to_dict() if interview else None)


@router.get("/statistics", response_model=Envelope, summary="Interview Statistics")
async def get_interview_statistics(
    caller: Caller = Depends(require_operation(Operation.VIEW_OWN_INTERVIEWS)),
    services: Services = Depends(get_services),
):
    return ok(await services.interviews.statistics(caller))


@router.get(
    "/schedule/{application_id}",
    response_model=Envelope,
    summary="Application Interview Schedule",
    description="Interviews of an application grouped by day. Staff or the owning candidate.",
)
async def get_schedule(
    application_id: int = Path(..., description="Application ID"),
    caller: Caller = Depends(require_operation(Operation.VIEW_SCHEDULE)),
    services: Services = Depends(get_services),
):
    grouped = await services.interviews.schedule(caller, application_id)
    return ok(
        {day: [interview.to_dict() for interview in interviews] for day, interviews in grouped.items()}
    )


@router.get(
    "",
    response_model=Envelope,
    summary="List Interviews",
    description="Filtered interviews, newest first, at most 100. Staff only.",
)
async def list_interviews(
    status: Optional[str] = Query(None, description="Filter by status"),
    date: Optional[str] = Query(None, description="Filter by UTC day, YYYY-MM-DD"),
    candidate_id: Optional[str] = Query(None, description="Filter by candidate"),
    caller: Caller = Depends(require_operation(Operation.LIST_INTERVIEWS)),
    services: Services = Depends(get_services),
):
    interviews = await services.interviews.list_interviews(
        caller, status=status, day=date, candidate_id=candidate_id
    )
    return ok([interview.to_dict() for interview in interviews])


@router.post("", response_model=Envelope, status_code=201, summary="Create Interview")
async def create_interview(
    body: CreateInterviewRequest,
    caller: Caller = Depends(require_operation(Operation.CREATE_INTERVIEW)),
    services: Services = Depends(get_services),
):
    """Schedule an interview for an application. Staff only."""
    interview = await services.interviews.create(
        caller,
        application_id=body.application_id,
        candidate_id=body.candidate_id,
        interview_at=body.interview_at,
        location=body.location,
        duration_minutes=body.duration_minutes,
        meeting_link=body.meeting_link,
        office_address=body.office_address,
        phone_number=body.phone_number,
        meeting_password=body.meeting_password,
        interviewers=body.interviewers,
        interview_type=body.interview_type,
        notes=body.notes,
    )
    return ok(interview.to_dict())


@router.get("/{interview_id}", response_model=Envelope, summary="Get Interview")
async def get_interview(
    interview_id: int = Path(..., description="Interview ID"),
    caller: Caller = Depends(require_operation(Operation.VIEW_INTERVIEW)),
    services: Services = Depends(get_services),
):
    interview = await services.interviews.get_interview(caller, interview_id)
    return ok(interview.to_dict())


@router.put("/{interview_id}/confirm", response_model=Envelope, summary="Confirm Interview")
async def confirm_interview(
    interview_id: int = Path(..., description="Interview ID"),
    caller: Caller = Depends(require_operation(Operation.CONFIRM_INTERVIEW)),
    services: Services = Depends(get_services),
):
    interview = await services.interviews.confirm(caller, interview_id)
    return ok(interview.to_dict())


@router.post(
    "/{interview_id}/reschedule-request",
    response_model=Envelope,
    summary="Request Reschedule",
    description="Candidate asks for another time, more than 24 hours ahead.",
)
async def request_reschedule(
    body: RescheduleRequest,
    interview_id: int = Path(..., description="Interview ID"),
    caller: Caller = Depends(require_operation(Operation.REQUEST_RESCHEDULE)),
    services: Services = Depends(get_services),
):
    interview = await services.interviews.request_reschedule(caller, interview_id, body.reason)
    return ok(interview.to_dict())


@router.put("/{interview_id}/cancel", response_model=Envelope, summary="Cancel Interview")
async def cancel_interview(
    body: CancelRequest,
    interview_id: int = Path(..., description="Interview ID"),
    caller: Caller = Depends(require_operation(Operation.CANCEL_INTERVIEW)),
    services: Services = Depends(get_services),
):
    interview = await services.interviews.cancel(caller, interview_id, body.reason)
    return ok(interview.to_dict())


@router.put("/{interview_id}/complete", response_model=Envelope, summary="Complete Interview")
async def complete_interview(
    body: CompleteRequest,
    interview_id: int = Path(..., description="Interview ID"),
    caller: Caller = Depends(require_operation(Operation.COMPLETE_INTERVIEW)),
    services: Services = Depends(get_services),
):
    interview = await services.interviews.complete(
        caller, interview_id, feedback=body.feedback, score=body.score
    )
    return ok(interview.to_dict())


@router.put("/{interview_id}/feedback", response_model=Envelope, summary="Add Feedback")
async def add_interview_feedback(
    body: FeedbackRequest,
    interview_id: int = Path(..., description="Interview ID"),
    caller: Caller = Depends(require_operation(Operation.ADD_INTERVIEW_FEEDBACK)),
    services: Services = Depends(get_services),
):
    interview = await services.interviews.add_feedback(
        caller, interview_id, body.feedback, score=body.score
    )
    return ok(interview.to_dict())


@router.put("/{interview_id}/no-show", response_model=Envelope, summary="Mark No-Show")
async def mark_no_show(
    interview_id: int = Path(..., description="Interview ID"),
    caller: Caller = Depends(require_operation(Operation.MARK_NO_SHOW)),
    services: Services = Depends(get_services),
):
    interview = await services.interviews.mark_no_show(caller, interview_id)
    return ok(interview.to_dict())
