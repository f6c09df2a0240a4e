"""
Membership application endpoints.

Candidates draft, submit and withdraw their own application; staff list,
review and report on all of them.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_services
from api.schemas.applications import BulkReviewRequest, ReviewRequest, SaveDraftRequest
from api.schemas.common import Envelope, PaginationParams, ok
from api.services import Services
from core.identity import Caller
from core.middleware.authorization import Operation, require_operation

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post(
    "/save",
    response_model=Envelope,
    summary="Save Draft",
    description="Create or update the caller's draft application.",
)
async def save_draft(
    body: SaveDraftRequest,
    caller: Caller = Depends(require_operation(Operation.SAVE_DRAFT)),
    services: Services = Depends(get_services),
):
    application = await services.applications.save_draft(caller, body.sections())
    return ok(application.to_dict())


@router.post(
    "/submit",
    response_model=Envelope,
    summary="Submit Application",
    description="Submit the caller's draft for review.",
)
async def submit_application(
    caller: Caller = Depends(require_operation(Operation.SUBMIT_APPLICATION)),
    services: Services = Depends(get_services),
):
    application = await services.applications.submit(caller)
    return ok(application.to_dict())


@router.post(
    "/withdraw",
    response_model=Envelope,
    summary="Withdraw Application",
    description="Withdraw the caller's application unless it was already decided.",
)
async def withdraw_application(
    caller: Caller = Depends(require_operation(Operation.WITHDRAW_APPLICATION)),
    services: Services = Depends(get_services),
):
    application = await services.applications.withdraw(caller)
    return ok(application.to_dict())


@router.get(
    "/my-application",
    response_model=Envelope,
    summary="My Application",
)
async def get_my_application(
    caller: Caller = Depends(require_operation(Operation.VIEW_OWN_APPLICATION)),
    services: Services = Depends(get_services),
):
    """Return the caller's most recent application."""
    application = await services.applications.get_my_application(caller)
    return ok(application.to_dict())


@router.get(
    "/stats",
    response_model=Envelope,
    summary="Application Statistics",
    description="Counts per status, total and acceptance rate. Staff only.",
)
async def get_application_stats(
    caller: Caller = Depends(require_operation(Operation.VIEW_APPLICATION_STATS)),
    services: Services = Depends(get_services),
):
    return ok(await services.applications.get_stats(caller))


@router.get(
    "",
    response_model=Envelope,
    summary="List Applications",
    description="Paginated applications, newest first. Staff only.",
)
async def list_applications(
    status: Optional[str] = Query(None, description="Filter by status"),
    search: Optional[str] = Query(
        None, max_length=200, description="Match candidate id, personal or education details"
    ),
    pagination: PaginationParams = Depends(),
    caller: Caller = Depends(require_operation(Operation.LIST_APPLICATIONS)),
    services: Services = Depends(get_services),
):
    page = await services.applications.list_applications(
        caller,
        status=status,
        search=search,
        page=pagination.page,
        page_size=pagination.page_size,
    )
    page["items"] = [application.to_dict() for application in page["items"]]
    return ok(page)


@router.post(
    "/bulk-review",
    response_model=Envelope,
    summary="Bulk Review Applications",
    description="Apply one review decision to several applications. Staff only.",
)
async def bulk_review_applications(
    body: BulkReviewRequest,
    caller: Caller = Depends(require_operation(Operation.REVIEW_APPLICATION)),
    services: Services = Depends(get_services),
):
    """Per-id results; one failing id does not stop the others."""
    return ok(
        await services.applications.bulk_review(
            caller, body.application_ids, body.status, body.notes
        )
    )


@router.get(
    "/candidate/{candidate_id}",
    response_model=Envelope,
    summary="Get Candidate Application",
    description="Latest application of a candidate. Staff, or the candidate themselves.",
)
async def get_candidate_application(
    candidate_id: str = Path(..., max_length=100, description="Candidate ID"),
    caller: Caller = Depends(require_operation(Operation.VIEW_CANDIDATE_APPLICATION)),
    services: Services = Depends(get_services),
):
    application = await services.applications.get_application_for_candidate(
        caller, candidate_id
    )
    return ok(application.to_dict())


@router.get(
    "/{application_id}",
    response_model=Envelope,
    summary="Get Application Details",
)
async def get_application(
    application_id: int = Path(..., description="Application ID"),
    caller: Caller = Depends(require_operation(Operation.VIEW_APPLICATION)),
    services: Services = Depends(get_services),
):
    application = await services.applications.get_application(caller, application_id)
    return ok(application.to_dict())


@router.put(
    "/{application_id}/review",
    response_model=Envelope,
    summary="Review Application",
    description="Move an application to under_review, accepted or rejected. Staff only.",
)
async def review_application(
    body: ReviewRequest,
    application_id: int = Path(..., description="Application ID"),
    caller: Caller = Depends(require_operation(Operation.REVIEW_APPLICATION)),
    services: Services = Depends(get_services),
):
    application = await services.applications.review(
        caller, application_id, body.status, body.notes
    )
    return ok(application.to_dict())
