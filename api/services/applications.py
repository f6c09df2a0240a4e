"""
Application workflow service.

Owns the application state machine:

    draft --submit--> submitted
    draft/submitted/under_review/interview_scheduled --withdraw--> withdrawn
    any non-terminal --review--> under_review | accepted | rejected
    submitted --(interview created)--> interview_scheduled
"""

import logging
import math
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.services.base import WorkflowService
from core.events import (
    ApplicationReviewed,
    ApplicationSubmitted,
    ApplicationWithdrawn,
    InterviewCreated,
)
from core.exceptions import (
    ApplicationLocked,
    InvalidTransition,
    NotFound,
    ValidationError,
    WorkflowError,
)
from core.identity import Caller
from core.middleware.authorization import Operation
from database.models.applications import (
    APPLICATION_SECTIONS,
    REVIEW_TARGET_STATUSES,
    Application,
    ApplicationStatus,
)
from database.stores.applications import ApplicationStore

logger = logging.getLogger(__name__)

# A candidate whose latest application ended this way may start over
RESTARTABLE_STATUSES = frozenset({ApplicationStatus.WITHDRAWN, ApplicationStatus.REJECTED})

MAX_PAGE_SIZE = 100
MAX_BULK_SIZE = 100


def validate_sections(sections: dict[str, Any]) -> dict[str, Any]:
    """
    Check draft sections and return the ones supplied.

    Args:
        sections: Mapping of section name to content; ``None`` values are skipped

    Returns:
        Sections to write

    Raises:
        ValidationError: On unknown sections or wrongly shaped content
    """
    cleaned = {}
    for name, content in sections.items():
        if name not in APPLICATION_SECTIONS:
            raise ValidationError(f"Unknown application section '{name}'", field=name)
        if content is None:
            continue
        if name == "documents":
            if not isinstance(content, list) or not all(
                isinstance(uri, str) and uri.strip() for uri in content
            ):
                raise ValidationError("Documents must be a list of non-empty URIs", field=name)
            cleaned[name] = [uri.strip() for uri in content]
        else:
            if not isinstance(content, dict):
                raise ValidationError(f"Section '{name}' must be an object", field=name)
            cleaned[name] = dict(content)
    return cleaned


def parse_status(value: Any, field: str = "status") -> ApplicationStatus:
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown application status '{value}'", field=field)


def validate_review(
    target_status: Any, notes: Optional[str]
) -> tuple[ApplicationStatus, Optional[str]]:
    """
    Check a review decision before any record is touched.

    Raises:
        ValidationError: If the target is not a review outcome, or a rejection has no notes
    """
    target = parse_status(target_status)
    if target not in REVIEW_TARGET_STATUSES:
        raise ValidationError(f"Review cannot set status '{target.value}'", field="status")

    notes = notes.strip() if notes else None
    if target == ApplicationStatus.REJECTED and not notes:
        raise ValidationError("Review notes are required for rejection", field="notes")
    return target, notes


class ApplicationWorkflowService(WorkflowService):
    """Candidate and staff operations on membership applications."""

    async def save_draft(self, caller: Caller, sections: dict[str, Any]) -> Application:
        """
        Create or update the caller's draft application.

        Only the supplied sections are written. A candidate whose latest
        application was withdrawn or rejected gets a fresh draft.

        Raises:
            ApplicationLocked: If the latest application is past the draft stage
        """
        self.gate.authorize(caller, Operation.SAVE_DRAFT)
        updates = validate_sections(sections)

        async def attempt(session: AsyncSession):
            store = ApplicationStore(session)
            latest = await store.latest_for_candidate(caller.id)
            now = self.clock.now()

            if latest is None or latest.status in RESTARTABLE_STATUSES:
                application = Application(
                    candidate_id=caller.id,
                    status=ApplicationStatus.DRAFT,
                    created_at=now,
                    updated_at=now,
                    **updates,
                )
                await store.add(application)
                return application, None

            if latest.status != ApplicationStatus.DRAFT:
                raise ApplicationLocked(latest.status.value)

            for name, content in updates.items():
                setattr(latest, name, content)
            latest.updated_at = now
            await store.save(latest)
            return latest, None

        return await self._write(f"save_draft for candidate {caller.id}", attempt)

    async def submit(self, caller: Caller) -> Application:
        """
        Submit the caller's draft.

        Raises:
            NotFound: If the caller has no application
            InvalidTransition: If the application is not a draft
        """
        self.gate.authorize(caller, Operation.SUBMIT_APPLICATION)

        async def attempt(session: AsyncSession):
            store = ApplicationStore(session)
            application = await store.latest_for_candidate(caller.id)
            if application is None:
                raise NotFound("Application")
            if application.status != ApplicationStatus.DRAFT:
                raise InvalidTransition(
                    application.status.value, ApplicationStatus.SUBMITTED.value
                )

            now = self.clock.now()
            application.status = ApplicationStatus.SUBMITTED
            application.submitted_at = now
            application.updated_at = now
            await store.save(application)
            return application, ApplicationSubmitted(
                application_id=application.id,
                candidate_id=application.candidate_id,
                submitted_at=now,
            )

        return await self._write(f"submit for candidate {caller.id}", attempt)

    async def withdraw(self, caller: Caller) -> Application:
        """
        Withdraw the caller's application.

        Raises:
            NotFound: If the caller has no application
            InvalidTransition: If the application is accepted, rejected or already withdrawn
        """
        self.gate.authorize(caller, Operation.WITHDRAW_APPLICATION)

        async def attempt(session: AsyncSession):
            store = ApplicationStore(session)
            application = await store.latest_for_candidate(caller.id)
            if application is None:
                raise NotFound("Application")
            if application.status.is_terminal:
                raise InvalidTransition(
                    application.status.value, ApplicationStatus.WITHDRAWN.value
                )

            previous = application.status
            now = self.clock.now()
            application.status = ApplicationStatus.WITHDRAWN
            application.withdrawn_at = now
            application.updated_at = now
            await store.save(application)
            return application, ApplicationWithdrawn(
                application_id=application.id,
                candidate_id=application.candidate_id,
                previous_status=previous.value,
            )

        return await self._write(f"withdraw for candidate {caller.id}", attempt)

    async def review(
        self,
        caller: Caller,
        application_id: int,
        target_status: Any,
        notes: Optional[str] = None,
    ) -> Application:
        """
        Staff review: move a non-terminal application to under_review,
        accepted or rejected.

        Rejection requires non-blank notes.

        Raises:
            ValidationError: If the target is not a review outcome or notes are missing
            NotFound: If the application does not exist
            InvalidTransition: If the application is already terminal
        """
        self.gate.authorize(caller, Operation.REVIEW_APPLICATION)
        target, notes = validate_review(target_status, notes)

        async def attempt(session: AsyncSession):
            store = ApplicationStore(session)
            application = await store.get(application_id)
            if application is None:
                raise NotFound("Application", application_id)
            if application.status.is_terminal:
                raise InvalidTransition(application.status.value, target.value)

            now = self.clock.now()
            application.status = target
            application.reviewed_by = caller.id
            application.reviewed_at = now
            application.review_notes = notes
            application.updated_at = now
            await store.save(application)
            return application, ApplicationReviewed(
                application_id=application.id,
                candidate_id=application.candidate_id,
                target_status=target.value,
                reviewed_by=caller.id,
                notes=notes,
            )

        return await self._write(
            f"review of application {application_id} to {target.value}", attempt
        )

    async def bulk_review(
        self,
        caller: Caller,
        application_ids: list[int],
        target_status: Any,
        notes: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Apply one review decision to several applications.

        Each id is reviewed on its own; a failure on one id is reported in
        its result and does not stop the others. Duplicate ids are reviewed
        once.

        Args:
            caller: Staff caller
            application_ids: Applications to review
            target_status: under_review, accepted or rejected
            notes: Review notes, required for rejection

        Returns:
            Dict with successful and failed counts and a result per id

        Raises:
            ValidationError: If no ids are given, too many are given, or the decision is invalid
        """
        self.gate.authorize(caller, Operation.REVIEW_APPLICATION)
        if not application_ids:
            raise ValidationError("Application ids are required", field="application_ids")
        unique_ids = list(dict.fromkeys(application_ids))
        if len(unique_ids) > MAX_BULK_SIZE:
            raise ValidationError(
                f"At most {MAX_BULK_SIZE} applications can be reviewed at once",
                field="application_ids",
            )
        target, notes = validate_review(target_status, notes)

        results = []
        for application_id in unique_ids:
            try:
                application = await self.review(caller, application_id, target, notes)
            except WorkflowError as e:
                results.append(
                    {
                        "id": application_id,
                        "success": False,
                        "error": e.message,
                        "errorKind": e.error_kind,
                    }
                )
            else:
                results.append(
                    {"id": application_id, "success": True, "status": application.status.value}
                )

        successful = sum(1 for result in results if result["success"])
        logger.info(
            f"Bulk review to {target.value} by {caller.id}: "
            f"{successful} succeeded, {len(results) - successful} failed"
        )
        return {
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }

    async def on_interview_created(self, event: InterviewCreated) -> None:
        """Mark a submitted application as having an interview scheduled."""

        async def attempt(session: AsyncSession):
            store = ApplicationStore(session)
            application = await store.get(event.application_id)
            if application is None or application.status != ApplicationStatus.SUBMITTED:
                return application, None

            application.status = ApplicationStatus.INTERVIEW_SCHEDULED
            application.updated_at = self.clock.now()
            await store.save(application)
            return application, None

        await self._write(
            f"interview_scheduled update for application {event.application_id}", attempt
        )

    async def get_my_application(self, caller: Caller) -> Application:
        self.gate.authorize(caller, Operation.VIEW_OWN_APPLICATION)

        async def reader(session: AsyncSession):
            return await ApplicationStore(session).latest_for_candidate(caller.id)

        application = await self._read(reader)
        if application is None:
            raise NotFound("Application")
        return application

    async def get_application(self, caller: Caller, application_id: int) -> Application:
        self.gate.authorize(caller, Operation.VIEW_APPLICATION)

        async def reader(session: AsyncSession):
            return await ApplicationStore(session).get(application_id)

        application = await self._read(reader)
        if application is None:
            raise NotFound("Application", application_id)
        return application

    async def get_application_for_candidate(self, caller: Caller, candidate_id: str) -> Application:
        """
        Latest application of a given candidate.

        Staff may look up anyone; a candidate only themselves.

        Raises:
            Forbidden: If a candidate asks for someone else
            NotFound: If the candidate has no application
        """
        self.gate.authorize(caller, Operation.VIEW_CANDIDATE_APPLICATION, owner_id=candidate_id)

        async def reader(session: AsyncSession):
            return await ApplicationStore(session).latest_for_candidate(candidate_id)

        application = await self._read(reader)
        if application is None:
            raise NotFound("Application")
        return application

    async def list_applications(
        self,
        caller: Caller,
        status: Optional[Any] = None,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Page through applications, newest first.

        ``search`` matches case-insensitively against the candidate id and
        the personal and education sections.

        Returns:
            Dict with items, total, page, page_size and total_pages
        """
        self.gate.authorize(caller, Operation.LIST_APPLICATIONS)
        if page < 1:
            raise ValidationError("Page must be at least 1", field="page")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"Page size must be between 1 and {MAX_PAGE_SIZE}", field="page_size"
            )
        status_filter = parse_status(status) if status else None
        search_term = search.strip() if search else None

        async def reader(session: AsyncSession):
            return await ApplicationStore(session).list_page(
                status=status_filter,
                search=search_term,
                offset=(page - 1) * page_size,
                limit=page_size,
            )

        items, total = await self._read(reader)
        return {
            "items": items,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total / page_size) if total else 0,
        }

    async def get_stats(self, caller: Caller) -> dict[str, int]:
        """
        Count applications per status, with total and acceptance rate.

        The rate is accepted as a percentage of decided (accepted or
        rejected) applications, 0 while nothing has been decided.
        """
        self.gate.authorize(caller, Operation.VIEW_APPLICATION_STATS)

        async def reader(session: AsyncSession):
            return await ApplicationStore(session).count_by_status()

        counts = await self._read(reader)
        total = sum(counts.values())
        accepted = counts[ApplicationStatus.ACCEPTED]
        decided = accepted + counts[ApplicationStatus.REJECTED]

        stats = {status.value: count for status, count in counts.items()}
        stats["total"] = total
        stats["acceptance_rate"] = round(accepted * 100 / decided) if decided else 0
        return stats
