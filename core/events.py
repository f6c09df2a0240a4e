"""
Domain events emitted on successful workflow transitions.

Services publish on an in-process ``EventBus`` after their write has
committed. Subscribers run in order; a failing subscriber is logged and never
propagates back into the transition that produced the event.
"""

import inspect
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

from core.utils.datetime import isoformat_or_none

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    """Base event; ``name`` identifies the event type on the wire."""

    name = "domain_event"

    def to_payload(self) -> dict[str, Any]:
        payload = {}
        for key, value in asdict(self).items():
            payload[key] = isoformat_or_none(value) if isinstance(value, datetime) else value
        return {"event": self.name, "data": payload}


# Applications
@dataclass(frozen=True)
class ApplicationSubmitted(DomainEvent):
    name = "application.submitted"

    application_id: int
    candidate_id: str
    submitted_at: datetime


@dataclass(frozen=True)
class ApplicationWithdrawn(DomainEvent):
    name = "application.withdrawn"

    application_id: int
    candidate_id: str
    previous_status: str


@dataclass(frozen=True)
class ApplicationReviewed(DomainEvent):
    name = "application.reviewed"

    application_id: int
    candidate_id: str
    target_status: str
    reviewed_by: str
    notes: Optional[str] = None


# Interviews
@dataclass(frozen=True)
class InterviewCreated(DomainEvent):
    name = "interview.created"

    interview_id: int
    application_id: int
    candidate_id: str
    interview_at: datetime
    location: str
    interviewers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class InterviewConfirmed(DomainEvent):
    name = "interview.confirmed"

    interview_id: int
    application_id: int
    candidate_id: str


@dataclass(frozen=True)
class InterviewRescheduleRequested(DomainEvent):
    name = "interview.reschedule_requested"

    interview_id: int
    application_id: int
    candidate_id: str
    reason: str


@dataclass(frozen=True)
class InterviewCancelled(DomainEvent):
    name = "interview.cancelled"

    interview_id: int
    application_id: int
    candidate_id: str
    reason: str
    cancelled_by: str


@dataclass(frozen=True)
class InterviewCompleted(DomainEvent):
    name = "interview.completed"

    interview_id: int
    application_id: int
    candidate_id: str
    score: Optional[int] = None


@dataclass(frozen=True)
class InterviewNoShow(DomainEvent):
    name = "interview.no_show"

    interview_id: int
    application_id: int
    candidate_id: str


Handler = Callable[[DomainEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Synchronous-order, in-process publish/subscribe for domain events."""

    def __init__(self):
        self._handlers: list[tuple[type[DomainEvent], Handler]] = []

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Register a handler for an event type (and its subclasses)."""
        self._handlers.append((event_type, handler))

    async def publish(self, event: DomainEvent) -> None:
        for event_type, handler in self._handlers:
            if not isinstance(event, event_type):
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    f"Event handler {getattr(handler, '__qualname__', handler)} "
                    f"failed for {event.name}",
                    extra={"event_type": event.name},
                )


class NotificationDispatcher:
    """
    Hands domain events to the notification service through Celery.

    Only the enqueue happens in-request; delivery and its retries belong to
    the worker.
    """

    def __init__(self, enabled: bool = True, enqueue: Optional[Callable[[dict], Any]] = None):
        self.enabled = enabled
        self._enqueue = enqueue

    def _default_enqueue(self, payload: dict) -> Any:
        from workers.tasks.notifications import deliver_event

        return deliver_event.apply_async(args=[payload], retry=False)

    def __call__(self, event: DomainEvent) -> None:
        if not self.enabled:
            logger.debug(f"Notifications disabled, dropping {event.name}")
            return

        enqueue = self._enqueue or self._default_enqueue
        try:
            enqueue(event.to_payload())
            logger.info(f"Queued notification for {event.name}", extra={"event_type": event.name})
        except Exception as e:
            logger.error(
                f"Failed to queue notification for {event.name}: {e}",
                extra={"event_type": event.name},
            )
