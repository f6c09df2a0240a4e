"""
API Services Layer.

Workflow services for the HTTP routes. ``build_services`` wires both
services to one authorization table, clock and event bus.
"""

from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.services.applications import ApplicationWorkflowService
from api.services.interviews import InterviewSchedulingService
from core.clock import Clock, SystemClock
from core.events import DomainEvent, EventBus, InterviewCreated
from core.middleware.authorization import (
    AUTHORIZATION_TABLE,
    AuthorizationGate,
    Operation,
    Rule,
)


@dataclass
class Services:
    """The two workflow services and the bus connecting them."""

    applications: ApplicationWorkflowService
    interviews: InterviewSchedulingService
    event_bus: EventBus


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    clock: Optional[Clock] = None,
    table: Mapping[Operation, Rule] = AUTHORIZATION_TABLE,
    notifier: Optional[Callable[[DomainEvent], None]] = None,
) -> Services:
    """
    Construct the workflow services.

    Args:
        session_factory: Session maker bound to the record store
        clock: Time source; the system clock when omitted
        table: Authorization table shared by both services
        notifier: Subscriber receiving every domain event

    Returns:
        Wired Services
    """
    clock = clock or SystemClock()
    gate = AuthorizationGate(table)
    event_bus = EventBus()

    applications = ApplicationWorkflowService(session_factory, clock, gate, event_bus)
    interviews = InterviewSchedulingService(session_factory, clock, gate, event_bus)

    # Interview creation reports back to the application state machine
    event_bus.subscribe(InterviewCreated, applications.on_interview_created)
    if notifier is not None:
        event_bus.subscribe(DomainEvent, notifier)

    return Services(applications=applications, interviews=interviews, event_bus=event_bus)


__all__ = [
    "ApplicationWorkflowService",
    "InterviewSchedulingService",
    "Services",
    "build_services",
]
