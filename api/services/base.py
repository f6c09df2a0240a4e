"""Shared write discipline for the workflow services."""

import logging
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.clock import Clock, SystemClock
from core.events import DomainEvent, EventBus
from core.exceptions import ConcurrentModification, WorkflowError
from core.middleware.authorization import AuthorizationGate

logger = logging.getLogger(__name__)

# One initial attempt plus a single re-read-and-retry on a version conflict
MAX_WRITE_ATTEMPTS = 2

Attempt = Callable[[AsyncSession], Awaitable[tuple[Any, Optional[DomainEvent]]]]


class WorkflowService:
    """
    Base for services that transition one record per call.

    Each attempt runs in a fresh session: load, check, mutate, commit. Events
    are published only after the commit succeeded.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Optional[Clock] = None,
        gate: Optional[AuthorizationGate] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.gate = gate or AuthorizationGate()
        self.event_bus = event_bus or EventBus()

    async def _write(self, description: str, attempt: Attempt) -> Any:
        """
        Run a read-modify-write, retrying once on a version conflict.

        Args:
            description: Human-readable operation name for logs
            attempt: Coroutine function doing one load/check/mutate/commit pass

        Returns:
            The record returned by the successful attempt

        Raises:
            ConcurrentModification: If the second attempt also hit a stale version
            WorkflowError: Whatever the attempt rejected the transition with
        """
        for attempt_number in range(1, MAX_WRITE_ATTEMPTS + 1):
            async with self.session_factory() as session:
                try:
                    record, event = await attempt(session)
                except ConcurrentModification:
                    if attempt_number == MAX_WRITE_ATTEMPTS:
                        logger.warning(f"Giving up on {description}: concurrent modification")
                        raise
                    logger.info(f"Retrying {description} after concurrent modification")
                    continue
                except WorkflowError as e:
                    logger.warning(f"Rejected {description}: {e.message}")
                    raise

            logger.info(f"Completed {description}")
            if event is not None:
                await self.event_bus.publish(event)
            return record

    async def _read(self, reader: Callable[[AsyncSession], Awaitable[Any]]) -> Any:
        async with self.session_factory() as session:
            return await reader(session)
