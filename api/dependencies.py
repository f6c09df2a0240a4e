"""FastAPI dependencies for dependency injection."""

from functools import lru_cache

from api.services import Services, build_services
from core.clock import SystemClock
from core.config import settings
from core.events import NotificationDispatcher
from database.engine import AsyncSessionLocal


@lru_cache
def get_services() -> Services:
    """Process-wide workflow services bound to the configured database."""
    return build_services(
        AsyncSessionLocal,
        clock=SystemClock(),
        notifier=NotificationDispatcher(enabled=settings.notifications_enabled),
    )
