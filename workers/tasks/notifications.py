"""Notification delivery tasks."""

import logging
from typing import Any, Dict

import httpx
from celery import Task

from core.config import settings
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)

MAX_DELIVERY_RETRIES = 5


@celery_app.task(name="workers.tasks.notifications.deliver_event", bind=True)
def deliver_event(self: Task, payload: Dict[str, Any]) -> dict:
    """Deliver a domain event to the notification service.

    Args:
        payload: Event payload with ``event`` name and ``data``

    Returns:
        Dictionary with delivery status
    """
    event_name = payload.get("event", "unknown")
    try:
        with httpx.Client(timeout=settings.notification_timeout_seconds) as client:
            response = client.post(
                settings.notification_service_url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "X-Event-Type": event_name,
                },
            )
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(
            f"Notification delivery for {event_name} failed "
            f"(attempt {self.request.retries + 1}): {e}"
        )
        # Retry with exponential backoff
        raise self.retry(
            exc=e,
            countdown=2 ** self.request.retries * 30,
            max_retries=MAX_DELIVERY_RETRIES,
        )

    return {
        "status": "delivered",
        "status_code": response.status_code,
        "event": event_name,
    }
