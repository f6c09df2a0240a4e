"""Test data builders shared by unit and integration tests."""

import os
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from core.clock import ManualClock
from core.identity import Caller, Role
from core.security import create_access_token
from database.models.applications import ACTIVE_APPLICATION_STATUSES, Application

TEST_JWT_SECRET = os.environ.get(
    "JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security"
)

# Monday 09:00 UTC
START = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class RecordingNotifier:
    """Notification subscriber that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def names(self):
        return [event.name for event in self.events]


def make_caller(caller_id: str, *roles: Role) -> Caller:
    return Caller(id=caller_id, roles=frozenset(roles))


def make_token(caller_id: str, *roles: str, expires_minutes: int = 30) -> str:
    return create_access_token(
        caller_id, roles, TEST_JWT_SECRET, expires_minutes=expires_minutes
    )


def auth_headers(caller_id: str, *roles: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(caller_id, *roles)}"}


def tomorrow_at(clock: ManualClock, hour: int = 10) -> datetime:
    day = clock.now().date() + timedelta(days=1)
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


async def submitted_application(services, caller, sections=None):
    """Draft and submit an application for ``caller``."""
    await services.applications.save_draft(
        caller, sections or {"personal_info": {"full_name": "Dana Example"}}
    )
    return await services.applications.submit(caller)


async def scheduled_interview(services, staff_caller, application, interview_at, **overrides):
    """Create an online interview for ``application``."""
    fields = {
        "location": "online",
        "meeting_link": "https://meet.example.com/abc",
    }
    fields.update(overrides)
    return await services.interviews.create(
        staff_caller,
        application_id=application.id,
        candidate_id=application.candidate_id,
        interview_at=interview_at,
        **fields,
    )


async def active_applications(session, candidate_id):
    """Non-terminal application rows of one candidate."""
    result = await session.execute(
        select(Application).where(
            Application.candidate_id == candidate_id,
            Application.status.in_(ACTIVE_APPLICATION_STATUSES),
        )
    )
    return list(result.scalars().all())
