"""Shared fixtures and utilities for tests."""

import os
import tempfile
from pathlib import Path

# Settings are read at import time; point the process-wide engine at a
# throwaway SQLite file before any application module is imported.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / f'membership_test_{os.getpid()}.db'}",
)
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from api.services import build_services
from core.clock import ManualClock
from core.identity import Role
from database.engine import build_session_factory, create_tables
from tests.factories import START, RecordingNotifier, make_caller


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'workflow.db'}", poolclass=NullPool
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def services(session_factory, clock, notifier):
    return build_services(session_factory, clock=clock, notifier=notifier)


@pytest.fixture
def candidate():
    return make_caller("cand-1", Role.APPLICANT)


@pytest.fixture
def other_candidate():
    return make_caller("cand-2", Role.CLUB_MEMBER)


@pytest.fixture
def staff():
    return make_caller("staff-1", Role.MANAGER)


@pytest.fixture
def coordinator():
    return make_caller("coord-1", Role.COORDINATOR)


@pytest.fixture
def personal_info():
    return {"full_name": "Dana Example", "email": "dana@example.com", "city": "Lyon"}
