"""Shared plumbing for the record stores."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.exceptions import ConcurrentModification, StorageUnavailable

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Base store over a single AsyncSession.

    The session (and therefore the transaction) belongs to the caller; the
    store only translates database failures into workflow errors.
    """

    resource: str = "Record"

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _guard(self, identifier: Any = None) -> AsyncIterator[None]:
        try:
            yield
        except StaleDataError as e:
            logger.info(f"Stale write on {self.resource} {identifier}: {e}")
            await self.session.rollback()
            raise ConcurrentModification(self.resource, identifier) from e
        except IntegrityError as e:
            # A uniqueness backstop fired: another writer got there first
            logger.info(f"Integrity conflict on {self.resource} {identifier}: {e.orig}")
            await self.session.rollback()
            raise ConcurrentModification(self.resource, identifier) from e
        except (OperationalError, DBAPIError) as e:
            logger.error(f"Record store failure on {self.resource}: {e}")
            await self.session.rollback()
            raise StorageUnavailable() from e

    async def add(self, record) -> None:
        """Insert a new record and commit."""
        async with self._guard(getattr(record, "candidate_id", None)):
            self.session.add(record)
            await self.session.commit()

    async def save(self, record) -> None:
        """
        Commit pending changes to a loaded record.

        Raises:
            ConcurrentModification: If the row's version moved since it was read
            StorageUnavailable: If the database could not be reached
        """
        async with self._guard(record.id):
            await self.session.commit()
