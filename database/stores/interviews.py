"""Interview record store."""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select

from database.models.interviews import (
    OPEN_INTERVIEW_STATUSES,
    TERMINAL_INTERVIEW_STATUSES,
    Interview,
    InterviewStatus,
)
from database.stores.base import RecordStore

LIST_LIMIT = 100


class InterviewStore(RecordStore):
    """Reads and writes Interview rows inside the caller's session."""

    resource = "Interview"

    async def get(self, interview_id: int) -> Optional[Interview]:
        async with self._guard(interview_id):
            return await self.session.get(Interview, interview_id)

    async def for_application(self, application_id: int) -> list[Interview]:
        async with self._guard(application_id):
            result = await self.session.execute(
                select(Interview)
                .where(Interview.application_id == application_id)
                .order_by(Interview.interview_at.asc(), Interview.id.asc())
            )
            return list(result.scalars().all())

    async def for_candidate(self, candidate_id: str) -> list[Interview]:
        """All of a candidate's interviews, earliest first."""
        async with self._guard(candidate_id):
            result = await self.session.execute(
                select(Interview)
                .where(Interview.candidate_id == candidate_id)
                .order_by(Interview.interview_at.asc(), Interview.id.asc())
            )
            return list(result.scalars().all())

    async def upcoming_for_candidate(
        self, candidate_id: str, now: datetime, limit: Optional[int] = None
    ) -> list[Interview]:
        async with self._guard(candidate_id):
            query = (
                select(Interview)
                .where(
                    Interview.candidate_id == candidate_id,
                    Interview.status.in_(OPEN_INTERVIEW_STATUSES),
                    Interview.interview_at >= now,
                )
                .order_by(Interview.interview_at.asc(), Interview.id.asc())
            )
            if limit:
                query = query.limit(limit)
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def past_for_candidate(self, candidate_id: str, now: datetime) -> list[Interview]:
        async with self._guard(candidate_id):
            result = await self.session.execute(
                select(Interview)
                .where(
                    Interview.candidate_id == candidate_id,
                    or_(
                        Interview.interview_at < now,
                        Interview.status.in_(TERMINAL_INTERVIEW_STATUSES),
                    ),
                )
                .order_by(Interview.interview_at.desc(), Interview.id.desc())
            )
            return list(result.scalars().all())

    async def list_recent(
        self,
        status: Optional[InterviewStatus] = None,
        starts_from: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
        candidate_id: Optional[str] = None,
        limit: int = LIST_LIMIT,
    ) -> list[Interview]:
        """Filtered interviews, newest first."""
        async with self._guard():
            query = select(Interview)
            if status:
                query = query.where(Interview.status == status)
            if starts_from:
                query = query.where(Interview.interview_at >= starts_from)
            if starts_before:
                query = query.where(Interview.interview_at < starts_before)
            if candidate_id:
                query = query.where(Interview.candidate_id == candidate_id)

            query = query.order_by(Interview.interview_at.desc(), Interview.id.desc())
            result = await self.session.execute(query.limit(limit))
            return list(result.scalars().all())
