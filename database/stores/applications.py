"""Application record store."""

from typing import Optional

from sqlalchemy import String, cast, func, or_, select

from database.models.applications import Application, ApplicationStatus
from database.stores.base import RecordStore

# Columns matched by the staff search box
SEARCHABLE_COLUMNS = (
    Application.candidate_id,
    Application.personal_info,
    Application.education_info,
)


def like_pattern(term: str) -> str:
    """Substring LIKE pattern with wildcards in ``term`` escaped."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ApplicationStore(RecordStore):
    """Reads and writes Application rows inside the caller's session."""

    resource = "Application"

    async def get(self, application_id: int) -> Optional[Application]:
        async with self._guard(application_id):
            return await self.session.get(Application, application_id)

    async def latest_for_candidate(self, candidate_id: str) -> Optional[Application]:
        """The candidate's most recently created application, if any."""
        async with self._guard(candidate_id):
            result = await self.session.execute(
                select(Application)
                .where(Application.candidate_id == candidate_id)
                .order_by(Application.created_at.desc(), Application.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def count_by_status(self) -> dict[ApplicationStatus, int]:
        async with self._guard():
            result = await self.session.execute(
                select(Application.status, func.count(Application.id)).group_by(
                    Application.status
                )
            )
            counts = {status: 0 for status in ApplicationStatus}
            for status, count in result.all():
                counts[status] = count
            return counts

    async def list_page(
        self,
        status: Optional[ApplicationStatus] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Application], int]:
        """Page of applications, newest first, with the unpaged total."""
        async with self._guard():
            query = select(Application)
            if status:
                query = query.where(Application.status == status)
            if search:
                pattern = like_pattern(search)
                query = query.where(
                    or_(
                        *(
                            cast(column, String).ilike(pattern, escape="\\")
                            for column in SEARCHABLE_COLUMNS
                        )
                    )
                )

            count_query = select(func.count()).select_from(query.subquery())
            total = (await self.session.execute(count_query)).scalar() or 0

            query = query.order_by(Application.created_at.desc(), Application.id.desc())
            result = await self.session.execute(query.offset(offset).limit(limit))
            return list(result.scalars().all()), total
