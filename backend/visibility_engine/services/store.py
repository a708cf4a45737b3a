"""
Visibility Store
Persistence operations the engine consumes: schedules, history, keywords, competitors
"""

from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy import select, update, delete, func, not_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from visibility_engine.models import (
    CheckSource, Competitor, Keyword, Project, ProjectPreference,
    ScheduledQuery, ScheduleFrequency, VisibilityCheck
)
from visibility_engine.services.errors import NotFoundError, QuotaError, ValidationError

IdLike = Union[UUID, str]


def parse_uuid(value: IdLike, field: str = "id") -> UUID:
    """Coerce an id to UUID, rejecting malformed input"""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")


class VisibilityStore:
    """Repository over one database session; callers own the transaction"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # ------------------------------------------------------------------
    # Projects & competitors
    # ------------------------------------------------------------------

    async def get_project(self, project_id: IdLike) -> Optional[Project]:
        result = await self.db.execute(
            select(Project)
            .options(selectinload(Project.owner))
            .where(Project.id == parse_uuid(project_id, "project_id"))
        )
        return result.scalar_one_or_none()

    async def get_owned_project(self, project_id: IdLike, user_id: UUID) -> Project:
        """Project owned by the user; foreign projects look missing"""
        project = await self.get_project(project_id)
        if project is None or project.owner_id != user_id:
            raise NotFoundError("Project not found")
        return project

    async def list_owner_project_ids(self, owner_id: UUID) -> List[UUID]:
        result = await self.db.execute(
            select(Project.id).where(Project.owner_id == owner_id)
        )
        return [row[0] for row in result.fetchall()]

    async def set_enabled_providers(self, project: Project, providers: List[str]) -> Project:
        project.enabled_llms = list(providers)
        await self.db.flush()
        return project

    async def list_competitors(self, project_id: IdLike) -> List[Competitor]:
        result = await self.db.execute(
            select(Competitor)
            .where(Competitor.project_id == parse_uuid(project_id, "project_id"))
            .order_by(Competitor.created_at)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Keywords
    # ------------------------------------------------------------------

    async def get_keywords(self, project_id: IdLike, keyword_ids: Iterable[IdLike]) -> List[Keyword]:
        ids = [parse_uuid(k, "keyword_id") for k in keyword_ids]
        if not ids:
            return []
        result = await self.db.execute(
            select(Keyword).where(
                Keyword.project_id == parse_uuid(project_id, "project_id"),
                Keyword.id.in_(ids),
            )
        )
        return list(result.scalars().all())

    async def count_keywords(self, project_id: IdLike) -> int:
        result = await self.db.execute(
            select(func.count(Keyword.id)).where(
                Keyword.project_id == parse_uuid(project_id, "project_id")
            )
        )
        return result.scalar() or 0

    async def create_keywords_batch(
        self,
        project_id: IdLike,
        texts: Sequence[str],
        limit: Optional[int] = None,
    ) -> List[Keyword]:
        """
        Persist keyword texts, re-using existing keywords with the same text
        (case-insensitive). Returns one keyword per distinct text, in order.

        Raises:
            QuotaError: New keywords would exceed `limit` for the project
        """
        project_uuid = parse_uuid(project_id, "project_id")

        ordered = []
        seen = set()
        for text in texts:
            lowered = text.lower()
            if lowered not in seen:
                seen.add(lowered)
                ordered.append(text)

        if not ordered:
            return []

        result = await self.db.execute(
            select(Keyword).where(
                Keyword.project_id == project_uuid,
                func.lower(Keyword.keyword).in_(list(seen)),
            )
        )
        by_text = {}
        for keyword in result.scalars().all():
            by_text.setdefault(keyword.keyword.lower(), keyword)

        missing = [text for text in ordered if text.lower() not in by_text]

        if missing and limit is not None:
            current = await self.count_keywords(project_uuid)
            if current + len(missing) > limit:
                raise QuotaError(
                    f"Limit of {limit} saved keywords reached for this project",
                    details={"limit": limit, "current": current, "requested": len(missing)},
                )

        for text in missing:
            keyword = Keyword(project_id=project_uuid, keyword=text)
            self.db.add(keyword)
            by_text[text.lower()] = keyword

        await self.db.flush()
        return [by_text[text.lower()] for text in ordered]

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    async def list_schedules(self, project_id: IdLike) -> List[ScheduledQuery]:
        result = await self.db.execute(
            select(ScheduledQuery)
            .where(ScheduledQuery.project_id == parse_uuid(project_id, "project_id"))
            .order_by(ScheduledQuery.created_at)
        )
        return list(result.scalars().all())

    async def count_schedules(self, project_id: IdLike) -> int:
        result = await self.db.execute(
            select(func.count(ScheduledQuery.id)).where(
                ScheduledQuery.project_id == parse_uuid(project_id, "project_id")
            )
        )
        return result.scalar() or 0

    async def get_schedule(self, schedule_id: IdLike) -> Optional[ScheduledQuery]:
        return await self.db.get(
            ScheduledQuery,
            parse_uuid(schedule_id, "schedule_id"),
            populate_existing=True,
        )

    async def create_schedule(
        self,
        project_id: IdLike,
        query: str,
        providers: List[str],
        frequency: ScheduleFrequency,
        next_run_at: datetime,
        created_at: datetime,
    ) -> ScheduledQuery:
        schedule = ScheduledQuery(
            project_id=parse_uuid(project_id, "project_id"),
            query=query,
            providers=list(providers),
            frequency=frequency,
            enabled=True,
            next_run_at=next_run_at,
            created_at=created_at,
        )
        self.db.add(schedule)
        await self.db.flush()
        return schedule

    async def update_schedule(self, schedule_id: IdLike, values: dict) -> Optional[ScheduledQuery]:
        """Conditional update by id; None when the row no longer exists"""
        schedule_uuid = parse_uuid(schedule_id, "schedule_id")
        result = await self.db.execute(
            update(ScheduledQuery)
            .where(ScheduledQuery.id == schedule_uuid)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return await self.get_schedule(schedule_uuid)

    async def toggle_schedule(self, schedule_id: IdLike) -> Optional[ScheduledQuery]:
        """Flip `enabled` in a single write; next_run_at is left as is"""
        return await self.update_schedule(
            schedule_id, {"enabled": not_(ScheduledQuery.enabled)}
        )

    async def delete_schedule(self, schedule_id: IdLike) -> bool:
        result = await self.db.execute(
            delete(ScheduledQuery)
            .where(ScheduledQuery.id == parse_uuid(schedule_id, "schedule_id"))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def list_due_schedule_ids(self, now: datetime, limit: int) -> List[UUID]:
        result = await self.db.execute(
            select(ScheduledQuery.id)
            .where(
                ScheduledQuery.enabled == True,
                ScheduledQuery.next_run_at <= now,
            )
            .order_by(ScheduledQuery.next_run_at)
            .limit(limit)
        )
        return [row[0] for row in result.fetchall()]

    async def claim_schedule(self, schedule_id: IdLike, now: datetime, lease_seconds: int) -> bool:
        """
        Take ownership of a due run. Succeeds for exactly one caller while the
        schedule is enabled, due, and not claimed within the lease.
        """
        stale_before = now - timedelta(seconds=lease_seconds)
        result = await self.db.execute(
            update(ScheduledQuery)
            .where(
                ScheduledQuery.id == parse_uuid(schedule_id, "schedule_id"),
                ScheduledQuery.enabled == True,
                ScheduledQuery.next_run_at <= now,
                or_(
                    ScheduledQuery.claimed_at.is_(None),
                    ScheduledQuery.claimed_at < stale_before,
                ),
            )
            .values(claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def finish_schedule_run(self, schedule_id: IdLike, ran_at: datetime, next_run_at: datetime) -> bool:
        """Advance the cadence; False when the schedule was deleted mid-run"""
        result = await self.db.execute(
            update(ScheduledQuery)
            .where(ScheduledQuery.id == parse_uuid(schedule_id, "schedule_id"))
            .values(last_run_at=ran_at, next_run_at=next_run_at, claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_schedule_claim(self, schedule_id: IdLike) -> bool:
        result = await self.db.execute(
            update(ScheduledQuery)
            .where(ScheduledQuery.id == parse_uuid(schedule_id, "schedule_id"))
            .values(claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def list_history(
        self,
        project_id: IdLike,
        region: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[VisibilityCheck]:
        query = select(VisibilityCheck).where(
            VisibilityCheck.project_id == parse_uuid(project_id, "project_id")
        )
        if region:
            query = query.where(VisibilityCheck.region == region)
        if since:
            query = query.where(VisibilityCheck.checked_at >= since)

        result = await self.db.execute(
            query.order_by(VisibilityCheck.checked_at.desc())
        )
        return list(result.scalars().all())

    async def append_checks(self, checks: List[VisibilityCheck]) -> List[VisibilityCheck]:
        self.db.add_all(checks)
        await self.db.flush()
        return checks

    async def count_manual_checks_since(self, project_ids: List[UUID], since: datetime) -> int:
        if not project_ids:
            return 0
        result = await self.db.execute(
            select(func.count(VisibilityCheck.id)).where(
                VisibilityCheck.project_id.in_(project_ids),
                VisibilityCheck.source == CheckSource.MANUAL,
                VisibilityCheck.checked_at >= since,
            )
        )
        return result.scalar() or 0

    async def latest_manual_batch(self, project_id: IdLike) -> List[VisibilityCheck]:
        """Checks of the project's most recent user-initiated run"""
        project_uuid = parse_uuid(project_id, "project_id")
        result = await self.db.execute(
            select(VisibilityCheck.batch_id)
            .where(
                VisibilityCheck.project_id == project_uuid,
                VisibilityCheck.source == CheckSource.MANUAL,
            )
            .order_by(VisibilityCheck.checked_at.desc())
            .limit(1)
        )
        batch_id = result.scalar_one_or_none()
        if batch_id is None:
            return []

        result = await self.db.execute(
            select(VisibilityCheck)
            .where(VisibilityCheck.batch_id == batch_id)
            .order_by(VisibilityCheck.checked_at, VisibilityCheck.query)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_preference(self, project_id: IdLike, key: str) -> Optional[Any]:
        result = await self.db.execute(
            select(ProjectPreference.value).where(
                ProjectPreference.project_id == parse_uuid(project_id, "project_id"),
                ProjectPreference.key == key,
            )
        )
        return result.scalar_one_or_none()

    async def set_preference(self, project_id: IdLike, key: str, value: Any) -> None:
        project_uuid = parse_uuid(project_id, "project_id")
        result = await self.db.execute(
            select(ProjectPreference).where(
                ProjectPreference.project_id == project_uuid,
                ProjectPreference.key == key,
            )
        )
        preference = result.scalar_one_or_none()
        if preference is None:
            self.db.add(ProjectPreference(project_id=project_uuid, key=key, value=value))
        else:
            preference.value = value
        await self.db.flush()
