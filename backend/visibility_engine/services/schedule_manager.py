"""
Schedule Manager
Lifecycle of recurring visibility checks: create, pause/resume, update, delete, run when due
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AsyncContextManager, Callable, Dict, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from visibility_engine.adapters.execution.base import BaseCheckExecutor
from visibility_engine.config import get_settings
from visibility_engine.models import (
    ScheduledQuery, ScheduleFrequency, SubscriptionTier, User, VisibilityCheck
)
from visibility_engine.services.check_runner import CheckRunner
from visibility_engine.services.errors import NotFoundError, QuotaError, ValidationError
from visibility_engine.services.plan_limits import get_plan_limits
from visibility_engine.services.providers import PROVIDERS, filter_known_providers, validate_providers
from visibility_engine.services.store import IdLike, VisibilityStore, parse_uuid

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

FREQUENCY_DURATIONS: Dict[ScheduleFrequency, timedelta] = {
    ScheduleFrequency.HOURLY: timedelta(hours=1),
    ScheduleFrequency.DAILY: timedelta(days=1),
    ScheduleFrequency.WEEKLY: timedelta(days=7),
}

SUGGESTION_DISMISSED_KEY = "schedule_suggestion_dismissed"


def parse_frequency(frequency: Union[ScheduleFrequency, str]) -> ScheduleFrequency:
    try:
        return ScheduleFrequency(frequency)
    except ValueError:
        raise ValidationError(
            f"Unknown frequency: {frequency}",
            details={"valid_frequencies": [f.value for f in ScheduleFrequency]},
        )


def compute_next_run(frequency: Union[ScheduleFrequency, str], from_time: datetime) -> datetime:
    """Next due time, exactly one period after `from_time`"""
    return from_time + FREQUENCY_DURATIONS[parse_frequency(frequency)]


class ScheduleLockRegistry:
    """
    One asyncio.Lock per schedule id, alive only while someone holds a
    reference to it.
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()

    def lock_for(self, schedule_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(schedule_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[schedule_id] = lock
        return lock


@dataclass
class ScheduleSuggestion:
    """Weekly schedule offered after a project's first manual runs"""
    query: str
    providers: List[str]
    frequency: ScheduleFrequency = ScheduleFrequency.WEEKLY


@dataclass
class DueRunSummary:
    due: int = 0
    ran: int = 0
    skipped: int = 0
    failed: List[str] = field(default_factory=list)


class ScheduleManager:
    """
    Schedule state machine: Active <-> Paused, either -> Deleted.

    Each operation uses its own session from `session_factory`, so due
    schedules can run concurrently. Mutations of one schedule are serialized
    by a per-id lock in this process and by conditional writes across
    processes; a deleted schedule is never written again.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        executor: BaseCheckExecutor,
        locks: Optional[ScheduleLockRegistry] = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.executor = executor
        self.locks = locks or ScheduleLockRegistry()
        self.claim_lease_seconds = settings.SCHEDULE_CLAIM_LEASE_SECONDS
        self.due_batch_size = settings.SCHEDULE_DUE_BATCH_SIZE

    @asynccontextmanager
    async def _store(self):
        async with self.session_factory() as db:
            yield VisibilityStore(db)

    async def _owned_schedule(self, store: VisibilityStore, user: User, schedule_id: IdLike) -> ScheduledQuery:
        schedule = await store.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule not found")
        project = await store.get_project(schedule.project_id)
        if project is None or project.owner_id != user.id:
            raise NotFoundError("Schedule not found")
        return schedule

    @staticmethod
    def _check_frequency_allowed(tier: SubscriptionTier, frequency: ScheduleFrequency) -> None:
        if frequency == ScheduleFrequency.HOURLY and not get_plan_limits(tier)["hourly_schedules"]:
            raise QuotaError(
                "Hourly schedules are available on Pro and Agency plans.",
                details={"required_tier": SubscriptionTier.PRO.value},
            )

    @staticmethod
    def _clean_query(query: Optional[str]) -> str:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Query must not be empty")
        return query

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def list(self, user: User, project_id: IdLike) -> List[ScheduledQuery]:
        async with self._store() as store:
            project = await store.get_owned_project(project_id, user.id)
            return await store.list_schedules(project.id)

    async def create(
        self,
        user: User,
        project_id: IdLike,
        query: str,
        providers: Sequence[str],
        frequency: Union[ScheduleFrequency, str],
        now: Optional[datetime] = None,
    ) -> ScheduledQuery:
        """
        Create an active schedule, first due one period from now.

        Raises:
            ValidationError: Empty query, bad providers or frequency
            QuotaError: Plan has no (more) schedules or no hourly cadence
            NotFoundError: Project missing or not owned by the user
        """
        now = now or datetime.utcnow()
        query = self._clean_query(query)
        providers = validate_providers(providers)
        frequency = parse_frequency(frequency)

        tier = user.subscription_tier
        limit = get_plan_limits(tier)["scheduled_queries"]
        if limit == 0:
            raise QuotaError(
                "Scheduled queries are not available on the free plan. Upgrade to enable them.",
                details={"limit": 0},
            )
        self._check_frequency_allowed(tier, frequency)

        async with self._store() as store:
            project = await store.get_owned_project(project_id, user.id)

            current = await store.count_schedules(project.id)
            if current >= limit:
                raise QuotaError(
                    f"Limit of {limit} scheduled queries reached. Upgrade your plan for more.",
                    details={"limit": limit, "current": current},
                )

            schedule = await store.create_schedule(
                project.id,
                query=query,
                providers=providers,
                frequency=frequency,
                next_run_at=compute_next_run(frequency, now),
                created_at=now,
            )
            await store.commit()

        logger.info(f"Created {frequency.value} schedule {schedule.id} for project {project.id}")
        return schedule

    async def update(
        self,
        user: User,
        schedule_id: IdLike,
        enabled: Optional[bool] = None,
        query: Optional[str] = None,
        providers: Optional[Sequence[str]] = None,
        frequency: Optional[Union[ScheduleFrequency, str]] = None,
        now: Optional[datetime] = None,
    ) -> ScheduledQuery:
        """
        Partial update. A new frequency restarts the cadence from now.

        Raises:
            NotFoundError: Schedule missing (including deleted meanwhile)
        """
        now = now or datetime.utcnow()
        values = {}
        if enabled is not None:
            values["enabled"] = enabled
        if query is not None:
            values["query"] = self._clean_query(query)
        if providers is not None:
            values["providers"] = validate_providers(providers)
        if frequency is not None:
            frequency = parse_frequency(frequency)
            self._check_frequency_allowed(user.subscription_tier, frequency)
            values["frequency"] = frequency
            values["next_run_at"] = compute_next_run(frequency, now)

        schedule_uuid = parse_uuid(schedule_id, "schedule_id")
        async with self.locks.lock_for(schedule_uuid):
            async with self._store() as store:
                schedule = await self._owned_schedule(store, user, schedule_uuid)
                if not values:
                    return schedule

                updated = await store.update_schedule(schedule_uuid, values)
                if updated is None:
                    raise NotFoundError("Schedule not found")
                await store.commit()

        logger.info(f"Updated schedule {schedule_uuid}: {sorted(values)}")
        return updated

    async def toggle(self, user: User, schedule_id: IdLike) -> ScheduledQuery:
        """Pause or resume; next_run_at is kept, so a resumed overdue schedule runs at the next trigger"""
        schedule_uuid = parse_uuid(schedule_id, "schedule_id")
        async with self.locks.lock_for(schedule_uuid):
            async with self._store() as store:
                await self._owned_schedule(store, user, schedule_uuid)
                schedule = await store.toggle_schedule(schedule_uuid)
                if schedule is None:
                    raise NotFoundError("Schedule not found")
                await store.commit()

        logger.info(f"Schedule {schedule_uuid} {'resumed' if schedule.enabled else 'paused'}")
        return schedule

    async def delete(self, user: User, schedule_id: IdLike) -> None:
        schedule_uuid = parse_uuid(schedule_id, "schedule_id")
        async with self.locks.lock_for(schedule_uuid):
            async with self._store() as store:
                await self._owned_schedule(store, user, schedule_uuid)
                if not await store.delete_schedule(schedule_uuid):
                    raise NotFoundError("Schedule not found")
                await store.commit()

        logger.info(f"Deleted schedule {schedule_uuid}")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_due(self, schedule_id: IdLike, now: Optional[datetime] = None) -> Optional[List[VisibilityCheck]]:
        """
        Run one schedule if it is enabled, due and unclaimed.

        The claim and the final cadence write hold the per-id lock; the
        check batch itself runs outside it so pause and delete stay
        responsive. A failed run releases the claim and keeps next_run_at.

        Returns:
            Recorded checks, or None when another trigger owns the run or the
            schedule is not due
        """
        now = now or datetime.utcnow()
        schedule_uuid = parse_uuid(schedule_id, "schedule_id")

        async with self._store() as store:
            async with self.locks.lock_for(schedule_uuid):
                claimed = await store.claim_schedule(schedule_uuid, now, self.claim_lease_seconds)
                await store.commit()
            if not claimed:
                logger.info(f"Schedule {schedule_uuid} not claimable, skipping")
                return None

            schedule = await store.get_schedule(schedule_uuid)
            project = await store.get_project(schedule.project_id) if schedule else None

            try:
                if project is None:
                    raise NotFoundError("Schedule or project removed before run")
                runner = CheckRunner(store, self.executor)
                checks = await runner.run_scheduled(
                    project,
                    schedule.query,
                    filter_known_providers(schedule.providers),
                    schedule_uuid,
                    now=now,
                )
            except Exception:
                await store.rollback()
                async with self.locks.lock_for(schedule_uuid):
                    await store.release_schedule_claim(schedule_uuid)
                    await store.commit()
                raise

            async with self.locks.lock_for(schedule_uuid):
                advanced = await store.finish_schedule_run(
                    schedule_uuid, now, compute_next_run(schedule.frequency, now)
                )
                await store.commit()

        if advanced:
            logger.info(f"Schedule {schedule_uuid} ran {len(checks)} checks")
        else:
            logger.info(f"Schedule {schedule_uuid} was deleted during its run")
        return checks

    async def process_due(self, now: Optional[datetime] = None) -> DueRunSummary:
        """Run up to SCHEDULE_DUE_BATCH_SIZE due schedules concurrently"""
        now = now or datetime.utcnow()

        async with self._store() as store:
            due_ids = await store.list_due_schedule_ids(now, self.due_batch_size)

        summary = DueRunSummary(due=len(due_ids))
        if not due_ids:
            return summary

        results = await asyncio.gather(
            *(self.run_due(schedule_id, now) for schedule_id in due_ids),
            return_exceptions=True,
        )

        for schedule_id, result in zip(due_ids, results):
            if isinstance(result, BaseException):
                summary.failed.append(str(schedule_id))
                logger.warning(f"Scheduled run {schedule_id} failed: {result!r}")
            elif result is None:
                summary.skipped += 1
            else:
                summary.ran += 1

        logger.info(
            f"Processed {summary.due} due schedules: {summary.ran} ran, "
            f"{summary.skipped} skipped, {len(summary.failed)} failed"
        )
        return summary

    # ------------------------------------------------------------------
    # Suggestion
    # ------------------------------------------------------------------

    async def _suggestion(self, store: VisibilityStore, project_id: UUID) -> Optional[ScheduleSuggestion]:
        if await store.count_schedules(project_id) > 0:
            return None
        if await store.get_preference(project_id, SUGGESTION_DISMISSED_KEY):
            return None

        batch = await store.latest_manual_batch(project_id)
        if not batch:
            return None

        used = {check.llm_provider for check in batch}
        providers = [p.id for p in PROVIDERS if p.id in used]
        if not providers:
            return None
        return ScheduleSuggestion(query=batch[0].query, providers=providers)

    async def get_suggestion(self, user: User, project_id: IdLike) -> Optional[ScheduleSuggestion]:
        async with self._store() as store:
            project = await store.get_owned_project(project_id, user.id)
            return await self._suggestion(store, project.id)

    async def dismiss_suggestion(self, user: User, project_id: IdLike) -> None:
        async with self._store() as store:
            project = await store.get_owned_project(project_id, user.id)
            await store.set_preference(project.id, SUGGESTION_DISMISSED_KEY, True)
            await store.commit()

    async def accept_suggestion(
        self,
        user: User,
        project_id: IdLike,
        now: Optional[datetime] = None,
    ) -> ScheduledQuery:
        """
        Create the suggested weekly schedule.

        Raises:
            NotFoundError: Nothing to suggest for this project
        """
        async with self._store() as store:
            project = await store.get_owned_project(project_id, user.id)
            suggestion = await self._suggestion(store, project.id)

        if suggestion is None:
            raise NotFoundError("No schedule suggestion for this project")

        return await self.create(
            user,
            project.id,
            suggestion.query,
            suggestion.providers,
            suggestion.frequency,
            now=now,
        )
