"""
Check Runner
Executes the (query x provider) cross product for a project and records the results
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID, uuid4

from visibility_engine.adapters.execution.base import BaseCheckExecutor, CheckBatch, CheckRequest
from visibility_engine.config import REGION_LANGUAGES, get_settings
from visibility_engine.models import (
    CheckSource, Keyword, Project, SubscriptionTier, User, VisibilityCheck
)
from visibility_engine.schemas.visibility import CheckOutcome
from visibility_engine.services.errors import (
    CheckExecutionTimeout,
    IncompleteBatchError,
    QuotaError,
    ValidationError,
)
from visibility_engine.services.plan_limits import can_run_visibility_checks, get_plan_limits
from visibility_engine.services.providers import validate_providers
from visibility_engine.services.query_materializer import parse_tokens
from visibility_engine.services.store import VisibilityStore, parse_uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionScope:
    region: str
    language: str


@dataclass(frozen=True)
class QueryItem:
    """Query text, and the keyword it came from when there is one"""
    query: str
    keyword_id: Optional[UUID] = None


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def resolve_region(
    tier: SubscriptionTier,
    region: Optional[str],
    language: Optional[str] = None,
) -> Optional[RegionScope]:
    """
    Validate a region filter against the plan and the region table.

    Raises:
        QuotaError: Regional filtering is not part of the plan
        ValidationError: Unknown region
    """
    if not region:
        return None

    if not get_plan_limits(tier)["regional_filtering"]:
        raise QuotaError(
            "Regional filtering is available on Pro and Agency plans.",
            details={"required_tier": SubscriptionTier.PRO.value},
        )

    region = region.lower()
    if region not in REGION_LANGUAGES:
        raise ValidationError(
            f"Unknown region: {region}",
            details={"valid_regions": sorted(REGION_LANGUAGES)},
        )

    return RegionScope(region=region, language=(language or REGION_LANGUAGES[region]).lower())


def verify_complete(batch: CheckBatch, outcomes: Sequence[CheckOutcome]) -> None:
    """
    Every requested (query, provider) pair must be answered exactly once.

    Raises:
        IncompleteBatchError: Missing, duplicate or unrequested results
    """
    counts = Counter((o.query, o.provider) for o in outcomes)
    expected = batch.keys

    missing = expected - set(counts)
    unexpected = set(counts) - expected
    duplicated = [key for key, n in counts.items() if n > 1]

    if missing or unexpected or duplicated:
        raise IncompleteBatchError(
            "Check executor returned an incomplete batch",
            details={
                "missing": len(missing),
                "unexpected": len(unexpected),
                "duplicated": len(duplicated),
            },
        )


class CheckRunner:
    """
    Runs check batches through the executor.

    A run either records a result for every requested pair or records
    nothing; all rows of one run share a batch_id.
    """

    def __init__(
        self,
        store: VisibilityStore,
        executor: BaseCheckExecutor,
        batch_timeout: Optional[float] = None,
    ):
        self.store = store
        self.executor = executor
        self.batch_timeout = batch_timeout or get_settings().CHECK_BATCH_TIMEOUT

    async def preflight(
        self,
        user: User,
        project: Project,
        tokens: Sequence[str],
        provider_ids: Sequence[str],
        region: Optional[str] = None,
        language: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Input and plan checks for a selection that may still hold persona tokens.

        Runs before the materializer saves anything. The query count is a
        case-insensitive distinct count, never above what `run` will submit;
        `run` repeats the allowance check on the materialized selection.

        Raises:
            ValidationError: Empty selection, unknown provider or region,
                empty persona query, foreign keyword
            QuotaError: Region filter or monthly allowance beyond the plan
        """
        now = now or datetime.utcnow()

        selection = parse_tokens(tokens)
        if not selection.keyword_ids and not selection.persona_queries:
            raise ValidationError("At least one query must be selected")
        providers = validate_providers(provider_ids)
        resolve_region(user.subscription_tier, region, language)

        keywords = await self._owned_keywords(project, selection.keyword_ids)
        queries = {k.keyword.lower() for k in keywords}
        queries.update(text.lower() for text in selection.persona_queries)

        await self._check_allowance(user, project, len(queries) * len(providers), now)

    async def run(
        self,
        user: User,
        project: Project,
        keyword_ids: Sequence[str],
        provider_ids: Sequence[str],
        region: Optional[str] = None,
        language: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[VisibilityCheck]:
        """
        User-initiated run over persisted keywords.

        Raises:
            ValidationError: Empty selection, unknown provider, foreign keyword
            QuotaError: Region filter or monthly allowance beyond the plan
            TransientError: Executor failure, timeout or incomplete batch
            ExecutorConfigurationError: Executor rejected the service credentials
        """
        now = now or datetime.utcnow()

        if not keyword_ids:
            raise ValidationError("At least one query must be selected")
        providers = validate_providers(provider_ids)

        tier = user.subscription_tier
        scope = resolve_region(tier, region, language)

        keywords = await self._owned_keywords(project, keyword_ids)
        items = self._dedupe_queries(
            QueryItem(query=k.keyword, keyword_id=k.id) for k in keywords
        )
        await self._check_allowance(user, project, len(items) * len(providers), now)

        return await self._execute(
            project, items, providers, scope, CheckSource.MANUAL, None, now
        )

    async def run_scheduled(
        self,
        project: Project,
        query: str,
        provider_ids: Sequence[str],
        schedule_id: UUID,
        now: Optional[datetime] = None,
    ) -> List[VisibilityCheck]:
        """Run fired by a schedule; does not draw on the manual allowance"""
        now = now or datetime.utcnow()
        query = (query or "").strip()
        if not query:
            raise ValidationError("Scheduled query is empty")
        providers = validate_providers(provider_ids)

        return await self._execute(
            project, [QueryItem(query=query)], providers, None,
            CheckSource.SCHEDULED, schedule_id, now,
        )

    async def _owned_keywords(self, project: Project, keyword_ids: Sequence[str]) -> List[Keyword]:
        """
        Keywords for the given ids, in request order without repeats.

        Raises:
            ValidationError: Malformed id or a keyword outside the project
        """
        requested_ids = []
        for keyword_id in keyword_ids:
            keyword_uuid = parse_uuid(keyword_id, "keyword_id")
            if keyword_uuid not in requested_ids:
                requested_ids.append(keyword_uuid)
        if not requested_ids:
            return []

        keywords = await self.store.get_keywords(project.id, requested_ids)
        by_id = {k.id: k for k in keywords}
        foreign = [str(k) for k in requested_ids if k not in by_id]
        if foreign:
            raise ValidationError(
                "Keyword(s) not found in this project",
                details={"keyword_ids": foreign},
            )
        return [by_id[k] for k in requested_ids]

    async def _check_allowance(self, user: User, project: Project, requested: int, now: datetime) -> None:
        """Monthly manual-check allowance, summed over all of the owner's projects"""
        tier = user.subscription_tier
        project_ids = await self.store.list_owner_project_ids(project.owner_id)
        used = await self.store.count_manual_checks_since(project_ids, month_start(now))
        if not can_run_visibility_checks(tier, used, requested):
            limit = get_plan_limits(tier)["visibility_checks"]
            raise QuotaError(
                f"Monthly limit of {limit} visibility checks reached. "
                f"Upgrade your plan for more checks.",
                details={"limit": limit, "used": used, "requested": requested},
            )

    @staticmethod
    def _dedupe_queries(items) -> List[QueryItem]:
        seen = set()
        unique = []
        for item in items:
            if item.query not in seen:
                seen.add(item.query)
                unique.append(item)
        return unique

    async def _execute(
        self,
        project: Project,
        items: List[QueryItem],
        providers: List[str],
        scope: Optional[RegionScope],
        source: CheckSource,
        schedule_id: Optional[UUID],
        now: datetime,
    ) -> List[VisibilityCheck]:
        competitors = await self.store.list_competitors(project.id)

        batch = CheckBatch(
            project_id=str(project.id),
            target_domain=project.domain,
            checks=[
                CheckRequest(query=item.query, provider=provider)
                for item in items
                for provider in providers
            ],
            competitors=[c.domain for c in competitors],
            region=scope.region if scope else None,
            language=scope.language if scope else None,
        )

        logger.info(
            f"Running {len(batch.checks)} {source.value} checks for project {project.id} "
            f"({len(items)} queries x {len(providers)} providers)"
        )

        try:
            outcomes = await asyncio.wait_for(
                self.executor.run_batch(batch), timeout=self.batch_timeout
            )
        except asyncio.TimeoutError:
            raise CheckExecutionTimeout(
                f"Check batch did not complete within {self.batch_timeout}s",
                details={"checks": len(batch.checks)},
            )

        verify_complete(batch, outcomes)

        keyword_by_query = {item.query: item.keyword_id for item in items}
        batch_id = uuid4()
        checks = [
            self._to_check(project, outcome, keyword_by_query, scope, source, schedule_id, batch_id, now)
            for outcome in outcomes
        ]

        await self.store.append_checks(checks)
        await self.store.commit()

        logger.info(f"Recorded batch {batch_id} ({len(checks)} checks) for project {project.id}")
        return checks

    @staticmethod
    def _to_check(
        project: Project,
        outcome: CheckOutcome,
        keyword_by_query: dict,
        scope: Optional[RegionScope],
        source: CheckSource,
        schedule_id: Optional[UUID],
        batch_id: UUID,
        now: datetime,
    ) -> VisibilityCheck:
        return VisibilityCheck(
            project_id=project.id,
            keyword_id=keyword_by_query.get(outcome.query),
            schedule_id=schedule_id,
            llm_provider=outcome.provider,
            query=outcome.query,
            brand_mentioned=outcome.brand_mentioned,
            url_cited=outcome.url_cited,
            citation_position=outcome.citation_position,
            response_text=outcome.response_text,
            competitor_mentions=[m.model_dump() for m in outcome.competitor_mentions],
            region=scope.region if scope else None,
            language=scope.language if scope else None,
            batch_id=batch_id,
            source=source,
            checked_at=now,
        )

