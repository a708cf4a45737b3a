"""
Visibility API Routes
Run checks, read history, freshness metadata and content gaps
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from visibility_engine.adapters.execution import BaseCheckExecutor
from visibility_engine.api.dependencies import get_check_executor
from visibility_engine.api.middleware import get_current_user, limit_visibility_runs
from visibility_engine.models import User
from visibility_engine.schemas.confidence import ConfidenceBadgeResponse
from visibility_engine.schemas.visibility import (
    CompetitorGap,
    VisibilityCheckResponse,
    VisibilityGapResponse,
    VisibilityMetaResponse,
    VisibilityRunRequest,
)
from visibility_engine.services.check_runner import CheckRunner
from visibility_engine.services.history import HistoryAggregator
from visibility_engine.services.query_materializer import QueryMaterializer
from visibility_engine.services.store import VisibilityStore
from visibility_engine.utils import get_db

router = APIRouter()


@router.post("/{project_id}/run", response_model=List[VisibilityCheckResponse])
async def run_visibility_check(
    project_id: UUID,
    request: VisibilityRunRequest,
    current_user: User = Depends(limit_visibility_runs),
    db: AsyncSession = Depends(get_db),
    executor: BaseCheckExecutor = Depends(get_check_executor),
):
    """
    Run the selected queries against the selected providers.

    Input and plan checks run first; only then are persona queries in
    `keyword_ids` saved as keywords. Clients re-fetch history afterwards;
    this returns only the new checks.
    """
    store = VisibilityStore(db)
    project = await store.get_owned_project(project_id, current_user.id)
    runner = CheckRunner(store, executor)

    await runner.preflight(
        current_user,
        project,
        request.keyword_ids,
        request.providers,
        region=request.region,
        language=request.language,
    )

    keyword_ids = await QueryMaterializer(store).materialize(
        project, request.keyword_ids, tier=current_user.subscription_tier
    )

    return await runner.run(
        current_user,
        project,
        keyword_ids,
        request.providers,
        region=request.region,
        language=request.language,
    )


@router.get("/{project_id}", response_model=List[VisibilityCheckResponse])
async def list_visibility_history(
    project_id: UUID,
    region: Optional[str] = Query(None, max_length=10),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """All checks of a project, newest first"""
    store = VisibilityStore(db)
    project = await store.get_owned_project(project_id, current_user.id)
    return await HistoryAggregator(store).list_history(project, region)


@router.get("/{project_id}/meta", response_model=VisibilityMetaResponse)
async def get_visibility_meta(
    project_id: UUID,
    region: Optional[str] = Query(None, max_length=10),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Freshness, provider/query diversity and coverage confidence"""
    store = VisibilityStore(db)
    project = await store.get_owned_project(project_id, current_user.id)

    meta = await HistoryAggregator(store).meta(project, region)
    if meta is None:
        return VisibilityMetaResponse(has_history=False)

    return VisibilityMetaResponse(
        has_history=True,
        checks=meta.checks,
        provider_count=meta.provider_count,
        provider_total=meta.provider_total,
        query_count=meta.query_count,
        latest_checked_at=meta.latest_checked_at,
        last_checked_label=meta.last_checked_label,
        confidence=ConfidenceBadgeResponse(**meta.confidence.to_dict()),
    )


@router.get("/{project_id}/gaps", response_model=List[VisibilityGapResponse])
async def get_visibility_gaps(
    project_id: UUID,
    tracked_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Queries where competitors are mentioned and the brand is not"""
    store = VisibilityStore(db)
    project = await store.get_owned_project(project_id, current_user.id)

    gaps = await HistoryAggregator(store).gaps(project, tracked_only=tracked_only)
    return [
        VisibilityGapResponse(
            query=gap.query,
            providers=gap.providers,
            user_mentioned=gap.user_mentioned,
            user_cited=gap.user_cited,
            competitors_cited=[CompetitorGap(**c) for c in gap.competitors_cited],
        )
        for gap in gaps
    ]
