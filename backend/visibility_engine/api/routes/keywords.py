"""
Keyword API Routes
Persona query materialization and batch keyword creation
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from visibility_engine.api.middleware import get_current_user
from visibility_engine.models import User
from visibility_engine.schemas.keyword import (
    KeywordBatchCreate,
    KeywordResponse,
    MaterializeRequest,
    MaterializeResponse,
)
from visibility_engine.services.errors import ValidationError
from visibility_engine.services.plan_limits import get_plan_limits
from visibility_engine.services.query_materializer import QueryMaterializer
from visibility_engine.services.store import VisibilityStore
from visibility_engine.utils import get_db

router = APIRouter()


@router.post("/{project_id}/materialize", response_model=MaterializeResponse)
async def materialize_queries(
    project_id: UUID,
    request: MaterializeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Resolve keyword ids and persona:<id>:<query> tokens to keyword ids"""
    store = VisibilityStore(db)
    project = await store.get_owned_project(project_id, current_user.id)

    keyword_ids = await QueryMaterializer(store).materialize(
        project, request.tokens, tier=current_user.subscription_tier
    )
    return MaterializeResponse(keyword_ids=keyword_ids)


@router.post(
    "/{project_id}/batch",
    response_model=List[KeywordResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_keywords_batch(
    project_id: UUID,
    request: KeywordBatchCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Save keywords in one transaction, re-using existing ones with the same text"""
    texts = [k.strip() for k in request.keywords]
    if not all(texts):
        raise ValidationError("Keywords must not be empty")

    store = VisibilityStore(db)
    project = await store.get_owned_project(project_id, current_user.id)

    limit = get_plan_limits(current_user.subscription_tier)["saved_keywords"]
    keywords = await store.create_keywords_batch(project.id, texts, limit=limit)
    await store.commit()

    return keywords
