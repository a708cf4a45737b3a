"""
Provider Selection API Routes
Catalog, presets and intent-based recommendations
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from visibility_engine.api.middleware import get_current_user
from visibility_engine.models import User
from visibility_engine.schemas.provider import (
    ApplyIntentRequest,
    ApplyPresetRequest,
    PresetInfo,
    ProjectProvidersResponse,
    ProviderCatalogResponse,
    ProviderInfo,
    RecommendedProvidersResponse,
)
from visibility_engine.services.plan_limits import is_pro_or_above
from visibility_engine.services.providers import (
    PRESET_LABELS,
    PRESETS,
    PRO_PRESETS,
    PROVIDERS,
    VisibilityIntent,
    recommended_providers_for_intent,
    resolve_intent_preset,
    resolve_preset,
)
from visibility_engine.services.store import VisibilityStore
from visibility_engine.utils import get_db

router = APIRouter()


@router.get("", response_model=ProviderCatalogResponse)
async def get_provider_catalog():
    """Providers in display order, with presets and intents"""
    return ProviderCatalogResponse(
        providers=[ProviderInfo(id=p.id, label=p.label) for p in PROVIDERS],
        presets=[
            PresetInfo(
                id=preset,
                label=PRESET_LABELS[preset],
                providers=list(providers),
                requires_pro=preset in PRO_PRESETS,
            )
            for preset, providers in PRESETS.items()
        ],
        intents=list(VisibilityIntent),
    )


@router.get("/recommended", response_model=RecommendedProvidersResponse)
async def get_recommended_providers(
    intent: VisibilityIntent = Query(...),
    current_user: User = Depends(get_current_user),
):
    """Recommended providers for a search intent on the caller's plan"""
    return RecommendedProvidersResponse(
        intent=intent,
        providers=recommended_providers_for_intent(
            intent, is_pro_or_above(current_user.subscription_tier)
        ),
    )


@router.put("/{project_id}/preset", response_model=ProjectProvidersResponse)
async def apply_preset(
    project_id: UUID,
    request: ApplyPresetRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace the project's provider selection with a preset"""
    store = VisibilityStore(db)
    project = await store.get_owned_project(project_id, current_user.id)

    providers = resolve_preset(request.preset, current_user.subscription_tier)
    await store.set_enabled_providers(project, providers)

    return ProjectProvidersResponse(project_id=str(project.id), providers=providers)


@router.put("/{project_id}/intent", response_model=ProjectProvidersResponse)
async def apply_intent(
    project_id: UUID,
    request: ApplyIntentRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace the project's provider selection with the recommended set for an intent"""
    store = VisibilityStore(db)
    project = await store.get_owned_project(project_id, current_user.id)

    providers = resolve_intent_preset(request.intent, current_user.subscription_tier)
    await store.set_enabled_providers(project, providers)

    return ProjectProvidersResponse(project_id=str(project.id), providers=providers)
