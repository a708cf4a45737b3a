"""
Provider Selection Schemas
"""

from typing import List

from pydantic import BaseModel

from visibility_engine.services.providers import ProviderPreset, VisibilityIntent


class ProviderInfo(BaseModel):
    id: str
    label: str


class PresetInfo(BaseModel):
    id: ProviderPreset
    label: str
    providers: List[str]
    requires_pro: bool


class ProviderCatalogResponse(BaseModel):
    """Catalog in display order, with the presets and intents built on it"""
    providers: List[ProviderInfo]
    presets: List[PresetInfo]
    intents: List[VisibilityIntent]


class RecommendedProvidersResponse(BaseModel):
    intent: VisibilityIntent
    providers: List[str]


class ApplyPresetRequest(BaseModel):
    preset: ProviderPreset


class ApplyIntentRequest(BaseModel):
    intent: VisibilityIntent


class ProjectProvidersResponse(BaseModel):
    """Project's provider selection after a replace"""
    project_id: str
    providers: List[str]
