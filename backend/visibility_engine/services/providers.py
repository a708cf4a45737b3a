"""
Provider Registry & Preset Selector
Fixed catalog of AI answer engines plus preset and intent-based selections
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from visibility_engine.models import LLMProvider, SubscriptionTier
from visibility_engine.services.errors import QuotaError, ValidationError
from visibility_engine.services.plan_limits import is_pro_or_above


@dataclass(frozen=True)
class Provider:
    """Immutable catalog entry"""
    id: str
    label: str


PROVIDERS: Tuple[Provider, ...] = (
    Provider(LLMProvider.CHATGPT.value, "ChatGPT"),
    Provider(LLMProvider.CLAUDE.value, "Claude"),
    Provider(LLMProvider.PERPLEXITY.value, "Perplexity"),
    Provider(LLMProvider.GEMINI.value, "Gemini"),
    Provider(LLMProvider.COPILOT.value, "Copilot"),
    Provider(LLMProvider.GEMINI_AI_MODE.value, "AI Search (Gemini)"),
    Provider(LLMProvider.GROK.value, "Grok"),
)

PROVIDER_IDS = frozenset(p.id for p in PROVIDERS)


class ProviderPreset(str, Enum):
    BALANCED = "balanced"
    AI_SEARCH_FOCUS = "ai_search_focus"
    FULL_COVERAGE = "full_coverage"


class VisibilityIntent(str, Enum):
    DISCOVERY = "discovery"
    COMPARISON = "comparison"
    TRANSACTIONAL = "transactional"


PRESETS = {
    ProviderPreset.BALANCED: ("chatgpt", "claude", "perplexity", "gemini"),
    ProviderPreset.AI_SEARCH_FOCUS: ("perplexity", "gemini", "gemini_ai_mode"),
    ProviderPreset.FULL_COVERAGE: tuple(p.id for p in PROVIDERS),
}

PRESET_LABELS = {
    ProviderPreset.BALANCED: "Balanced (Recommended)",
    ProviderPreset.AI_SEARCH_FOCUS: "AI Search Focus",
    ProviderPreset.FULL_COVERAGE: "Full Coverage",
}

# Presets that need a pro (or higher) plan
PRO_PRESETS = frozenset({ProviderPreset.FULL_COVERAGE})

# (base tier, pro+ tier)
INTENT_RECOMMENDATIONS = {
    VisibilityIntent.DISCOVERY: (
        ("chatgpt", "claude", "perplexity"),
        ("chatgpt", "claude", "perplexity", "gemini_ai_mode"),
    ),
    VisibilityIntent.COMPARISON: (
        ("perplexity", "gemini", "chatgpt"),
        ("perplexity", "gemini", "chatgpt", "grok"),
    ),
    VisibilityIntent.TRANSACTIONAL: (
        ("chatgpt", "gemini", "copilot"),
        ("chatgpt", "gemini", "copilot", "gemini_ai_mode"),
    ),
}


def get_provider(provider_id: str) -> Provider:
    """Look up a catalog entry, rejecting unknown ids"""
    for provider in PROVIDERS:
        if provider.id == provider_id:
            return provider
    raise ValidationError(
        f"Unknown provider: {provider_id}",
        details={"valid_providers": [p.id for p in PROVIDERS]},
    )


def filter_known_providers(provider_ids: Iterable[str]) -> List[str]:
    """
    Drop ids that are not in the catalog, keeping order and removing repeats.

    Used for stored data, where a provider may have been deprecated since
    the row was written.
    """
    seen = set()
    known = []
    for provider_id in provider_ids or []:
        if provider_id in PROVIDER_IDS and provider_id not in seen:
            seen.add(provider_id)
            known.append(provider_id)
    return known


def validate_providers(provider_ids: Iterable[str]) -> List[str]:
    """
    Validate caller-supplied provider ids.

    Raises:
        ValidationError: If the selection is empty or holds an unknown id
    """
    provider_ids = list(provider_ids or [])
    if not provider_ids:
        raise ValidationError("At least one provider must be selected")

    unknown = sorted({p for p in provider_ids if p not in PROVIDER_IDS})
    if unknown:
        raise ValidationError(
            f"Unknown provider(s): {', '.join(unknown)}",
            details={"valid_providers": [p.id for p in PROVIDERS]},
        )

    return filter_known_providers(provider_ids)


def recommended_providers_for_intent(intent: VisibilityIntent, is_pro: bool) -> List[str]:
    """Ordered recommended provider set for a search intent and plan tier"""
    try:
        base, pro = INTENT_RECOMMENDATIONS[VisibilityIntent(intent)]
    except ValueError:
        raise ValidationError(
            f"Unknown intent: {intent}",
            details={"valid_intents": [i.value for i in VisibilityIntent]},
        )
    return list(pro if is_pro else base)


def resolve_preset(preset: ProviderPreset, tier: SubscriptionTier) -> List[str]:
    """
    Provider list for a preset.

    The result replaces the caller's selection; it is never merged.

    Raises:
        ValidationError: Unknown preset name
        QuotaError: Preset requires a higher plan (selection must stay unchanged)
    """
    try:
        preset = ProviderPreset(preset)
    except ValueError:
        raise ValidationError(
            f"Unknown preset: {preset}",
            details={"valid_presets": [p.value for p in ProviderPreset]},
        )

    if preset in PRO_PRESETS and not is_pro_or_above(tier):
        raise QuotaError(
            f"{PRESET_LABELS[preset]} preset is available on Pro and Agency plans.",
            details={"preset": preset.value, "required_tier": SubscriptionTier.PRO.value},
        )

    return filter_known_providers(PRESETS[preset])


def resolve_intent_preset(intent: VisibilityIntent, tier: SubscriptionTier) -> List[str]:
    """Provider list for the recommended set of an intent"""
    return filter_known_providers(
        recommended_providers_for_intent(intent, is_pro_or_above(tier))
    )
