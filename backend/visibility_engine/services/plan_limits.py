"""
Plan tier gating
"""

from typing import Any, Dict, Union

from visibility_engine.config import PLAN_LIMITS, TIER_LEVELS
from visibility_engine.models import SubscriptionTier

TierLike = Union[SubscriptionTier, str]


def _tier_value(tier: TierLike) -> str:
    if isinstance(tier, SubscriptionTier):
        return tier.value
    return str(tier)


def get_plan_limits(tier: TierLike) -> Dict[str, Any]:
    """Limits for a tier; unknown tiers get the free allowance"""
    return PLAN_LIMITS.get(_tier_value(tier), PLAN_LIMITS["free"])


def meets_minimum_tier(tier: TierLike, minimum: TierLike) -> bool:
    return TIER_LEVELS.get(_tier_value(tier), 0) >= TIER_LEVELS.get(_tier_value(minimum), 0)


def is_pro_or_above(tier: TierLike) -> bool:
    return meets_minimum_tier(tier, SubscriptionTier.PRO)


def can_run_visibility_checks(tier: TierLike, used_this_month: int, requested: int) -> bool:
    """Whether `requested` more checks fit in the tier's monthly allowance"""
    limit = get_plan_limits(tier)["visibility_checks"]
    return used_this_month + requested <= limit
