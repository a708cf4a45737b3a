"""
Confidence Engine
Deterministic High/Medium/Low trust badges from sample sizes and signals

Confidence never raises: missing, zero or garbage inputs degrade to Low,
since "not enough data yet" is an expected state.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

from visibility_engine.services.providers import PROVIDERS


class ConfidenceLevel(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


@dataclass(frozen=True)
class ConfidenceBadge:
    """Derived trust label, recomputed on every read"""
    label: ConfidenceLevel
    variant: str

    def to_dict(self) -> dict:
        return {"label": self.label.value, "variant": self.variant}


HIGH = ConfidenceBadge(ConfidenceLevel.HIGH, "success")
MEDIUM = ConfidenceBadge(ConfidenceLevel.MEDIUM, "warning")
LOW = ConfidenceBadge(ConfidenceLevel.LOW, "destructive")

# Page-sample thresholds
PAGE_SAMPLE_HIGH = 75
PAGE_SAMPLE_MEDIUM = 25

# Visibility coverage thresholds: (checks, distinct providers, distinct queries)
COVERAGE_HIGH = (30, 4, 5)
COVERAGE_MEDIUM = (12, 3, 3)

# Recommendation points needed per level
RECOMMENDATION_HIGH_POINTS = 5
RECOMMENDATION_MEDIUM_POINTS = 2


def _non_negative(value: Any) -> float:
    """Clamp a possibly missing/negative/non-numeric input to >= 0"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or number < 0:
        return 0.0
    return number


def confidence_from_page_sample(pages_sampled: Any) -> ConfidenceBadge:
    """Confidence in a site-wide finding given how many pages were sampled"""
    pages = _non_negative(pages_sampled)
    if pages >= PAGE_SAMPLE_HIGH:
        return HIGH
    if pages >= PAGE_SAMPLE_MEDIUM:
        return MEDIUM
    return LOW


def confidence_from_visibility_coverage(
    checks: Any,
    providers: Any,
    queries: Any,
) -> ConfidenceBadge:
    """
    Confidence in visibility results given how broadly they were sampled.

    Every sub-condition of a level must hold. Volume alone does not upgrade
    a level: one provider queried 50 times stays Low.
    """
    sample = (_non_negative(checks), _non_negative(providers), _non_negative(queries))

    if all(value >= minimum for value, minimum in zip(sample, COVERAGE_HIGH)):
        return HIGH
    if all(value >= minimum for value, minimum in zip(sample, COVERAGE_MEDIUM)):
        return MEDIUM
    return LOW


def recommendation_points(
    severity: Optional[str] = None,
    score_impact: Any = None,
    affected_pages: Any = None,
    total_pages: Any = None,
) -> int:
    """Points behind a recommendation's confidence (0..8)"""
    points = 0

    severity = str(getattr(severity, "value", severity) or "").strip().lower()
    if severity == "critical":
        points += 2
    elif severity == "warning":
        points += 1

    impact = _non_negative(score_impact)
    if impact >= 12:
        points += 2
    elif impact >= 6:
        points += 1

    affected = _non_negative(affected_pages)
    if affected >= 8:
        points += 2
    elif affected >= 3:
        points += 1

    total = _non_negative(total_pages)
    ratio = affected / total if total > 0 else 0.0
    if ratio >= 0.3:
        points += 1
    if ratio >= 0.6:
        points += 1

    return points


def confidence_from_recommendation(
    severity: Optional[str] = None,
    score_impact: Any = None,
    affected_pages: Any = None,
    total_pages: Any = None,
) -> ConfidenceBadge:
    """Confidence that acting on a recommendation will pay off"""
    points = recommendation_points(severity, score_impact, affected_pages, total_pages)
    if points >= RECOMMENDATION_HIGH_POINTS:
        return HIGH
    if points >= RECOMMENDATION_MEDIUM_POINTS:
        return MEDIUM
    return LOW


def _to_naive_utc(value: Union[datetime, str, None]) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def relative_time_label(
    value: Union[datetime, str, None],
    now: Optional[datetime] = None,
) -> str:
    """Human label for how long ago something happened ("3h ago")"""
    timestamp = _to_naive_utc(value)
    if timestamp is None:
        return "Unknown"

    now = _to_naive_utc(now) or datetime.utcnow()
    diff = (now - timestamp).total_seconds()

    if diff < 60:
        return "Just now"

    minutes = int(diff // 60)
    if minutes < 60:
        return f"{minutes}m ago"

    hours = int(diff // 3600)
    if hours < 24:
        return f"{hours}h ago"

    days = int(diff // 86400)
    if days < 30:
        return f"{days}d ago"

    return timestamp.date().isoformat()


@dataclass(frozen=True)
class VisibilityMeta:
    """Freshness and diversity of a project's check history"""
    checks: int
    provider_count: int
    provider_total: int
    query_count: int
    latest_checked_at: Optional[datetime]
    last_checked_label: str
    confidence: ConfidenceBadge


def summarize_visibility_history(
    checks: Iterable[Any],
    now: Optional[datetime] = None,
) -> Optional[VisibilityMeta]:
    """
    Derive freshness metadata and coverage confidence from check history.

    Returns None for an empty history.
    """
    providers = set()
    queries = set()
    latest = None
    total = 0

    for check in checks:
        total += 1
        providers.add(check.llm_provider)
        queries.add(check.query)

        checked_at = _to_naive_utc(check.checked_at)
        if checked_at is not None and (latest is None or checked_at > latest):
            latest = checked_at

    if total == 0:
        return None

    return VisibilityMeta(
        checks=total,
        provider_count=len(providers),
        provider_total=len(PROVIDERS),
        query_count=len(queries),
        latest_checked_at=latest,
        last_checked_label=relative_time_label(latest, now),
        confidence=confidence_from_visibility_coverage(total, len(providers), len(queries)),
    )
