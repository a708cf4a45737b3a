"""
Confidence Engine Tests
"""

from datetime import datetime, timedelta
from enum import Enum
from types import SimpleNamespace

import pytest

from visibility_engine.services.confidence import (
    HIGH,
    LOW,
    MEDIUM,
    ConfidenceLevel,
    confidence_from_page_sample,
    confidence_from_recommendation,
    confidence_from_visibility_coverage,
    recommendation_points,
    relative_time_label,
    summarize_visibility_history,
)


NOW = datetime(2026, 3, 15, 12, 0, 0)


# ============================================================================
# PAGE SAMPLE
# ============================================================================

class TestPageSample:
    """Tests for confidence from the number of sampled pages."""

    @pytest.mark.parametrize("pages,expected", [
        (0, LOW),
        (24, LOW),
        (25, MEDIUM),
        (74, MEDIUM),
        (75, HIGH),
        (500, HIGH),
    ])
    def test_boundaries(self, pages, expected):
        assert confidence_from_page_sample(pages) == expected

    def test_monotonic(self):
        order = {ConfidenceLevel.LOW: 0, ConfidenceLevel.MEDIUM: 1, ConfidenceLevel.HIGH: 2}
        levels = [order[confidence_from_page_sample(n).label] for n in range(0, 120)]
        assert levels == sorted(levels)

    @pytest.mark.parametrize("garbage", [None, -10, "lots", float("nan")])
    def test_garbage_degrades_to_low(self, garbage):
        assert confidence_from_page_sample(garbage) == LOW

    def test_badge_variants(self):
        assert HIGH.to_dict() == {"label": "High", "variant": "success"}
        assert MEDIUM.to_dict() == {"label": "Medium", "variant": "warning"}
        assert LOW.to_dict() == {"label": "Low", "variant": "destructive"}


# ============================================================================
# VISIBILITY COVERAGE
# ============================================================================

class TestVisibilityCoverage:
    """Every sub-condition of a level must hold."""

    def test_high(self):
        assert confidence_from_visibility_coverage(30, 4, 5) == HIGH

    def test_volume_alone_is_not_enough(self):
        assert confidence_from_visibility_coverage(50, 1, 20) == LOW

    def test_one_short_of_high_is_medium(self):
        assert confidence_from_visibility_coverage(30, 3, 5) == MEDIUM
        assert confidence_from_visibility_coverage(29, 4, 5) == MEDIUM
        assert confidence_from_visibility_coverage(30, 4, 4) == MEDIUM

    def test_medium_boundary(self):
        assert confidence_from_visibility_coverage(12, 3, 3) == MEDIUM
        assert confidence_from_visibility_coverage(11, 3, 3) == LOW
        assert confidence_from_visibility_coverage(12, 2, 3) == LOW

    def test_empty(self):
        assert confidence_from_visibility_coverage(0, 0, 0) == LOW


# ============================================================================
# RECOMMENDATION
# ============================================================================

class TestRecommendation:
    """Tests for the points-based recommendation confidence."""

    def test_full_points(self):
        assert recommendation_points("critical", 12, 8, 10) == 8
        assert confidence_from_recommendation("critical", 12, 8, 10) == HIGH

    def test_medium(self):
        # warning +1, impact 6 +1
        assert recommendation_points("warning", 6, 0, 0) == 2
        assert confidence_from_recommendation("warning", 6, 0, 0) == MEDIUM

    def test_low(self):
        assert confidence_from_recommendation("info", 1, 1, 100) == LOW

    def test_ratio_steps(self):
        # 3 of 10 pages: +1 for affected pages, +1 for ratio >= 0.3
        assert recommendation_points(None, 0, 3, 10) == 2
        # 6 of 10 pages: +1 affected, +2 ratio
        assert recommendation_points(None, 0, 6, 10) == 3

    def test_zero_total_pages_has_no_ratio(self):
        assert recommendation_points(None, 0, 8, 0) == 2

    def test_negative_and_missing_clamp_to_zero(self):
        assert recommendation_points("critical", -20, None, -5) == 2

    def test_severity_case_insensitive(self):
        assert recommendation_points("CRITICAL") == 2

    def test_severity_enum_member(self):
        class Severity(Enum):
            CRITICAL = "critical"

        assert recommendation_points(Severity.CRITICAL) == 2

    @pytest.mark.parametrize("severity", [3, 2.5, object(), ["critical"]])
    def test_non_string_severity_never_raises(self, severity):
        assert recommendation_points(severity, 12, 8, 10) == 6
        assert confidence_from_recommendation(severity, 0, 0, 0) == LOW


# ============================================================================
# RELATIVE TIME & HISTORY SUMMARY
# ============================================================================

class TestRelativeTime:
    @pytest.mark.parametrize("delta,label", [
        (timedelta(seconds=30), "Just now"),
        (timedelta(minutes=5), "5m ago"),
        (timedelta(hours=3), "3h ago"),
        (timedelta(days=2), "2d ago"),
    ])
    def test_labels(self, delta, label):
        assert relative_time_label(NOW - delta, NOW) == label

    def test_old_dates_use_iso_date(self):
        assert relative_time_label(datetime(2025, 1, 2, 8, 0), NOW) == "2025-01-02"

    def test_iso_string_input(self):
        assert relative_time_label("2026-03-15T11:00:00Z", NOW) == "1h ago"

    @pytest.mark.parametrize("value", [None, "not a date"])
    def test_unknown(self, value):
        assert relative_time_label(value, NOW) == "Unknown"


def _check(provider, query, minutes_ago=0):
    return SimpleNamespace(
        llm_provider=provider,
        query=query,
        checked_at=NOW - timedelta(minutes=minutes_ago),
    )


class TestSummarizeHistory:
    def test_empty_history(self):
        assert summarize_visibility_history([], NOW) is None

    def test_counts_and_freshness(self):
        checks = [
            _check("chatgpt", "best crm", 90),
            _check("claude", "best crm", 90),
            _check("chatgpt", "crm pricing", 10),
        ]

        meta = summarize_visibility_history(checks, NOW)

        assert meta.checks == 3
        assert meta.provider_count == 2
        assert meta.provider_total == 7
        assert meta.query_count == 2
        assert meta.latest_checked_at == NOW - timedelta(minutes=10)
        assert meta.last_checked_label == "10m ago"
        assert meta.confidence == LOW

    def test_broad_history_is_high(self):
        providers = ["chatgpt", "claude", "perplexity", "gemini"]
        queries = [f"query {i}" for i in range(8)]
        checks = [_check(p, q) for p in providers for q in queries]

        meta = summarize_visibility_history(checks, NOW)

        assert meta.checks == 32
        assert meta.confidence == HIGH
