"""
Pydantic Schemas for API Request/Response validation
"""

from .confidence import (
    ConfidenceBadgeResponse,
    RecommendationConfidenceRequest,
    RecommendationConfidenceResponse,
)
from .visibility import (
    CompetitorMention,
    CheckOutcome,
    CheckBatchResponse,
    VisibilityRunRequest,
    VisibilityCheckResponse,
    VisibilityMetaResponse,
    VisibilityGapResponse,
)
from .keyword import (
    KeywordBatchCreate,
    KeywordResponse,
    MaterializeRequest,
    MaterializeResponse,
)
from .schedule import (
    ScheduleCreate,
    ScheduleUpdate,
    ScheduleResponse,
    ScheduleSuggestionResponse,
    ProjectScopedRequest,
)

__all__ = [
    # Confidence
    "ConfidenceBadgeResponse",
    "RecommendationConfidenceRequest",
    "RecommendationConfidenceResponse",
    # Visibility
    "CompetitorMention",
    "CheckOutcome",
    "CheckBatchResponse",
    "VisibilityRunRequest",
    "VisibilityCheckResponse",
    "VisibilityMetaResponse",
    "VisibilityGapResponse",
    # Keyword
    "KeywordBatchCreate",
    "KeywordResponse",
    "MaterializeRequest",
    "MaterializeResponse",
    # Schedule
    "ScheduleCreate",
    "ScheduleUpdate",
    "ScheduleResponse",
    "ScheduleSuggestionResponse",
    "ProjectScopedRequest",
]
