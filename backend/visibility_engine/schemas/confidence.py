"""
Confidence Schemas
"""

from typing import Optional

from pydantic import BaseModel, Field


class ConfidenceBadgeResponse(BaseModel):
    label: str
    variant: str


class RecommendationConfidenceRequest(BaseModel):
    """Signals behind a recommendation; missing or negative numbers count as 0"""
    severity: Optional[str] = Field(None, max_length=20)
    score_impact: Optional[float] = None
    affected_pages: Optional[float] = None
    total_pages: Optional[float] = None


class RecommendationConfidenceResponse(ConfidenceBadgeResponse):
    points: int
