"""
Visibility Check Schemas
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from visibility_engine.models import CheckSource
from visibility_engine.schemas.confidence import ConfidenceBadgeResponse


class CompetitorMention(BaseModel):
    """Whether a competitor domain appeared in an answer, and where"""
    domain: str = Field(..., min_length=1)
    mentioned: bool
    position: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def position_only_when_mentioned(self):
        if not self.mentioned:
            # A rank for an absent competitor carries no meaning
            self.position = None
        elif self.position is None:
            raise ValueError(f"position is required when {self.domain} is mentioned")
        return self


class CheckOutcome(BaseModel):
    """One (query, provider) result as returned by the check executor"""
    query: str
    provider: str
    brand_mentioned: bool = False
    url_cited: bool = False
    citation_position: Optional[int] = Field(None, ge=1)
    response_text: Optional[str] = None
    competitor_mentions: List[CompetitorMention] = []


class CheckBatchResponse(BaseModel):
    """Executor batch response body"""
    results: List[CheckOutcome]


class VisibilityRunRequest(BaseModel):
    """Run a visibility check over selected queries and providers"""
    keyword_ids: List[str] = Field(..., min_length=1, max_length=100)
    providers: List[str] = Field(..., min_length=1)
    region: Optional[str] = None
    language: Optional[str] = None


class VisibilityCheckResponse(BaseModel):
    """Stored check"""
    id: UUID
    project_id: UUID
    keyword_id: Optional[UUID] = None
    schedule_id: Optional[UUID] = None
    query: str
    llm_provider: str
    brand_mentioned: bool
    url_cited: bool
    citation_position: Optional[int] = None
    response_text: Optional[str] = None
    competitor_mentions: List[CompetitorMention] = []
    region: Optional[str] = None
    language: Optional[str] = None
    batch_id: UUID
    source: CheckSource
    checked_at: datetime

    class Config:
        from_attributes = True


class VisibilityMetaResponse(BaseModel):
    """Freshness and diversity metadata for a project's history"""
    has_history: bool
    checks: int = 0
    provider_count: int = 0
    provider_total: int = 0
    query_count: int = 0
    latest_checked_at: Optional[datetime] = None
    last_checked_label: Optional[str] = None
    confidence: Optional[ConfidenceBadgeResponse] = None


class CompetitorGap(BaseModel):
    domain: str
    position: Optional[int] = None


class VisibilityGapResponse(BaseModel):
    """Query where competitors show up and the brand does not"""
    query: str
    providers: List[str]
    user_mentioned: bool
    user_cited: bool
    competitors_cited: List[CompetitorGap]
