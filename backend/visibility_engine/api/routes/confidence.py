"""
Confidence API Routes
Stateless confidence badges for sample sizes, coverage and recommendations
"""

from fastapi import APIRouter, Query

from visibility_engine.schemas.confidence import (
    ConfidenceBadgeResponse,
    RecommendationConfidenceRequest,
    RecommendationConfidenceResponse,
)
from visibility_engine.services.confidence import (
    confidence_from_page_sample,
    confidence_from_recommendation,
    confidence_from_visibility_coverage,
    recommendation_points,
)

router = APIRouter()


@router.get("/page-sample", response_model=ConfidenceBadgeResponse)
async def page_sample_confidence(pages_sampled: int = Query(0)):
    return ConfidenceBadgeResponse(**confidence_from_page_sample(pages_sampled).to_dict())


@router.get("/coverage", response_model=ConfidenceBadgeResponse)
async def coverage_confidence(
    checks: int = Query(0),
    providers: int = Query(0),
    queries: int = Query(0),
):
    """Confidence in visibility data given checks, distinct providers and distinct queries"""
    badge = confidence_from_visibility_coverage(checks, providers, queries)
    return ConfidenceBadgeResponse(**badge.to_dict())


@router.post("/recommendation", response_model=RecommendationConfidenceResponse)
async def recommendation_confidence(request: RecommendationConfidenceRequest):
    signals = request.model_dump()
    badge = confidence_from_recommendation(**signals)
    return RecommendationConfidenceResponse(
        **badge.to_dict(),
        points=recommendation_points(**signals),
    )
