"""
API Routes
"""

from fastapi import APIRouter

from .providers import router as providers_router
from .confidence import router as confidence_router
from .keywords import router as keywords_router
from .visibility import router as visibility_router
from .schedules import router as schedules_router

api_router = APIRouter()

api_router.include_router(providers_router, prefix="/providers", tags=["Providers"])
api_router.include_router(confidence_router, prefix="/confidence", tags=["Confidence"])
api_router.include_router(keywords_router, prefix="/keywords", tags=["Keywords"])
api_router.include_router(visibility_router, prefix="/visibility", tags=["Visibility"])
api_router.include_router(schedules_router, prefix="/schedules", tags=["Schedules"])
