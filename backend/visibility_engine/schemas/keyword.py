"""
Keyword Schemas
"""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class KeywordBatchCreate(BaseModel):
    """Save several keywords at once; existing texts are re-used"""
    keywords: List[str] = Field(..., min_length=1, max_length=100)


class MaterializeRequest(BaseModel):
    """Mixed selection of keyword ids and persona:<id>:<query> tokens"""
    tokens: List[str] = Field(..., min_length=1, max_length=100)


class MaterializeResponse(BaseModel):
    keyword_ids: List[str]


class KeywordResponse(BaseModel):
    id: UUID
    project_id: UUID
    keyword: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
