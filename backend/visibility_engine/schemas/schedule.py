"""
Scheduled Query Schemas
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from visibility_engine.models import ScheduleFrequency


class ScheduleCreate(BaseModel):
    """Create a recurring check"""
    project_id: UUID
    query: str = Field(..., min_length=1, max_length=500)
    providers: List[str] = Field(..., min_length=1)
    frequency: ScheduleFrequency


class ScheduleUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged"""
    enabled: Optional[bool] = None
    query: Optional[str] = Field(None, min_length=1, max_length=500)
    providers: Optional[List[str]] = Field(None, min_length=1)
    frequency: Optional[ScheduleFrequency] = None


class ScheduleResponse(BaseModel):
    id: UUID
    project_id: UUID
    query: str
    providers: List[str]
    frequency: ScheduleFrequency
    enabled: bool
    last_run_at: Optional[datetime] = None
    next_run_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class ScheduleSuggestionResponse(BaseModel):
    """Offer shown after manual runs while a project has no schedules"""
    suggested: bool
    query: Optional[str] = None
    providers: List[str] = []
    frequency: Optional[ScheduleFrequency] = None


class ProjectScopedRequest(BaseModel):
    project_id: UUID
