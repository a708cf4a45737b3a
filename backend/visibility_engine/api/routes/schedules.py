"""
Scheduled Query API Routes
Recurring visibility checks and the weekly schedule suggestion
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from visibility_engine.api.dependencies import get_schedule_manager
from visibility_engine.api.middleware import get_current_user
from visibility_engine.models import User
from visibility_engine.schemas.schedule import (
    ProjectScopedRequest,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleSuggestionResponse,
    ScheduleUpdate,
)
from visibility_engine.services.schedule_manager import ScheduleManager

router = APIRouter()


# ============================================================================
# SUGGESTION
# ============================================================================

@router.get("/suggestion", response_model=ScheduleSuggestionResponse)
async def get_schedule_suggestion(
    project_id: UUID = Query(...),
    current_user: User = Depends(get_current_user),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    """Weekly schedule offer built from the latest manual run, if any"""
    suggestion = await manager.get_suggestion(current_user, project_id)
    if suggestion is None:
        return ScheduleSuggestionResponse(suggested=False)

    return ScheduleSuggestionResponse(
        suggested=True,
        query=suggestion.query,
        providers=suggestion.providers,
        frequency=suggestion.frequency,
    )


@router.post(
    "/suggestion/accept",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def accept_schedule_suggestion(
    request: ProjectScopedRequest,
    current_user: User = Depends(get_current_user),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    return await manager.accept_suggestion(current_user, request.project_id)


@router.post("/suggestion/dismiss", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_schedule_suggestion(
    request: ProjectScopedRequest,
    current_user: User = Depends(get_current_user),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    await manager.dismiss_suggestion(current_user, request.project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# SCHEDULES
# ============================================================================

@router.get("", response_model=List[ScheduleResponse])
async def list_schedules(
    project_id: UUID = Query(...),
    current_user: User = Depends(get_current_user),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    return await manager.list(current_user, project_id)


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    request: ScheduleCreate,
    current_user: User = Depends(get_current_user),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    """Create a schedule; its first run is one period from now"""
    return await manager.create(
        current_user,
        request.project_id,
        request.query,
        request.providers,
        request.frequency,
    )


@router.patch("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: UUID,
    request: ScheduleUpdate,
    current_user: User = Depends(get_current_user),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    """Partial update; changing the frequency restarts the cadence from now"""
    return await manager.update(
        current_user,
        schedule_id,
        **request.model_dump(exclude_unset=True),
    )


@router.post("/{schedule_id}/toggle", response_model=ScheduleResponse)
async def toggle_schedule(
    schedule_id: UUID,
    current_user: User = Depends(get_current_user),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    """Pause an active schedule or resume a paused one"""
    return await manager.toggle(current_user, schedule_id)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: UUID,
    current_user: User = Depends(get_current_user),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    await manager.delete(current_user, schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
