"""
Shared FastAPI dependencies for engine services
"""

from fastapi import Depends

from visibility_engine.adapters.execution import BaseCheckExecutor, get_executor
from visibility_engine.services.schedule_manager import (
    ScheduleLockRegistry, ScheduleManager, SessionFactory
)
from visibility_engine.utils import get_db_context

# Shared by every request in this process so per-schedule locks actually serialize
schedule_locks = ScheduleLockRegistry()


def get_check_executor() -> BaseCheckExecutor:
    return get_executor()


def get_session_factory() -> SessionFactory:
    return get_db_context


def get_schedule_manager(
    session_factory: SessionFactory = Depends(get_session_factory),
    executor: BaseCheckExecutor = Depends(get_check_executor),
) -> ScheduleManager:
    return ScheduleManager(session_factory, executor, locks=schedule_locks)
