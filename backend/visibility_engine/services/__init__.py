"""
Visibility Engine Services
"""

from .errors import (
    VisibilityEngineError,
    ValidationError,
    QuotaError,
    NotFoundError,
    TransientError,
    AuthError,
    ExecutorConfigurationError,
    RateLimitError,
)
from .store import VisibilityStore
from .query_materializer import QueryMaterializer
from .check_runner import CheckRunner
from .history import HistoryAggregator
from .schedule_manager import ScheduleManager, ScheduleLockRegistry

__all__ = [
    "VisibilityEngineError",
    "ValidationError",
    "QuotaError",
    "NotFoundError",
    "TransientError",
    "AuthError",
    "ExecutorConfigurationError",
    "RateLimitError",
    "VisibilityStore",
    "QueryMaterializer",
    "CheckRunner",
    "HistoryAggregator",
    "ScheduleManager",
    "ScheduleLockRegistry",
]
