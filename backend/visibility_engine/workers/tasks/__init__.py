"""
Celery Tasks
"""

from .scheduled_tasks import process_due_schedules, run_scheduled_query

__all__ = [
    "process_due_schedules",
    "run_scheduled_query",
]
