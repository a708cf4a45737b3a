"""
Celery Application
Beat fires the due-schedule trigger; workers run it on the visibility_checks queue
"""

from datetime import timedelta

from celery import Celery
from kombu import Exchange, Queue

from visibility_engine.config import get_settings

TASKS_MODULE = "visibility_engine.workers.tasks.scheduled_tasks"
PROCESS_DUE_TASK = f"{TASKS_MODULE}.process_due_schedules"

settings = get_settings()

celery_app = Celery(
    "visibility_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[TASKS_MODULE],
)

visibility_exchange = Exchange("visibility_checks", type="direct")

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=timedelta(days=1),

    # A run that outlives its claim lease may be re-claimed by another worker
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=settings.SCHEDULE_CLAIM_LEASE_SECONDS,
    task_soft_time_limit=settings.SCHEDULE_CLAIM_LEASE_SECONDS - 60,
    worker_prefetch_multiplier=1,

    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("visibility_checks", visibility_exchange, routing_key="visibility"),
    ),
    task_default_queue="default",
    task_routes={f"{TASKS_MODULE}.*": {"queue": "visibility_checks", "routing_key": "visibility"}},

    beat_schedule={
        "process-due-visibility-schedules": {
            "task": PROCESS_DUE_TASK,
            "schedule": timedelta(seconds=settings.SCHEDULE_TRIGGER_INTERVAL_SECONDS),
            # A trigger older than one interval is superseded by the next one
            "options": {"expires": settings.SCHEDULE_TRIGGER_INTERVAL_SECONDS},
        },
    },
)
