"""
Scheduled Tasks
Periodic trigger that runs due visibility schedules
"""

import asyncio
from dataclasses import asdict
from typing import Dict, Optional

from celery.utils.log import get_task_logger

from visibility_engine.adapters.execution import get_executor
from visibility_engine.services.schedule_manager import ScheduleManager
from visibility_engine.utils.database import close_db, get_db_context
from visibility_engine.workers.celery_app import celery_app

logger = get_task_logger(__name__)


def run_async(coro):
    """Run async function in sync context"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _manager() -> ScheduleManager:
    return ScheduleManager(get_db_context, get_executor())


async def _process_due() -> Dict:
    try:
        summary = await _manager().process_due()
        return asdict(summary)
    finally:
        # Pooled connections belong to this task's event loop
        await close_db()


async def _run_one(schedule_id: str) -> Optional[int]:
    try:
        checks = await _manager().run_due(schedule_id)
        return None if checks is None else len(checks)
    finally:
        await close_db()


@celery_app.task(
    name="visibility_engine.workers.tasks.scheduled_tasks.process_due_schedules",
)
def process_due_schedules() -> Dict:
    """
    Run every enabled schedule whose next_run_at has passed.
    Fired by beat every SCHEDULE_TRIGGER_INTERVAL_SECONDS.
    """
    try:
        summary = run_async(_process_due())
    except Exception:
        logger.exception("Processing due schedules failed")
        raise

    logger.info(
        f"Due schedules: {summary['due']} due, {summary['ran']} ran, "
        f"{summary['skipped']} skipped, {len(summary['failed'])} failed"
    )
    return summary


@celery_app.task(
    name="visibility_engine.workers.tasks.scheduled_tasks.run_scheduled_query",
)
def run_scheduled_query(schedule_id: str) -> Dict:
    """Run a single schedule now if it is due; a no-op when another worker owns it"""
    try:
        recorded = run_async(_run_one(schedule_id))
    except Exception:
        logger.exception(f"Scheduled query {schedule_id} failed")
        raise

    if recorded is None:
        return {"schedule_id": schedule_id, "status": "skipped"}
    return {"schedule_id": schedule_id, "status": "completed", "checks": recorded}
