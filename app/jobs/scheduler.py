"""
APScheduler Configuration for the Optimization Engine

Background execution of queued optimization runs (slotting calculation,
wave generation). The periodic trigger that decides when to run them
lives outside this service; it calls the API with run_async or enqueues
directly.

Architecture:
- Jobs are registered with @optimization_job decorator
- enqueue_job() schedules a one-off run of a registered job
- Each run gets its own database session
- A failed run is logged and never affects other runs
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from app.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'misfire_grace_time': settings.OPTIMIZATION_JOB_MISFIRE_GRACE_SECONDS,
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE
)


async def run_queued_job(job_name: str, payload: Dict[str, Any]):
    """
    Wrapper to run an optimization job from the scheduler.

    This function is called by APScheduler and delegates to
    run_optimization_job which owns the session and error handling.
    """
    from app.jobs.optimization_jobs import run_optimization_job

    try:
        result = await run_optimization_job(job_name, payload)
        logger.info(
            f"Job '{job_name}' finished with status {result['status']} "
            f"in {result['duration_ms']} ms"
        )
    except Exception as e:
        logger.error(f"Job '{job_name}' failed: {e}")


def enqueue_job(job_name: str, payload: Dict[str, Any]) -> str:
    """
    Schedule a one-off run of a registered job.

    Returns:
        The scheduler job id
    """
    # Import triggers @optimization_job registration
    from app.jobs.optimization_jobs import get_registered_jobs

    if job_name not in get_registered_jobs():
        raise ValueError(f"Unknown job: {job_name}")

    job_id = f"{job_name}-{uuid.uuid4()}"
    scheduler.add_job(
        run_queued_job,
        'date',
        run_date=datetime.now(timezone.utc),
        args=[job_name, payload],
        id=job_id,
        name=f"[Optimization] {job_name}",
    )
    logger.info(f"Queued job {job_id}")
    return job_id


def start_scheduler():
    """Start the background job scheduler."""
    if not scheduler.running:
        from app.jobs import optimization_jobs  # noqa: F401

        scheduler.start()
        logger.info("Optimization job scheduler started")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")

