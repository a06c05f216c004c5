"""
Background Jobs Module

Handles queued optimization runs:
- Slotting calculation
- Wave generation
"""

from app.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, enqueue_job
from app.jobs.optimization_jobs import optimization_job, run_optimization_job

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "enqueue_job",
    "optimization_job",
    "run_optimization_job",
]
