"""
Scheduled Tasks: background task definitions for the UnifiedScheduler.

Tasks by namespace:
- content.*: Window expiry and content restoration

Usage:
    from signage.workers.scheduled_tasks import configure_scheduler

    configure_scheduler(container.scheduler, container)
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from signage.services.container import ServiceContainer
    from signage.workers.unified_scheduler import UnifiedScheduler

logger = logging.getLogger(__name__)

SWEEP_TASK = "content.sweep"
SWEEP_JOB_ID = "content_sweep"


# ==================== Content Namespace Tasks ====================


def content_sweep_task(container: "ServiceContainer") -> dict[str, Any]:
    """
    Expire finished windows and restore the content they suppressed.

    Runs every ``sweep_interval_seconds`` and once at startup so windows
    that ended while the process was down are processed right away.
    """
    report = container.scheduling_service.run_sweep()
    return report.to_dict()


# ==================== Task Registration ====================


def register_all_tasks(
    scheduler: "UnifiedScheduler",
    container: "ServiceContainer",
) -> None:
    """
    Register all tasks with the scheduler.

    Args:
        scheduler: UnifiedScheduler instance
        container: ServiceContainer with all services
    """

    def bind_noargs(task_fn):
        @wraps(task_fn)
        def bound_task():
            try:
                return task_fn(container)
            # Broad catch: logs any task failure, then re-raises so the scheduler records it
            except Exception as e:
                logger.exception("Scheduled task %s raised: %s", task_fn.__name__, e)
                raise

        return bound_task

    scheduler.register_task(SWEEP_TASK, bind_noargs(content_sweep_task))
    logger.info("Registered scheduled tasks")


def schedule_default_jobs(scheduler: "UnifiedScheduler", *, sweep_interval_seconds: int = 60) -> None:
    """
    Schedule default jobs.

    Call this after register_all_tasks().
    """
    # Catch up on windows that ended while the process was down
    startup = scheduler.run_now(SWEEP_TASK)
    if startup is not None and not startup.success:
        logger.warning("Startup sweep failed: %s", startup.error)

    scheduler.schedule_interval(
        SWEEP_TASK,
        interval_seconds=sweep_interval_seconds,
        job_id=SWEEP_JOB_ID,
    )

    for job in scheduler.get_jobs():
        logger.debug("  - %s: every %ss (%s)", job.job_id, job.interval_seconds, job.namespace)


def configure_scheduler(
    scheduler: "UnifiedScheduler",
    container: "ServiceContainer",
    *,
    reset_jobs: bool = True,
    start: bool = True,
) -> None:
    """Register tasks, apply default schedules, and optionally start the scheduler."""
    if reset_jobs:
        scheduler.clear_jobs()

    register_all_tasks(scheduler, container)
    schedule_default_jobs(scheduler, sweep_interval_seconds=container.config.sweep_interval_seconds)

    if start:
        scheduler.start()
