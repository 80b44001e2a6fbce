"""
Workers module for background scheduling.

This module contains:
- unified_scheduler: interval / one-shot job runner
- scheduled_tasks: task definitions (content.*)
"""

__all__ = [
    "UnifiedScheduler",
    "configure_scheduler",
    "register_all_tasks",
    "schedule_default_jobs",
]

from signage.workers.scheduled_tasks import configure_scheduler, register_all_tasks, schedule_default_jobs
from signage.workers.unified_scheduler import UnifiedScheduler
