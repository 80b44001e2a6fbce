"""
Background job runner for periodic maintenance tasks.

The process that hosts the signage scheduler owns one UnifiedScheduler; the
content sweep is registered on it as a fixed-rate interval job. Jobs are
kept in a min-heap keyed by their next run and executed on a small thread
pool, so a slow sweep never blocks the loop that decides what is due.
"""

from __future__ import annotations

import heapq
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable

from signage.utils.time import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobResult:
    """Outcome of one task invocation, scheduled or run on demand."""

    job_id: str
    success: bool
    started_at: datetime
    completed_at: datetime
    result: Any = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def status(self) -> JobStatus:
        return JobStatus.COMPLETED if self.success else JobStatus.FAILED


@dataclass
class ScheduledJob:
    """An interval job and its run counters."""

    job_id: str
    task_name: str
    namespace: str
    interval_seconds: int
    args: tuple = field(default_factory=tuple)
    kwargs: dict[str, Any] = field(default_factory=dict)

    next_run: datetime | None = None
    last_run: datetime | None = None
    running: bool = False
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_error: str | None = None

    @property
    def status(self) -> JobStatus:
        if self.running:
            return JobStatus.RUNNING
        if self.run_count == 0:
            return JobStatus.PENDING
        return JobStatus.FAILED if self.last_error else JobStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "task_name": self.task_name,
            "namespace": self.namespace,
            "status": self.status.value,
            "interval_seconds": self.interval_seconds,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
        }


class UnifiedScheduler:
    """
    Fixed-rate interval scheduler with a bounded worker pool.

    The heap holds ``(due_ts, seq, job_id)`` entries that are never edited in
    place. An entry whose job is gone or whose due time no longer matches
    ``job.next_run`` is dropped when popped. A job whose previous run is
    still executing skips the slot instead of running twice.
    """

    def __init__(
        self,
        check_interval_seconds: float = 1.0,
        max_history: int = 1000,
        max_workers: int = 2,
    ):
        """
        Args:
            check_interval_seconds: Loop wake-up period
            max_history: Results kept for get_history()
            max_workers: Size of the job thread pool
        """
        self._check_interval = float(check_interval_seconds)
        self._max_history = int(max_history)
        self._max_workers = int(max_workers)

        self._tasks: dict[str, Callable] = {}
        self._jobs: dict[str, ScheduledJob] = {}
        self._heap: list[tuple[float, int, str]] = []
        self._seq = 0
        self._history: list[JobResult] = []

        self._running = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None

        logger.info("UnifiedScheduler initialized (max_workers=%d)", self._max_workers)

    # ==================== Registration ====================

    def register_task(self, name: str, func: Callable) -> None:
        self._tasks[name] = func
        logger.debug("Registered task: %s", name)

    def schedule_interval(
        self,
        task_name: str,
        interval_seconds: int,
        *,
        job_id: str | None = None,
        namespace: str | None = None,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
        start_immediately: bool = False,
    ) -> ScheduledJob:
        """Run *task_name* every *interval_seconds*; the first run is one interval out unless started immediately."""
        interval = int(interval_seconds)
        if interval <= 0:
            raise ValueError("interval_seconds must be positive")

        now = utc_now()
        job = ScheduledJob(
            job_id=job_id or task_name,
            task_name=task_name,
            namespace=namespace or task_name.partition(".")[0],
            interval_seconds=interval,
            args=args,
            kwargs=kwargs or {},
            next_run=now if start_immediately else now + timedelta(seconds=interval),
        )
        with self._lock:
            self._jobs[job.job_id] = job
            self._push(job)
        logger.info("Scheduled job %s (every %ss)", job.job_id, interval)
        return job

    def clear_jobs(self) -> None:
        with self._lock:
            self._jobs.clear()
            self._heap.clear()
            self._seq = 0

    def get_jobs(self) -> list[ScheduledJob]:
        with self._lock:
            return list(self._jobs.values())

    def _push(self, job: ScheduledJob) -> None:
        self._seq += 1
        heapq.heappush(self._heap, (job.next_run.timestamp(), self._seq, job.job_id))

    # ==================== Execution ====================

    def run_now(
        self,
        task_name: str,
        *,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
    ) -> JobResult | None:
        """Invoke a registered task on the calling thread and record the result."""
        func = self._tasks.get(task_name)
        if func is None:
            logger.error("Task not found: %s", task_name)
            return None

        started_at = utc_now()
        try:
            value = func(*args, **(kwargs or {}))
        except Exception as e:
            logger.error("Task %s failed when run on demand: %s", task_name, e, exc_info=True)
            result = JobResult(task_name, False, started_at, utc_now(), error=str(e))
        else:
            result = JobResult(task_name, True, started_at, utc_now(), result=value)
        self._record(result)
        return result

    def process_due_jobs(self, now: datetime | None = None) -> int:
        """Hand every job due at *now* to the pool; returns how many runs were submitted."""
        now_ts = ensure_utc(now or utc_now()).timestamp()
        submitted = 0

        with self._lock:
            while self._heap and self._heap[0][0] <= now_ts:
                due_ts, _, job_id = heapq.heappop(self._heap)
                job = self._jobs.get(job_id)
                if job is None or job.next_run is None or abs(job.next_run.timestamp() - due_ts) > 1e-6:
                    continue

                due = job.next_run
                job.next_run = self._next_slot(due, job.interval_seconds, now_ts)
                self._push(job)

                if job.running:
                    logger.warning("Job %s still running; skipping run due at %s", job_id, due.isoformat())
                    continue

                job.running = True
                self._ensure_executor().submit(self._execute, job)
                submitted += 1

        return submitted

    @staticmethod
    def _next_slot(due: datetime, interval: int, now_ts: float) -> datetime:
        """First slot on the fixed-rate grid after both *due* and now."""
        step = timedelta(seconds=interval)
        next_run = due + step
        behind = now_ts - next_run.timestamp()
        if behind >= 0:
            next_run += step * (int(behind // interval) + 1)
        return next_run

    def _execute(self, job: ScheduledJob) -> None:
        started_at = utc_now()
        func = self._tasks.get(job.task_name)
        try:
            if func is None:
                raise LookupError(f"Task function not found: {job.task_name}")
            value = func(*job.args, **job.kwargs)
        except Exception as e:
            logger.error("Job %s failed: %s", job.job_id, e, exc_info=True)
            result = JobResult(job.job_id, False, started_at, utc_now(), error=str(e))
        else:
            result = JobResult(job.job_id, True, started_at, utc_now(), result=value)
            logger.debug("Job %s completed in %.2fs", job.job_id, result.duration_seconds)

        with self._lock:
            job.running = False
            job.last_run = started_at
            job.run_count += 1
            if result.success:
                job.success_count += 1
                job.last_error = None
            else:
                job.failure_count += 1
                job.last_error = result.error
        self._record(result)

    def _record(self, result: JobResult) -> None:
        with self._lock:
            self._history.append(result)
            del self._history[: -self._max_history]

    def get_history(self, job_id: str | None = None, limit: int = 100) -> list[JobResult]:
        """Recorded results, newest first."""
        with self._lock:
            results = [r for r in reversed(self._history) if job_id is None or r.job_id == job_id]
        return results[: int(limit)]

    # ==================== Lifecycle ====================

    def _ensure_executor(self) -> ThreadPoolExecutor:
        # Recreated after stop() so the scheduler can be restarted
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="UnifiedSchedulerJob",
            )
        return self._executor

    def start(self) -> None:
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._ensure_executor()
        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(target=self._loop, daemon=True, name="UnifiedScheduler")
        self._thread.start()
        logger.info("UnifiedScheduler started")

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Stop the loop thread, then the pool; *wait* also waits for running jobs."""
        was_running = self._running
        self._running = False
        self._stop_event.set()

        if wait and self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None

        if self._executor:
            self._executor.shutdown(wait=wait)
            self._executor = None

        if was_running:
            logger.info("UnifiedScheduler stopped")

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        self.stop(wait=wait, timeout=timeout)

    def is_running(self) -> bool:
        return self._running

    def _loop(self) -> None:
        while self._running:
            try:
                self.process_due_jobs()
            except Exception as e:
                logger.error("Error in scheduler loop: %s", e, exc_info=True)
            self._stop_event.wait(self._check_interval)
