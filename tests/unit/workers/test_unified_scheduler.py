"""UnifiedScheduler driven by explicit process_due_jobs() calls (no loop thread)."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from signage.utils.time import utc_now
from signage.workers.unified_scheduler import JobStatus, UnifiedScheduler


@pytest.fixture()
def scheduler():
    sched = UnifiedScheduler(check_interval_seconds=0.05, max_workers=2)
    yield sched
    sched.stop()


@pytest.fixture()
def calls(scheduler):
    recorded = []
    lock = threading.Lock()

    def record(value="tick"):
        with lock:
            recorded.append(value)
        return value

    scheduler.register_task("test.record", record)
    return recorded


def test_interval_job_runs_when_due(scheduler, calls):
    job = scheduler.schedule_interval("test.record", 60, job_id="rec")
    scheduled = job.next_run

    assert scheduler.process_due_jobs(scheduled - timedelta(seconds=1)) == 0
    assert scheduler.process_due_jobs(scheduled + timedelta(seconds=1)) == 1
    scheduler.stop()

    assert calls == ["tick"]
    assert job.run_count == 1
    assert job.success_count == 1
    assert job.status is JobStatus.COMPLETED
    # Fixed-rate: the next slot follows the scheduled time, not the processing time
    assert job.next_run == scheduled + timedelta(seconds=60)


def test_interval_job_skips_missed_slots(scheduler, calls):
    job = scheduler.schedule_interval("test.record", 60, job_id="rec")
    late = job.next_run + timedelta(minutes=10, seconds=5)

    assert scheduler.process_due_jobs(late) == 1
    scheduler.stop()

    assert calls == ["tick"]
    assert job.next_run > late
    assert job.next_run - late < timedelta(seconds=60)


def test_start_immediately(scheduler, calls):
    job = scheduler.schedule_interval("test.record", 60, job_id="rec", start_immediately=True)
    assert job.status is JobStatus.PENDING
    assert scheduler.process_due_jobs(utc_now() + timedelta(seconds=1)) == 1


def test_kwargs_are_passed_to_the_task(scheduler, calls):
    scheduler.schedule_interval("test.record", 60, job_id="rec", kwargs={"value": "hello"}, start_immediately=True)
    scheduler.process_due_jobs(utc_now() + timedelta(seconds=1))
    scheduler.stop()
    assert calls == ["hello"]


def test_failing_job_is_recorded(scheduler):
    def explode():
        raise RuntimeError("boom")

    scheduler.register_task("test.explode", explode)
    job = scheduler.schedule_interval("test.explode", 30, job_id="bad", start_immediately=True)

    scheduler.process_due_jobs(utc_now() + timedelta(seconds=1))
    scheduler.stop()

    assert job.failure_count == 1
    assert job.last_error == "boom"
    assert job.status is JobStatus.FAILED
    history = scheduler.get_history("bad")
    assert len(history) == 1
    assert history[0].status is JobStatus.FAILED


def test_unregistered_task_fails_the_run(scheduler):
    job = scheduler.schedule_interval("test.missing", 30, job_id="ghost", start_immediately=True)
    scheduler.process_due_jobs(utc_now() + timedelta(seconds=1))
    scheduler.stop()

    assert job.failure_count == 1
    assert "not found" in job.last_error


def test_running_job_does_not_overlap_itself(scheduler, calls):
    job = scheduler.schedule_interval("test.record", 60, job_id="rec")
    job.running = True
    scheduled = job.next_run

    assert scheduler.process_due_jobs(scheduled + timedelta(seconds=1)) == 0
    assert job.next_run == scheduled + timedelta(seconds=60)
    assert calls == []


def test_cleared_jobs_do_not_run(scheduler, calls):
    scheduler.schedule_interval("test.record", 60, job_id="a", start_immediately=True)
    scheduler.clear_jobs()

    assert scheduler.get_jobs() == []
    assert scheduler.process_due_jobs(utc_now() + timedelta(seconds=1)) == 0


def test_rescheduling_a_job_id_drops_the_old_slot(scheduler, calls):
    scheduler.schedule_interval("test.record", 60, job_id="rec", start_immediately=True)
    job = scheduler.schedule_interval("test.record", 600, job_id="rec")

    # The first heap entry is stale now and is skipped
    assert scheduler.process_due_jobs(utc_now() + timedelta(seconds=1)) == 0
    assert scheduler.get_jobs() == [job]


def test_non_positive_interval_is_rejected(scheduler):
    with pytest.raises(ValueError):
        scheduler.schedule_interval("test.record", 0)


def test_run_now_is_synchronous(scheduler, calls):
    result = scheduler.run_now("test.record", kwargs={"value": "now"})
    assert result.success
    assert result.result == "now"
    assert calls == ["now"]
    assert scheduler.run_now("test.unknown") is None


def test_namespace_defaults_to_task_prefix(scheduler, calls):
    assert scheduler.schedule_interval("test.record", 60, job_id="a").namespace == "test"
    assert scheduler.schedule_interval("test.record", 60, job_id="b", namespace="maintenance").namespace == (
        "maintenance"
    )


def test_history_is_bounded_and_newest_first():
    sched = UnifiedScheduler(max_history=2)
    sched.register_task("test.echo", lambda value: value)
    for value in ("a", "b", "c"):
        sched.run_now("test.echo", args=(value,))

    assert [r.result for r in sched.get_history()] == ["c", "b"]
    assert [r.result for r in sched.get_history(limit=1)] == ["c"]


def test_job_summary_serializes(scheduler, calls):
    job = scheduler.schedule_interval("test.record", 60, job_id="rec")
    data = job.to_dict()
    assert data["job_id"] == "rec"
    assert data["status"] == "pending"
    assert data["interval_seconds"] == 60
    assert data["last_run"] is None


def test_background_loop_runs_due_jobs(scheduler):
    done = threading.Event()
    scheduler.register_task("test.signal", done.set)
    scheduler.schedule_interval("test.signal", 60, job_id="sig", start_immediately=True)

    scheduler.start()
    assert scheduler.is_running()
    assert done.wait(timeout=5)

    scheduler.stop()
    assert not scheduler.is_running()
