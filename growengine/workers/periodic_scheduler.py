"""
Periodic scheduler for the engine's control loops.

Design:
- Single scheduler loop thread
- Bounded worker pool for job execution
- Fixed-rate interval jobs: the next run advances from the scheduled time,
  not from completion, and missed slots are skipped rather than piled up
- A job never overlaps itself; a tick that finds the previous run still in
  flight is skipped with a warning
- ``run_pending()`` executes due jobs inline so tests can drive the
  scheduler with a ManualClock

Heap entries are (run_at_ts, seq, job_id). Entries are never removed in
place; stale ones (job removed, disabled or rescheduled) are skipped.
"""

from __future__ import annotations

import heapq
import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable

from growengine.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class JobResult:
    """Result of a job execution."""

    job_id: str
    status: JobStatus
    started_at: datetime
    completed_at: datetime
    result: Any = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == JobStatus.COMPLETED

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


@dataclass
class ScheduledJob:
    job_id: str
    func: Callable[[], Any]
    interval_seconds: float
    enabled: bool = True
    next_run: datetime | None = None
    last_run: datetime | None = None
    running: bool = False
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "interval_seconds": self.interval_seconds,
            "enabled": self.enabled,
            "running": self.running,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "skipped_count": self.skipped_count,
            "last_error": self.last_error,
        }


class PeriodicScheduler:
    """
    Heap-based interval scheduler.

    Args:
        clock: time source for due-time computation
        max_workers: size of the bounded executor used by the background loop
        check_interval_seconds: how often the background loop looks for due jobs
        max_history: number of JobResults kept
    """

    def __init__(
        self,
        clock: Clock | None = None,
        max_workers: int = 5,
        check_interval_seconds: float = 0.5,
        max_history: int = 1000,
    ):
        self.clock = clock or SystemClock()
        self._max_workers = int(max_workers)
        self._check_interval = float(check_interval_seconds)

        self._jobs: dict[str, ScheduledJob] = {}
        self._job_heap: list[tuple[float, int, str]] = []
        self._heap_seq = 0
        self._history: deque[JobResult] = deque(maxlen=int(max_history))

        self._job_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None

    # ==================== Job Management ====================

    def _push_heap(self, job: ScheduledJob) -> None:
        if not job.enabled or job.next_run is None:
            return
        self._heap_seq += 1
        heapq.heappush(self._job_heap, (job.next_run.timestamp(), self._heap_seq, job.job_id))

    def schedule_interval(
        self,
        job_id: str,
        interval_seconds: float,
        func: Callable[[], Any],
        *,
        start_immediately: bool = False,
        enabled: bool = True,
    ) -> ScheduledJob:
        """Schedule ``func`` every ``interval_seconds``; replaces a job with the same id."""
        if interval_seconds <= 0:
            raise ValueError(f"Interval for {job_id} must be positive")
        now = self.clock.now()
        job = ScheduledJob(
            job_id=job_id,
            func=func,
            interval_seconds=float(interval_seconds),
            enabled=enabled,
            next_run=now if start_immediately else now + timedelta(seconds=interval_seconds),
        )
        with self._job_lock:
            self._jobs[job_id] = job
            self._push_heap(job)
        logger.info("Scheduled interval job: %s (every %ss)", job_id, interval_seconds)
        return job

    def remove_job(self, job_id: str) -> bool:
        with self._job_lock:
            if self._jobs.pop(job_id, None) is None:
                return False
        logger.info("Removed job: %s", job_id)
        return True

    def enable_job(self, job_id: str, enabled: bool = True) -> bool:
        with self._job_lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False
            job.enabled = bool(enabled)
            if job.enabled:
                job.next_run = self.clock.now() + timedelta(seconds=job.interval_seconds)
                self._push_heap(job)
        logger.info("Job %s %s", job_id, "enabled" if enabled else "disabled")
        return True

    def get_job(self, job_id: str) -> ScheduledJob | None:
        with self._job_lock:
            return self._jobs.get(job_id)

    def get_jobs(self) -> list[ScheduledJob]:
        with self._job_lock:
            return list(self._jobs.values())

    def history(self, job_id: str | None = None, limit: int | None = None) -> list[JobResult]:
        """Execution results, newest first."""
        with self._job_lock:
            results = [r for r in reversed(self._history) if job_id is None or r.job_id == job_id]
        return results[:limit] if limit is not None else results

    # ==================== Execution ====================

    def _collect_due(self) -> list[ScheduledJob]:
        """Pop due heap entries, reschedule their jobs and return them."""
        now = self.clock.now()
        now_ts = now.timestamp()
        due: list[ScheduledJob] = []

        with self._job_lock:
            while self._job_heap:
                run_at_ts, _seq, job_id = self._job_heap[0]
                if run_at_ts > now_ts:
                    break
                heapq.heappop(self._job_heap)

                job = self._jobs.get(job_id)
                if job is None or not job.enabled or job.next_run is None:
                    continue
                if abs(job.next_run.timestamp() - run_at_ts) > 1e-6:
                    continue

                self._schedule_next_run(job, now)
                self._push_heap(job)

                if job.running:
                    job.skipped_count += 1
                    logger.warning("Job %s still running, skipping this tick", job.job_id)
                    self._history.append(JobResult(job.job_id, JobStatus.SKIPPED, now, now))
                    continue

                job.running = True
                due.append(job)
        return due

    def _schedule_next_run(self, job: ScheduledJob, now: datetime) -> None:
        interval = timedelta(seconds=job.interval_seconds)
        next_run = job.next_run + interval
        if next_run <= now:
            behind = (now - next_run).total_seconds()
            next_run += interval * (int(behind // job.interval_seconds) + 1)
        job.next_run = next_run

    def _execute_job(self, job: ScheduledJob) -> JobResult:
        started_at = self.clock.now()
        try:
            result = job.func()
        except Exception as e:
            completed_at = self.clock.now()
            with self._job_lock:
                job.running = False
                job.last_run = started_at
                job.run_count += 1
                job.failure_count += 1
                job.last_error = str(e)
                job_result = JobResult(job.job_id, JobStatus.FAILED, started_at, completed_at, error=str(e))
                self._history.append(job_result)
            logger.error("Job %s failed: %s", job.job_id, e, exc_info=True)
            return job_result

        completed_at = self.clock.now()
        with self._job_lock:
            job.running = False
            job.last_run = started_at
            job.run_count += 1
            job.success_count += 1
            job.last_error = None
            job_result = JobResult(job.job_id, JobStatus.COMPLETED, started_at, completed_at, result=result)
            self._history.append(job_result)
        logger.debug("Job %s completed in %.3fs", job.job_id, job_result.duration_seconds)
        return job_result

    def run_pending(self) -> list[JobResult]:
        """Run every due job inline, in due order."""
        return [self._execute_job(job) for job in self._collect_due()]

    # ==================== Scheduler Control ====================

    def start(self) -> None:
        if self.is_running():
            logger.warning("Scheduler already running")
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="ControlLoopJob")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="PeriodicScheduler")
        self._thread.start()
        logger.info("PeriodicScheduler started with %d jobs", len(self._jobs))

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Stop timers; with ``wait`` in-flight jobs are allowed to finish."""
        if self._thread is None:
            return
        self._stop_event.set()
        if wait:
            self._thread.join(timeout=timeout)
        self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        logger.info("PeriodicScheduler stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        logger.debug("Scheduler loop started")
        while not self._stop_event.is_set():
            try:
                for job in self._collect_due():
                    self._submit(job)
            except Exception as e:
                logger.error("Error in scheduler loop: %s", e, exc_info=True)
            self._stop_event.wait(self._check_interval)
        logger.debug("Scheduler loop ended")

    def _submit(self, job: ScheduledJob) -> None:
        executor = self._executor
        if executor is None:
            with self._job_lock:
                job.running = False
            logger.warning("Executor unavailable; skipping job %s", job.job_id)
            return
        try:
            executor.submit(self._execute_job, job)
        except RuntimeError as e:
            with self._job_lock:
                job.running = False
            logger.error("Failed to submit job %s: %s", job.job_id, e)

    def get_status(self) -> dict[str, Any]:
        with self._job_lock:
            return {
                "running": self.is_running(),
                "job_count": len(self._jobs),
                "jobs": [job.to_dict() for job in self._jobs.values()],
            }
