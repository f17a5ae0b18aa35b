"""
Timer facility for automation triggers.

Design Principles:
- Single scheduler loop thread
- Bounded worker pool for job execution (a slow device call never stalls
  the loop or other jobs)
- Namespace-based job organization
- Support for interval, weekly, and one-time schedules
- Cancellation by job id is local and non-blocking

Jobs are plain callables taking no arguments. A job that raises is logged and
recorded as a failed run; it never stops the loop or its own recurrence.
"""

from __future__ import annotations

import datetime as dt
import heapq
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)


class ScheduleType(Enum):
    """Types of schedules."""

    INTERVAL = "interval"  # Every N seconds, fixed-rate
    WEEKLY = "weekly"  # Specific day and time each week
    ONCE = "once"  # One-time execution


@dataclass
class JobResult:
    """Result of a job execution."""

    job_id: str
    success: bool
    started_at: datetime
    completed_at: datetime
    result: Any = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


@dataclass
class ScheduledJob:
    """A scheduled job configuration and its execution counters."""

    job_id: str
    namespace: str  # e.g. "automation"
    schedule_type: ScheduleType
    func: Callable[[], Any]

    # Schedule configuration
    interval_seconds: int | None = None  # For INTERVAL type
    time_of_day: dt.time | None = None  # For WEEKLY type
    day_of_week: int | None = None  # 0-6 (Mon-Sun) for WEEKLY type
    run_at: datetime | None = None  # For ONCE type

    # Execution tracking
    next_run: datetime | None = None
    last_run: datetime | None = None
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_error: str | None = None
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (for API responses)."""
        return {
            "job_id": self.job_id,
            "namespace": self.namespace,
            "schedule_type": self.schedule_type.value,
            "interval_seconds": self.interval_seconds,
            "time_of_day": self.time_of_day.isoformat() if self.time_of_day else None,
            "day_of_week": self.day_of_week,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
            "cancelled": self.cancelled,
        }


class UnifiedScheduler:
    """
    Heap-based scheduler with a bounded worker pool.

    - Heap de-duplication: heap stores immutable entries and skips stale items.
    - Interval drift reduction: INTERVAL schedules advance from the *scheduled time*,
      not from "now" (fixed-rate scheduling).
    - Cancellation marks the job object; a run already handed to the pool but
      not yet started sees the mark and does nothing.

    Implementation note on the heap:
    - Entries are tuples: (run_at_ts, seq, job_id)
    - seq is a monotonic counter to ensure stable ordering when timestamps match
    - Entries are never deleted in place; stale ones are skipped:
        - job removed -> skip
        - job.next_run changed -> skip

    All ``now`` parameters default to the local wall clock and exist so
    callers can drive the schedule deterministically.
    """

    def __init__(
        self,
        check_interval_seconds: float = 1.0,
        max_history: int = 1000,
        max_workers: int = 4,
    ):
        """
        Initialize the scheduler.

        Args:
            check_interval_seconds: How often to check for due jobs (default 1s)
            max_history: Maximum job execution history to keep
            max_workers: Maximum number of concurrent job executions
        """
        self._check_interval = float(check_interval_seconds)
        self._max_history = int(max_history)
        self._max_workers = int(max_workers)

        # Job storage
        self._jobs: dict[str, ScheduledJob] = {}

        # Heap storage
        # Entries: (run_at_ts, seq, job_id)
        self._job_heap: list[tuple[float, int, str]] = []
        self._heap_seq = 0

        # Execution history
        self._history: list[JobResult] = []

        # Thread management
        self._running = False
        self._thread: threading.Thread | None = None
        self._job_lock = threading.RLock()

        # Bounded executor for job execution
        self._executor: ThreadPoolExecutor | None = None
        self._ensure_executor()

    def _ensure_executor(self) -> None:
        """Ensure an executor is available (supports stop() -> start() restarts)."""
        if self._executor is not None:
            return
        self._executor = ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="rackpower-automation",
        )

    # ==================== Heap Helpers ====================

    def _push_heap(self, job: ScheduledJob) -> None:
        """
        Push the job's next_run into the heap.

        Existing entries for this job are left in place and skipped as stale
        by process_due_jobs().
        """
        if job.cancelled or not job.next_run:
            return
        self._heap_seq += 1
        heapq.heappush(self._job_heap, (job.next_run.timestamp(), self._heap_seq, job.job_id))

    # ==================== Job Scheduling ====================

    def schedule_interval(
        self,
        func: Callable[[], Any],
        interval_seconds: int,
        *,
        job_id: str,
        namespace: str = "default",
        start_immediately: bool = False,
        now: datetime | None = None,
    ) -> ScheduledJob:
        """Schedule ``func`` every ``interval_seconds``; first run one interval from now."""
        if int(interval_seconds) < 1:
            raise ValueError("interval_seconds must be at least 1")

        now = now or datetime.now()
        next_run = now if start_immediately else (now + timedelta(seconds=int(interval_seconds)))

        job = ScheduledJob(
            job_id=job_id,
            namespace=namespace,
            schedule_type=ScheduleType.INTERVAL,
            func=func,
            interval_seconds=int(interval_seconds),
            next_run=next_run,
        )

        self._add_job(job)
        logger.debug(f"Scheduled interval job: {job_id} (every {interval_seconds}s)")
        return job

    def schedule_weekly(
        self,
        func: Callable[[], Any],
        day_of_week: int,
        time_of_day: dt.time,
        *,
        job_id: str,
        namespace: str = "default",
        now: datetime | None = None,
    ) -> ScheduledJob:
        """Schedule ``func`` weekly on ``day_of_week`` (Monday=0) at ``time_of_day``."""
        day = int(day_of_week)
        if not 0 <= day <= 6:
            raise ValueError("day_of_week must be between 0 and 6")

        job = ScheduledJob(
            job_id=job_id,
            namespace=namespace,
            schedule_type=ScheduleType.WEEKLY,
            func=func,
            time_of_day=time_of_day,
            day_of_week=day,
            next_run=self._calculate_next_weekly(day, time_of_day, now or datetime.now()),
        )

        self._add_job(job)
        logger.debug(f"Scheduled weekly job: {job_id} (day {day} at {time_of_day.isoformat()})")
        return job

    def schedule_once(
        self,
        func: Callable[[], Any],
        run_at: datetime,
        *,
        job_id: str,
        namespace: str = "default",
    ) -> ScheduledJob:
        """Schedule ``func`` to run once at ``run_at``."""
        job = ScheduledJob(
            job_id=job_id,
            namespace=namespace,
            schedule_type=ScheduleType.ONCE,
            func=func,
            run_at=run_at,
            next_run=run_at,
        )

        self._add_job(job)
        logger.debug(f"Scheduled one-time job: {job_id} (at {run_at})")
        return job

    # ==================== Job Management ====================

    def _add_job(self, job: ScheduledJob) -> None:
        """Add a job, cancelling any job already registered under the same id."""
        with self._job_lock:
            previous = self._jobs.get(job.job_id)
            if previous is not None:
                previous.cancelled = True
            self._jobs[job.job_id] = job
            self._push_heap(job)

    def remove_job(self, job_id: str) -> bool:
        """Cancel and remove a job. Returns False if it was not registered."""
        with self._job_lock:
            job = self._jobs.pop(job_id, None)
            if job is None:
                return False
            job.cancelled = True
        logger.debug(f"Removed job: {job_id}")
        return True

    def remove_jobs(self, job_ids: Iterable[str]) -> int:
        """Cancel and remove several jobs under a single lock acquisition."""
        removed = 0
        with self._job_lock:
            for job_id in job_ids:
                job = self._jobs.pop(job_id, None)
                if job is not None:
                    job.cancelled = True
                    removed += 1
        return removed

    def clear_jobs(self) -> None:
        """Cancel all jobs and drop pending heap entries."""
        with self._job_lock:
            for job in self._jobs.values():
                job.cancelled = True
            self._jobs.clear()
            self._job_heap.clear()
            self._heap_seq = 0

    def get_job(self, job_id: str) -> ScheduledJob | None:
        """Get a job by ID."""
        with self._job_lock:
            return self._jobs.get(job_id)

    def get_jobs(self, namespace: str | None = None) -> list[ScheduledJob]:
        """Get all jobs, optionally filtered by namespace."""
        with self._job_lock:
            jobs = list(self._jobs.values())

        if namespace:
            jobs = [j for j in jobs if j.namespace == namespace]

        return jobs

    def get_namespaces(self) -> set[str]:
        """Get all job namespaces."""
        with self._job_lock:
            return {job.namespace for job in self._jobs.values()}

    # ==================== Scheduler Control ====================

    def start(self) -> None:
        """Start the scheduler background thread."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._ensure_executor()

        self._running = True
        self._thread = threading.Thread(
            target=self._run_loop,
            daemon=True,
            name="rackpower-scheduler",
        )
        self._thread.start()
        logger.info("Scheduler started")

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        """
        Stop the scheduler loop and its worker pool.

        Args:
            wait: Wait for the loop thread and in-flight jobs to finish
            timeout: Maximum wait time for the loop thread, in seconds
        """
        was_running = self._running
        self._running = False

        if wait and self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None

        if self._executor:
            self._executor.shutdown(wait=wait)
            self._executor = None

        if was_running:
            logger.info("Scheduler stopped")

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Alias for stop(); matches other services' shutdown() convention."""
        self.stop(wait=wait, timeout=timeout)

    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    def _run_loop(self) -> None:
        """Main scheduler loop."""
        logger.debug("Scheduler loop started")

        while self._running:
            try:
                self.process_due_jobs()
                time.sleep(self._check_interval)
            except Exception as e:
                logger.error(f"Error in scheduler loop: {e}", exc_info=True)
                time.sleep(1)

        logger.debug("Scheduler loop ended")

    # ==================== Core Scheduling Logic ====================

    def process_due_jobs(self, now: datetime | None = None) -> list[Future]:
        """
        Hand every job due at ``now`` to the worker pool.

        Returns:
            Futures of the submitted executions, in firing order.
        """
        now = now or datetime.now()
        now_ts = now.timestamp()
        submitted: list[Future] = []

        with self._job_lock:
            while self._job_heap:
                run_at_ts, _seq, job_id = self._job_heap[0]

                # Not due yet
                if run_at_ts > now_ts:
                    break

                heapq.heappop(self._job_heap)

                job = self._jobs.get(job_id)
                if not job or job.cancelled or not job.next_run:
                    continue  # removed -> stale heap entry

                # Stale entry check: if job.next_run changed since this entry was pushed, skip it
                if abs(job.next_run.timestamp() - run_at_ts) > 1e-6:
                    continue

                scheduled_for = job.next_run

                # Schedule next run *before* submitting execution so a long
                # execution never delays the following slot.
                self._schedule_next_run(job, scheduled_time=scheduled_for, now=now)
                self._push_heap(job)

                if not self._executor:
                    logger.warning(f"Executor unavailable; skipping job {job_id}")
                    if job.schedule_type == ScheduleType.ONCE:
                        del self._jobs[job_id]
                    continue

                try:
                    submitted.append(self._executor.submit(self._execute_job, job, scheduled_for))
                except RuntimeError as e:
                    logger.error(f"Failed to submit job {job_id} to executor: {e}", exc_info=True)

        return submitted

    def _execute_job(self, job: ScheduledJob, scheduled_for: datetime) -> None:
        """
        Execute a single job run.

        Args:
            job: The job to run
            scheduled_for: The time this run was scheduled to occur
        """
        with self._job_lock:
            # Job may have been removed between submission and execution
            if job.cancelled:
                return

        started_at = datetime.now()

        try:
            result = job.func()
            completed_at = datetime.now()

            with self._job_lock:
                job.last_run = started_at
                job.run_count += 1
                job.success_count += 1
                job.last_error = None

            job_result = JobResult(
                job_id=job.job_id,
                success=True,
                started_at=started_at,
                completed_at=completed_at,
                result=result,
            )
            self._record_history(job_result)

            logger.debug(
                f"Job {job.job_id} completed in {job_result.duration_seconds:.2f}s "
                f"(scheduled_for={scheduled_for.isoformat()})"
            )

        except Exception as e:
            completed_at = datetime.now()

            with self._job_lock:
                job.last_run = started_at
                job.run_count += 1
                job.failure_count += 1
                job.last_error = str(e)

            self._record_history(
                JobResult(
                    job_id=job.job_id,
                    success=False,
                    started_at=started_at,
                    completed_at=completed_at,
                    error=str(e),
                )
            )
            logger.error(f"Job {job.job_id} failed: {e}", exc_info=True)

        finally:
            if job.schedule_type == ScheduleType.ONCE:
                with self._job_lock:
                    if self._jobs.get(job.job_id) is job:
                        del self._jobs[job.job_id]

    def _schedule_next_run(self, job: ScheduledJob, *, scheduled_time: datetime, now: datetime) -> None:
        """
        Calculate and set the next run time for a job that just fired.

        INTERVAL schedules advance from the scheduled time (fixed-rate), not
        from the completion time or "now".
        """
        if job.schedule_type == ScheduleType.INTERVAL:
            interval = int(job.interval_seconds or 60)

            # Always move forward at least one interval; do not pile up missed runs.
            next_run = scheduled_time + timedelta(seconds=interval)

            # If we're far behind (e.g., system slept), skip ahead to the first future slot
            if next_run <= now:
                delta_seconds = (now - next_run).total_seconds()
                skips = int(delta_seconds // interval) + 1
                next_run = next_run + timedelta(seconds=skips * interval)

            job.next_run = next_run
            return

        if job.schedule_type == ScheduleType.WEEKLY:
            job.next_run = self._calculate_next_weekly(
                job.day_of_week or 0,
                job.time_of_day or dt.time(0, 0),
                max(now, scheduled_time),
            )
            return

        # One-time jobs don't repeat
        job.next_run = None

    @staticmethod
    def _calculate_next_weekly(day_of_week: int, time_of_day: dt.time, now: datetime) -> datetime:
        """Next occurrence of ``time_of_day`` on ``day_of_week`` strictly after ``now``."""
        target = now.replace(
            hour=time_of_day.hour,
            minute=time_of_day.minute,
            second=time_of_day.second,
            microsecond=0,
        )

        days_ahead = int(day_of_week) - now.weekday()
        if days_ahead < 0:
            days_ahead += 7
        elif days_ahead == 0 and target <= now:
            days_ahead = 7

        return target + timedelta(days=days_ahead)

    def _record_history(self, result: JobResult) -> None:
        """Record job execution in history."""
        with self._job_lock:
            self._history.append(result)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history :]

    # ==================== Status & History ====================

    def get_status(self) -> dict[str, Any]:
        """Get scheduler status."""
        with self._job_lock:
            pending = sum(1 for j in self._jobs.values() if j.next_run is not None)

            return {
                "running": self._running,
                "total_jobs": len(self._jobs),
                "namespaces": sorted(self.get_namespaces()),
                "pending_jobs": pending,
                "history_size": len(self._history),
                "recent_failures": sum(1 for r in self._history[-20:] if not r.success),
                "max_workers": self._max_workers,
            }

    def get_history(
        self,
        job_id: str | None = None,
        limit: int = 100,
    ) -> list[JobResult]:
        """Get job execution history, newest first."""
        with self._job_lock:
            results = list(self._history)

        if job_id:
            results = [r for r in results if r.job_id == job_id]

        return sorted(results, key=lambda r: r.started_at, reverse=True)[: int(limit)]
