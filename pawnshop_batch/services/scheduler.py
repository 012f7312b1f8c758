"""
Scheduler -- In-process interval scheduler, one loop thread per job.

Contract:
    ``register()`` jobs, ``start()`` to launch one daemon thread per job,
    ``stop()`` to signal shutdown and join every thread.  Each loop runs its
    job once immediately, then on a fixed-rate ticker.  ``run_now()``
    executes a job synchronously through the same wrapper.

Architecture: pawnshop_batch/services.  Uses pawnshop_batch.domain.schedule
    for pure expression parsing and ExecutionContext for cancellation.

Invariants enforced:
    - Executions of one job never overlap (per-job execution lock, shared
      with ``run_now``).
    - Fixed-rate timing: next fire = previous fire + interval.  After an
      overrun the loop fires once immediately; further missed ticks are
      dropped, never queued.
    - A handler exception is logged and counted; the loop keeps ticking.
    - No execution starts after ``stop()`` returns; an in-flight execution
      is allowed to finish (cooperative cancellation only).
    - All wall-clock timestamps from the injected Clock; durations and the
      ticker use ``time.monotonic``.
"""

from __future__ import annotations

import logging
import threading
import time
from uuid import uuid4

from pawnshop_kernel.domain.clock import Clock, SystemClock
from pawnshop_kernel.exceptions import (
    DuplicateJobError,
    JobCancelledError,
    JobNotFoundError,
)
from pawnshop_kernel.logging_config import LogContext, get_logger

from pawnshop_batch.domain.schedule import ParsedSchedule, parse_schedule
from pawnshop_batch.domain.types import (
    Job,
    JobExecutionResult,
    JobRunStatus,
    JobStatus,
)
from pawnshop_batch.services.context import DEFAULT_TIMEOUT_SECONDS, ExecutionContext

_default_logger = get_logger("batch.scheduler")


class _JobRunner:
    """Per-job bookkeeping: loop thread, private stop event and run stats."""

    def __init__(self, job: Job, parsed: ParsedSchedule):
        self.job = job
        self.parsed = parsed
        self.stop_event = threading.Event()
        self.thread: threading.Thread | None = None
        self.execution_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._run_count = 0
        self._failure_count = 0
        self._last: JobExecutionResult | None = None
        self._last_started_at = None

    def mark_started(self, started_at) -> None:
        with self._stats_lock:
            self._last_started_at = started_at

    def record(self, result: JobExecutionResult) -> None:
        with self._stats_lock:
            self._run_count += 1
            if result.status == JobRunStatus.FAILED:
                self._failure_count += 1
            self._last = result

    def snapshot(self) -> JobStatus:
        with self._stats_lock:
            last = self._last
            return JobStatus(
                name=self.job.name,
                schedule=self.job.schedule,
                interval=self.parsed.interval,
                schedule_kind=self.parsed.kind,
                run_count=self._run_count,
                failure_count=self._failure_count,
                last_started_at=self._last_started_at,
                last_finished_at=last.finished_at if last else None,
                last_status=last.status if last else None,
                last_error=last.error if last else None,
            )


class Scheduler:
    """Interval scheduler for the worker's recurring jobs.

    Contract:
        - ``register(job)`` -> True if the job will run on ``start()``.
        - ``start()`` / ``stop()`` are idempotent; a stopped scheduler can be
          started again.
        - ``run_now(name)`` executes synchronously on the caller's thread.

    Non-goals:
        - NOT a distributed scheduler (no leader election, no persistence of
          last-run times across restarts).
        - Does NOT interrupt running handlers.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
        execution_timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._clock = clock or SystemClock()
        self._logger = logger or _default_logger
        self._timeout = execution_timeout_seconds
        self._runners: dict[str, _JobRunner] = {}
        self._lock = threading.Lock()
        self._running = False
        self._shutdown = threading.Event()

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, job: Job) -> bool:
        """Add ``job`` to the scheduler.

        Returns False (and logs) when the job is disabled or its interval is
        not positive.  An unrecognized expression is accepted with the 24h
        fallback and a warning.

        Raises:
            DuplicateJobError: a job with the same name is already registered.
        """
        if not job.enabled:
            self._logger.info("job_disabled", extra={"job_name": job.name})
            return False

        parsed = parse_schedule(job.schedule)
        if parsed.is_fallback:
            self._logger.warning(
                "job_schedule_fallback",
                extra={
                    "job_name": job.name,
                    "schedule": job.schedule,
                    "reason": parsed.fallback_reason,
                    "interval_seconds": parsed.interval.total_seconds(),
                },
            )
        if not parsed.is_positive:
            self._logger.error(
                "job_schedule_invalid",
                extra={
                    "job_name": job.name,
                    "schedule": job.schedule,
                    "interval_seconds": parsed.interval.total_seconds(),
                },
            )
            return False

        with self._lock:
            if job.name in self._runners:
                raise DuplicateJobError(job.name)
            self._runners[job.name] = _JobRunner(job, parsed)
            running = self._running

        self._logger.info(
            "job_registered",
            extra={
                "job_name": job.name,
                "schedule": job.schedule,
                "schedule_kind": parsed.kind.value,
                "interval_seconds": parsed.interval.total_seconds(),
            },
        )
        if running:
            self._logger.warning(
                "job_registered_while_running",
                extra={"job_name": job.name},
            )
        return True

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Launch one loop thread per registered job (idempotent)."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._shutdown = threading.Event()
            shutdown = self._shutdown

            launched = 0
            for runner in self._runners.values():
                if runner.thread is not None and runner.thread.is_alive():
                    self._logger.warning(
                        "job_loop_still_running",
                        extra={"job_name": runner.job.name},
                    )
                    continue
                runner.stop_event = threading.Event()
                runner.thread = threading.Thread(
                    target=self._run_loop,
                    args=(runner, shutdown),
                    name=f"job-{runner.job.name}",
                    daemon=True,
                )
                runner.thread.start()
                launched += 1

        self._logger.info("scheduler_started", extra={"job_count": launched})

    def stop(self, timeout: float | None = None) -> bool:
        """Signal shutdown and wait for every loop thread to exit.

        Args:
            timeout: Max seconds to wait across all threads (None = no limit).

        Returns:
            False if a loop thread is still running when the wait ends.
        """
        with self._lock:
            if not self._running:
                return True
            self._running = False
            shutdown = self._shutdown
            runners = list(self._runners.values())

        self._logger.info("scheduler_stopping")
        shutdown.set()
        for runner in runners:
            runner.stop_event.set()

        deadline = time.monotonic() + timeout if timeout is not None else None
        stopped = True
        for runner in runners:
            if runner.thread is None:
                continue
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            runner.thread.join(timeout=remaining)
            if runner.thread.is_alive():
                stopped = False
                self._logger.warning(
                    "job_stop_timeout",
                    extra={"job_name": runner.job.name},
                )

        self._logger.info("scheduler_stopped", extra={"clean": stopped})
        return stopped

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def job_names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._runners)

    # -------------------------------------------------------------------------
    # Introspection / manual execution
    # -------------------------------------------------------------------------

    def status(self) -> tuple[JobStatus, ...]:
        """Snapshot of every registered job, in registration order."""
        with self._lock:
            runners = list(self._runners.values())
        return tuple(r.snapshot() for r in runners)

    def run_now(self, name: str) -> JobExecutionResult:
        """Execute a registered job synchronously on the caller's thread.

        Waits for an in-flight execution of the same job to finish first.

        Raises:
            JobNotFoundError: no job registered under ``name``.
        """
        with self._lock:
            runner = self._runners.get(name)
            shutdown = self._shutdown if self._running else threading.Event()
            available = tuple(self._runners)
        if runner is None:
            raise JobNotFoundError(name, available)
        return self._execute(runner, shutdown)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    @staticmethod
    def _stopping(runner: _JobRunner, shutdown: threading.Event) -> bool:
        return shutdown.is_set() or runner.stop_event.is_set()

    def _run_loop(self, runner: _JobRunner, shutdown: threading.Event) -> None:
        """Fixed-rate loop for one job. Exits when shutdown or its stop event is set."""
        interval = runner.parsed.interval.total_seconds()
        next_fire = time.monotonic()

        while not self._stopping(runner, shutdown):
            self._execute(runner, shutdown)

            next_fire += interval
            now = time.monotonic()
            if now >= next_fire:
                # Overran: fire the late tick now, drop any beyond it.
                skipped = int((now - next_fire) // interval)
                if skipped:
                    self._logger.warning(
                        "job_ticks_skipped",
                        extra={"job_name": runner.job.name, "skipped": skipped},
                    )
                    next_fire += skipped * interval
                continue

            runner.stop_event.wait(timeout=next_fire - now)

        self._logger.debug("job_loop_exited", extra={"job_name": runner.job.name})

    def _execute(self, runner: _JobRunner, shutdown: threading.Event) -> JobExecutionResult:
        """Run the handler once with a fresh context; never raises Exception."""
        job = runner.job
        run_id = str(uuid4())

        with runner.execution_lock, LogContext.bind(job_name=job.name, run_id=run_id):
            ctx = ExecutionContext(job.name, run_id, shutdown, self._timeout)
            started_at = self._clock.now()
            runner.mark_started(started_at)
            t0 = time.monotonic()
            status = JobRunStatus.SUCCEEDED
            error: str | None = None

            self._logger.info("job_execution_started")
            try:
                job.handler(ctx)
            except JobCancelledError as exc:
                status = JobRunStatus.CANCELLED
                error = str(exc)
                self._logger.warning(
                    "job_execution_cancelled",
                    extra={"reason": exc.reason, "duration_ms": _elapsed_ms(t0)},
                )
            except Exception as exc:
                status = JobRunStatus.FAILED
                error = str(exc)
                self._logger.exception(
                    "job_execution_failed",
                    extra={"error": error, "duration_ms": _elapsed_ms(t0)},
                )
            else:
                self._logger.info(
                    "job_execution_completed",
                    extra={"duration_ms": _elapsed_ms(t0)},
                )
                if ctx.deadline_exceeded:
                    self._logger.warning(
                        "job_execution_deadline_exceeded",
                        extra={"timeout_seconds": self._timeout},
                    )

            result = JobExecutionResult(
                job_name=job.name,
                run_id=run_id,
                status=status,
                started_at=started_at,
                finished_at=self._clock.now(),
                duration_ms=_elapsed_ms(t0),
                error=error,
            )
            runner.record(result)
        return result


def _elapsed_ms(t0: float) -> int:
    return int((time.monotonic() - t0) * 1000)
