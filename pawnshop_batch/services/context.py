"""
ExecutionContext -- cooperative cancellation handed to every job handler.

Contract:
    A context is cancelled when the scheduler's shutdown event is set or
    when the execution deadline passes, whichever comes first.  Handlers
    poll ``cancelled`` (or call ``check()``) between units of work and
    return early; nothing in the scheduler interrupts a running handler.

Invariants enforced:
    - The deadline is measured on ``time.monotonic`` so wall-clock jumps
      (or a DeterministicClock in tests) never shorten or extend it.
    - ``wait()`` returns as soon as the context is cancelled.
"""

from __future__ import annotations

import threading
import time

from pawnshop_kernel.exceptions import JobCancelledError

DEFAULT_TIMEOUT_SECONDS = 300.0


class ExecutionContext:
    """Deadline plus shutdown signal for one job execution."""

    def __init__(
        self,
        job_name: str,
        run_id: str,
        shutdown: threading.Event | None = None,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.job_name = job_name
        self.run_id = run_id
        self._shutdown = shutdown or threading.Event()
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self.shutdown_requested or self.deadline_exceeded

    def remaining(self) -> float | None:
        """Seconds left before the deadline (``None`` when unbounded)."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        """Raise ``JobCancelledError`` if the context has been cancelled."""
        if self.shutdown_requested:
            raise JobCancelledError("scheduler shutting down")
        if self.deadline_exceeded:
            raise JobCancelledError("execution deadline exceeded")

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if cancelled meanwhile."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._shutdown.wait(timeout=max(0.0, seconds))
        return self.cancelled
