"""
pawnshop_batch.domain.types -- Pure frozen dataclasses for the job scheduler.

ZERO I/O.  Follows the pattern of pawnshop_kernel.domain: frozen
dataclasses with enum status fields and tuples for immutable collections.

Invariants enforced:
    - Job descriptors are immutable once registered; the scheduler never
      mutates a ``Job``.
    - ``JobExecutionResult`` and ``JobStatus`` are snapshots, safe to hand
      across threads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from pawnshop_batch.services.context import ExecutionContext


# =============================================================================
# Enums
# =============================================================================


class ScheduleKind(str, Enum):
    """How a schedule expression was interpreted."""

    HOURLY = "hourly"
    DAILY = "daily"
    EVERY = "every"  # every:<duration>
    FALLBACK = "fallback"  # unrecognized expression, 24h applied


class JobRunStatus(str, Enum):
    """Outcome of a single job execution."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"  # handler observed shutdown or deadline


# =============================================================================
# Job descriptor
# =============================================================================

JobHandler = Callable[["ExecutionContext"], None]


@dataclass(frozen=True)
class Job:
    """A named unit of recurring work.

    ``handler`` signals failure by raising; a clean return is success.
    """

    name: str
    schedule: str  # "hourly", "daily" or "every:<duration>"
    handler: JobHandler
    enabled: bool = True
    description: str = ""


# =============================================================================
# Results and status snapshots
# =============================================================================


@dataclass(frozen=True)
class JobExecutionResult:
    """Immutable result of one execution of one job."""

    job_name: str
    run_id: str
    status: JobRunStatus
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == JobRunStatus.SUCCEEDED


@dataclass(frozen=True)
class JobStatus:
    """Point-in-time view of a registered job, as reported by ``Scheduler.status()``."""

    name: str
    schedule: str
    interval: timedelta
    schedule_kind: ScheduleKind
    run_count: int = 0
    failure_count: int = 0
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_status: JobRunStatus | None = None
    last_error: str | None = None
