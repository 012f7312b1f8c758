"""
pawnshop_batch -- Background job scheduling for the pawnshop loan lifecycle.

Provides an in-process interval scheduler (one thread per job, cooperative
cancellation, fixed-rate ticks), the schedule expression parser, the loan
lifecycle routines (status sweep, late fees, interest, reminders, overdue
notices, daily report, session cleanup) and the worker entry point.

Architecture:
    pawnshop_batch/ is a top-level package.  Nothing in pawnshop_kernel,
    pawnshop_services or pawnshop_config imports from pawnshop_batch.
"""

from pawnshop_batch.domain.types import Job, JobExecutionResult, JobRunStatus, JobStatus
from pawnshop_batch.services.context import ExecutionContext
from pawnshop_batch.services.scheduler import Scheduler

__all__ = [
    "ExecutionContext",
    "Job",
    "JobExecutionResult",
    "JobRunStatus",
    "JobStatus",
    "Scheduler",
]
