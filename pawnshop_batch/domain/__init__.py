"""
pawnshop_batch.domain -- Pure types and schedule parsing for the scheduler.

ZERO I/O.  All types are frozen dataclasses.
"""

from pawnshop_batch.domain.schedule import (
    ParsedSchedule,
    parse_duration,
    parse_schedule,
    validate_schedule,
)
from pawnshop_batch.domain.types import (
    Job,
    JobExecutionResult,
    JobHandler,
    JobRunStatus,
    JobStatus,
    ScheduleKind,
)

__all__ = [
    "Job",
    "JobExecutionResult",
    "JobHandler",
    "JobRunStatus",
    "JobStatus",
    "ParsedSchedule",
    "ScheduleKind",
    "parse_duration",
    "parse_schedule",
    "validate_schedule",
]
