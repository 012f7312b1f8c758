"""
pawnshop_batch.jobs -- Loan lifecycle routines and their default registration.
"""

from pawnshop_batch.jobs.loan_jobs import (
    DailyReport,
    JobContext,
    JobSettings,
    LoanLifecycleJobs,
)
from pawnshop_batch.jobs.registry import (
    DEFAULT_SCHEDULES,
    build_jobs,
    effective_schedules,
    register_default_jobs,
)

__all__ = [
    "DEFAULT_SCHEDULES",
    "DailyReport",
    "JobContext",
    "JobSettings",
    "LoanLifecycleJobs",
    "build_jobs",
    "effective_schedules",
    "register_default_jobs",
]
