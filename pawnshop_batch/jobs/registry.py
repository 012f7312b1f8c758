"""
Default job registration.

Contract:
    ``DEFAULT_SCHEDULES`` names every loan lifecycle job and its schedule.
    ``build_jobs()`` turns a ``LoanLifecycleJobs`` instance into ``Job``
    descriptors, applying schedule overrides and the disabled set;
    ``register_default_jobs()`` registers them on a Scheduler.

Invariants enforced:
    - Override and disabled names must be known job names; an unknown name
      raises ConfigurationError rather than being silently ignored.
    - Registration order is the order of ``DEFAULT_SCHEDULES``.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

from pawnshop_kernel.exceptions import ConfigurationError

from pawnshop_batch.domain.types import Job
from pawnshop_batch.jobs.loan_jobs import LoanLifecycleJobs
from pawnshop_batch.services.context import ExecutionContext
from pawnshop_batch.services.scheduler import Scheduler

PROCESS_OVERDUE_LOANS = "process_overdue_loans"
CALCULATE_LATE_FEES = "calculate_late_fees"
CALCULATE_DAILY_INTEREST = "calculate_daily_interest"
SEND_DUE_DATE_REMINDERS = "send_due_date_reminders"
SEND_OVERDUE_NOTIFICATIONS = "send_overdue_notifications"
CLEANUP_EXPIRED_SESSIONS = "cleanup_expired_sessions"
GENERATE_DAILY_REPORT = "generate_daily_report"

DEFAULT_SCHEDULES: dict[str, str] = {
    PROCESS_OVERDUE_LOANS: "hourly",
    CALCULATE_LATE_FEES: "every:6h",
    CALCULATE_DAILY_INTEREST: "daily",  # additive: must stay at most once a day
    SEND_DUE_DATE_REMINDERS: "daily",
    SEND_OVERDUE_NOTIFICATIONS: "daily",
    CLEANUP_EXPIRED_SESSIONS: "daily",
    GENERATE_DAILY_REPORT: "daily",
}

_DESCRIPTIONS: dict[str, str] = {
    PROCESS_OVERDUE_LOANS: "Mark past-due loans overdue and past-grace loans defaulted",
    CALCULATE_LATE_FEES: "Recompute late fees for overdue loans",
    CALCULATE_DAILY_INTEREST: "Accrue one day of interest on active loans",
    SEND_DUE_DATE_REMINDERS: "Remind customers of upcoming due dates",
    SEND_OVERDUE_NOTIFICATIONS: "Notify customers of overdue loans",
    CLEANUP_EXPIRED_SESSIONS: "Delete expired refresh tokens",
    GENERATE_DAILY_REPORT: "Summarise yesterday's loans and payments",
}


def _handlers(jobs: LoanLifecycleJobs) -> dict[str, Callable[[ExecutionContext], object]]:
    return {
        PROCESS_OVERDUE_LOANS: jobs.process_overdue_loans,
        CALCULATE_LATE_FEES: jobs.calculate_late_fees,
        CALCULATE_DAILY_INTEREST: jobs.calculate_daily_interest,
        SEND_DUE_DATE_REMINDERS: jobs.send_due_date_reminders,
        SEND_OVERDUE_NOTIFICATIONS: jobs.send_overdue_notifications,
        CLEANUP_EXPIRED_SESSIONS: jobs.cleanup_expired_sessions,
        GENERATE_DAILY_REPORT: jobs.generate_daily_report,
    }


def _check_names(key: str, names: Iterable[str]) -> None:
    unknown = sorted(set(names) - set(DEFAULT_SCHEDULES))
    if unknown:
        raise ConfigurationError(
            key, f"unknown job name(s) {unknown}; known: {sorted(DEFAULT_SCHEDULES)}",
        )


def effective_schedules(
    schedules: Mapping[str, str] | None = None,
    disabled: Iterable[str] = (),
) -> tuple[tuple[str, str, bool], ...]:
    """Resolve ``(name, schedule, enabled)`` for every default job.

    Raises:
        ConfigurationError: an override or disabled name is not a known job.
    """
    schedules = dict(schedules or {})
    disabled = frozenset(disabled)
    _check_names("jobs.schedules", schedules)
    _check_names("jobs.disabled", disabled)
    return tuple(
        (name, schedules.get(name, default), name not in disabled)
        for name, default in DEFAULT_SCHEDULES.items()
    )


def build_jobs(
    jobs: LoanLifecycleJobs,
    schedules: Mapping[str, str] | None = None,
    disabled: Iterable[str] = (),
) -> tuple[Job, ...]:
    """Build one ``Job`` per default job name.

    Args:
        jobs: Routine implementations.
        schedules: Per-name schedule overrides.
        disabled: Names to build with ``enabled=False``.

    Raises:
        ConfigurationError: an override or disabled name is not a known job.
    """
    handlers = _handlers(jobs)
    return tuple(
        Job(
            name=name,
            schedule=schedule,
            handler=handlers[name],
            enabled=enabled,
            description=_DESCRIPTIONS[name],
        )
        for name, schedule, enabled in effective_schedules(schedules, disabled)
    )


def register_default_jobs(
    scheduler: Scheduler,
    jobs: LoanLifecycleJobs,
    schedules: Mapping[str, str] | None = None,
    disabled: Iterable[str] = (),
) -> tuple[str, ...]:
    """Register the default jobs; returns the names the scheduler accepted."""
    accepted = []
    for job in build_jobs(jobs, schedules, disabled):
        if scheduler.register(job):
            accepted.append(job.name)
    return tuple(accepted)
