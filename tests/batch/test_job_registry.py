"""
Tests for pawnshop_batch.jobs.registry -- default job set and overrides.
"""

from datetime import timedelta

import pytest

from pawnshop_batch.jobs.loan_jobs import JobContext, LoanLifecycleJobs
from pawnshop_batch.jobs.registry import (
    DEFAULT_SCHEDULES,
    build_jobs,
    effective_schedules,
    register_default_jobs,
)
from pawnshop_batch.services.scheduler import Scheduler
from pawnshop_kernel.exceptions import ConfigurationError

from tests.fakes import (
    InMemoryCustomerRepository,
    InMemoryLoanRepository,
    InMemoryPaymentRepository,
    RecordingNotificationDispatcher,
)

ALL_JOBS = (
    "process_overdue_loans",
    "calculate_late_fees",
    "calculate_daily_interest",
    "send_due_date_reminders",
    "send_overdue_notifications",
    "cleanup_expired_sessions",
    "generate_daily_report",
)


@pytest.fixture
def jobs(clock):
    context = JobContext(
        loans=InMemoryLoanRepository(),
        payments=InMemoryPaymentRepository(),
        customers=InMemoryCustomerRepository(),
        notifications=RecordingNotificationDispatcher(),
        clock=clock,
    )
    return LoanLifecycleJobs(context)


@pytest.fixture
def scheduler(clock, recording_logger):
    logger, _ = recording_logger
    sched = Scheduler(clock=clock, logger=logger)
    yield sched
    sched.stop(timeout=2.0)


class TestDefaultSchedules:
    def test_every_job_has_a_schedule(self):
        assert tuple(DEFAULT_SCHEDULES) == ALL_JOBS

    def test_documented_cadence(self):
        assert DEFAULT_SCHEDULES["process_overdue_loans"] == "hourly"
        assert DEFAULT_SCHEDULES["calculate_late_fees"] == "every:6h"
        for name in ALL_JOBS[2:]:
            assert DEFAULT_SCHEDULES[name] == "daily"


class TestEffectiveSchedules:
    def test_defaults(self):
        resolved = effective_schedules()
        assert [(name, schedule) for name, schedule, _ in resolved] == list(
            DEFAULT_SCHEDULES.items()
        )
        assert all(enabled for _, _, enabled in resolved)

    def test_override_and_disable(self):
        resolved = {
            name: (schedule, enabled)
            for name, schedule, enabled in effective_schedules(
                {"calculate_late_fees": "every:2h"}, disabled={"generate_daily_report"},
            )
        }
        assert resolved["calculate_late_fees"] == ("every:2h", True)
        assert resolved["generate_daily_report"] == ("daily", False)

    def test_unknown_override_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            effective_schedules({"calculate_fees": "hourly"})
        assert exc_info.value.key == "jobs.schedules"

    def test_unknown_disabled_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            effective_schedules(disabled=["nightly_backup"])
        assert exc_info.value.key == "jobs.disabled"


class TestBuildJobs:
    def test_one_job_per_routine(self, jobs):
        built = build_jobs(jobs)
        assert tuple(job.name for job in built) == ALL_JOBS
        assert all(job.description for job in built)

    def test_handlers_are_bound_routines(self, jobs):
        by_name = {job.name: job for job in build_jobs(jobs)}
        assert by_name["process_overdue_loans"].handler == jobs.process_overdue_loans
        assert by_name["generate_daily_report"].handler == jobs.generate_daily_report

    def test_disabled_flag_carried(self, jobs):
        by_name = {job.name: job for job in build_jobs(jobs, disabled=["calculate_daily_interest"])}
        assert by_name["calculate_daily_interest"].enabled is False
        assert by_name["calculate_late_fees"].enabled is True


class TestRegisterDefaultJobs:
    def test_registers_all_by_default(self, scheduler, jobs):
        accepted = register_default_jobs(scheduler, jobs)
        assert accepted == ALL_JOBS
        assert scheduler.job_names == ALL_JOBS

    def test_intervals(self, scheduler, jobs):
        register_default_jobs(scheduler, jobs)
        intervals = {status.name: status.interval for status in scheduler.status()}
        assert intervals["process_overdue_loans"] == timedelta(hours=1)
        assert intervals["calculate_late_fees"] == timedelta(hours=6)
        assert intervals["calculate_daily_interest"] == timedelta(hours=24)

    def test_disabled_and_invalid_are_not_accepted(self, scheduler, jobs):
        accepted = register_default_jobs(
            scheduler,
            jobs,
            schedules={"calculate_late_fees": "every:0s"},
            disabled={"cleanup_expired_sessions"},
        )
        assert "calculate_late_fees" not in accepted
        assert "cleanup_expired_sessions" not in accepted
        assert len(accepted) == 5

    def test_registered_job_runs(self, scheduler, jobs):
        register_default_jobs(scheduler, jobs)
        result = scheduler.run_now("generate_daily_report")
        assert result.succeeded
