"""
WorkerOrchestrator -- DI container for the loan lifecycle worker.

Contract:
    Wires the SQL repositories, the notification service, the JobContext
    and the LoanLifecycleJobs, and creates a Scheduler with the default jobs
    registered.  Single place where all worker dependencies are composed.

Architecture: pawnshop_batch (top-level).  Only module that imports both
    pawnshop_config and the SQLAlchemy repository implementations.

Invariants enforced:
    - Clock injection: repositories, notification service, jobs and
      scheduler all receive the same Clock.
"""

from __future__ import annotations

import logging
from typing import Callable

import pytz
from sqlalchemy.orm import Session

from pawnshop_config.schema import JobsConfig, SchedulerConfig, WorkerConfig
from pawnshop_kernel.domain.clock import Clock, SystemClock
from pawnshop_kernel.domain.notification import NotificationChannel
from pawnshop_kernel.exceptions import ConfigurationError
from pawnshop_kernel.logging_config import get_logger
from pawnshop_kernel.repositories.sql import (
    SqlCustomerRepository,
    SqlLoanRepository,
    SqlPaymentRepository,
    SqlRefreshTokenRepository,
)
from pawnshop_services.notification_service import NotificationService

from pawnshop_batch.jobs.loan_jobs import JobContext, JobSettings, LoanLifecycleJobs
from pawnshop_batch.jobs.registry import register_default_jobs
from pawnshop_batch.services.scheduler import Scheduler

logger = get_logger("batch.orchestrator")


def settings_from_config(jobs_config: JobsConfig) -> JobSettings:
    """Translate the ``jobs`` config section into routine settings.

    Raises:
        ConfigurationError: unknown notification channel.
    """
    try:
        channel = NotificationChannel(jobs_config.notification_channel)
    except ValueError as exc:
        raise ConfigurationError(
            "jobs.notification_channel",
            f"unknown channel {jobs_config.notification_channel!r}; "
            f"expected one of {[c.value for c in NotificationChannel]}",
        ) from exc

    return JobSettings(
        reminder_days=frozenset(jobs_config.reminder_days),
        page_size=jobs_config.page_size,
        late_fee_epsilon=jobs_config.late_fee_epsilon,
        notification_channel=channel,
        currency_symbol=jobs_config.currency_symbol,
        branch_id=jobs_config.branch_id,
    )


class WorkerOrchestrator:
    """DI container for the worker process.

    Contract:
        - ``from_session_factory()`` builds a fully wired orchestrator.
        - ``create_scheduler()`` returns a Scheduler with the default jobs
          registered (config overrides applied), not yet started.

    Non-goals:
        - Does NOT start the scheduler -- caller decides.
        - Does NOT own the engine -- caller disposes it.
    """

    def __init__(
        self,
        job_context: JobContext,
        jobs_config: JobsConfig | None = None,
        scheduler_config: SchedulerConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._job_context = job_context
        self._jobs_config = jobs_config or JobsConfig()
        self._scheduler_config = scheduler_config or SchedulerConfig()
        self._logger = logger
        self._jobs = LoanLifecycleJobs(job_context, logger=logger)

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_session_factory(
        cls,
        session_factory: Callable[[], Session],
        config: WorkerConfig,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> WorkerOrchestrator:
        """Create a fully wired orchestrator over a SQLAlchemy session factory."""
        effective_clock = clock or SystemClock(
            zone=pytz.timezone(config.timezone) if config.timezone else None,
        )
        context = JobContext(
            loans=SqlLoanRepository(session_factory),
            payments=SqlPaymentRepository(session_factory),
            customers=SqlCustomerRepository(session_factory),
            notifications=NotificationService(session_factory, clock=effective_clock),
            clock=effective_clock,
            refresh_tokens=SqlRefreshTokenRepository(session_factory),
            settings=settings_from_config(config.jobs),
        )
        return cls(
            job_context=context,
            jobs_config=config.jobs,
            scheduler_config=config.scheduler,
            logger=logger,
        )

    # -------------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------------

    def create_scheduler(self) -> Scheduler:
        """Create a Scheduler with every enabled default job registered."""
        scheduler = Scheduler(
            clock=self._job_context.clock,
            logger=self._logger,
            execution_timeout_seconds=self._scheduler_config.execution_timeout_seconds,
        )
        accepted = register_default_jobs(
            scheduler,
            self._jobs,
            schedules=self._jobs_config.schedules,
            disabled=self._jobs_config.disabled,
        )
        logger.info("default_jobs_registered", extra={"jobs": list(accepted)})
        return scheduler

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def jobs(self) -> LoanLifecycleJobs:
        return self._jobs

    @property
    def job_context(self) -> JobContext:
        return self._job_context
