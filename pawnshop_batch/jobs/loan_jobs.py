"""
Loan lifecycle jobs -- the recurring business routines the worker schedules.

Contract:
    ``LoanLifecycleJobs`` exposes one method per routine, each with the
    scheduler handler signature ``(ctx: ExecutionContext) -> None``.  All
    collaborators arrive through a ``JobContext``; routines never reach for
    module-level state.

Architecture: pawnshop_batch/jobs.  Depends on repository protocols from
    pawnshop_kernel.repositories, never on their SQLAlchemy implementations.

Failure model:
    - A routine raises only when its bulk fetch fails (RepositoryError and
      friends propagate to the scheduler, which logs and counts them).
    - Per-record failures are logged with the loan id and skipped.
    - Between records every routine checks ``ctx.cancelled``; on
      cancellation it logs how far it got and raises JobCancelledError.

Invariants enforced:
    - Status changes only move forward (active -> overdue -> defaulted) and
      are written compare-and-set on the status read.
    - Late fees are recomputed from scratch and overwrite; interest is
      additive, one day per call.
    - Full-record writes carry the version read; on a version conflict the
      loan is re-read once and the computation re-applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterator, TypeVar

from pawnshop_kernel.domain.clock import Clock
from pawnshop_kernel.domain.dtos import (
    LoanFilter,
    Page,
    PageRequest,
    PaymentFilter,
)
from pawnshop_kernel.domain.loan import Loan, LoanStatus
from pawnshop_kernel.domain.notification import (
    NotificationChannel,
    NotificationType,
    SendNotificationRequest,
)
from pawnshop_kernel.exceptions import InvalidStatusTransitionError, OptimisticLockError
from pawnshop_kernel.logging_config import LogContext, get_logger
from pawnshop_kernel.repositories.interfaces import (
    CustomerRepository,
    LoanRepository,
    NotificationDispatcher,
    PaymentRepository,
    RefreshTokenRepository,
)

from pawnshop_batch.services.context import ExecutionContext

T = TypeVar("T")

_DAYS_PER_YEAR = Decimal("365")
_HUNDRED = Decimal("100")


# =============================================================================
# Context
# =============================================================================


@dataclass(frozen=True)
class JobSettings:
    """Business knobs for the routines."""

    reminder_days: frozenset[int] = frozenset({1, 3, 7})
    page_size: int = 1000
    late_fee_epsilon: Decimal = Decimal("0.01")
    notification_channel: NotificationChannel = NotificationChannel.SMS
    currency_symbol: str = "Q"
    branch_id: int | None = None  # None = all branches


@dataclass(frozen=True)
class JobContext:
    """Collaborators shared by every routine, built once at startup."""

    loans: LoanRepository
    payments: PaymentRepository
    customers: CustomerRepository
    notifications: NotificationDispatcher
    clock: Clock
    refresh_tokens: RefreshTokenRepository | None = None
    settings: JobSettings = field(default_factory=JobSettings)


@dataclass(frozen=True)
class DailyReport:
    """Aggregates for one local calendar day."""

    report_date: date
    window_start: datetime
    window_end: datetime  # exclusive
    total_loans: int
    payment_count: int
    completed_payment_count: int
    completed_payment_total: Decimal


# =============================================================================
# Routines
# =============================================================================


class LoanLifecycleJobs:
    """The seven recurring loan routines."""

    def __init__(self, context: JobContext, logger: logging.Logger | None = None):
        self._ctx = context
        self._settings = context.settings
        self._logger = logger or get_logger("batch.jobs")

    # -------------------------------------------------------------------------
    # Status sweep
    # -------------------------------------------------------------------------

    def process_overdue_loans(self, ctx: ExecutionContext) -> None:
        """Move past-due loans to overdue, and past-grace loans to defaulted.

        A loan that is past both thresholds crosses both in one pass.
        """
        as_of = self._ctx.clock.now()
        loans = self._ctx.loans.get_overdue_loans(as_of, self._settings.branch_id)

        marked_overdue = marked_defaulted = failed = 0
        for index, loan in enumerate(loans):
            self._stop_if_cancelled(ctx, index, len(loans))
            if loan.status.is_terminal:
                continue

            with LogContext.bind(loan_id=loan.id):
                status = loan.status
                try:
                    if status == LoanStatus.ACTIVE and loan.is_past_due(as_of):
                        self._transition(loan, status, LoanStatus.OVERDUE)
                        status = LoanStatus.OVERDUE
                        marked_overdue += 1

                    if status == LoanStatus.OVERDUE and loan.is_past_grace_period(as_of):
                        self._transition(loan, status, LoanStatus.DEFAULTED)
                        marked_defaulted += 1
                except Exception:
                    failed += 1
                    self._logger.exception(
                        "loan_status_update_failed",
                        extra={"loan_id": loan.id, "from_status": status.value},
                    )

        self._logger.info(
            "overdue_sweep_completed",
            extra={
                "candidates": len(loans),
                "marked_overdue": marked_overdue,
                "marked_defaulted": marked_defaulted,
                "failed": failed,
            },
        )

    def _transition(self, loan: Loan, current: LoanStatus, target: LoanStatus) -> None:
        if not current.can_transition_to(target):
            raise InvalidStatusTransitionError(loan.id, current.value, target.value)
        self._ctx.loans.update_status(loan.id, target, expected_status=current)
        self._logger.info(
            "loan_status_changed",
            extra={"loan_id": loan.id, "from_status": current.value, "to_status": target.value},
        )

    # -------------------------------------------------------------------------
    # Accruals
    # -------------------------------------------------------------------------

    def calculate_late_fees(self, ctx: ExecutionContext) -> None:
        """Recompute late fees for overdue loans; write only meaningful increases."""
        as_of = self._ctx.clock.now()
        loans = self._ctx.loans.get_overdue_loans(as_of, self._settings.branch_id)

        def apply(loan: Loan) -> Loan | None:
            if loan.status != LoanStatus.OVERDUE:
                return None
            days = loan.days_overdue(as_of)
            if days <= 0:
                return None
            candidate = loan.late_fee_rate / _HUNDRED * loan.loan_amount * days
            if candidate <= loan.late_fee_amount + self._settings.late_fee_epsilon:
                return None
            return loan.with_changes(late_fee_amount=candidate)

        updated = failed = 0
        for index, loan in enumerate(loans):
            self._stop_if_cancelled(ctx, index, len(loans))
            if loan.status != LoanStatus.OVERDUE:
                continue
            with LogContext.bind(loan_id=loan.id):
                try:
                    if self._update_with_retry(loan, apply):
                        updated += 1
                except Exception:
                    failed += 1
                    self._logger.exception(
                        "late_fee_update_failed", extra={"loan_id": loan.id},
                    )

        self._logger.info(
            "late_fee_calculation_completed",
            extra={"candidates": len(loans), "updated": updated, "failed": failed},
        )

    def calculate_daily_interest(self, ctx: ExecutionContext) -> None:
        """Add one day of interest to every active loan.

        Not idempotent: two calls add two days.  The schedule must run it at
        most once per day.
        """

        def apply(loan: Loan) -> Loan | None:
            if loan.status != LoanStatus.ACTIVE:
                return None
            daily_interest = loan.loan_amount * loan.interest_rate / _HUNDRED / _DAYS_PER_YEAR
            return loan.with_changes(interest_amount=loan.interest_amount + daily_interest)

        processed = updated = failed = 0
        for loan in self._active_loans():
            self._stop_if_cancelled(ctx, processed)
            processed += 1
            with LogContext.bind(loan_id=loan.id):
                try:
                    if self._update_with_retry(loan, apply):
                        updated += 1
                except Exception:
                    failed += 1
                    self._logger.exception(
                        "interest_update_failed", extra={"loan_id": loan.id},
                    )

        self._logger.info(
            "daily_interest_calculation_completed",
            extra={"processed": processed, "updated": updated, "failed": failed},
        )

    def _update_with_retry(self, loan: Loan, apply: Callable[[Loan], Loan | None]) -> bool:
        """Write ``apply(loan)``; on a version conflict re-read and re-apply once.

        Returns True if a write happened.  A second conflict propagates.
        """
        changed = apply(loan)
        if changed is None:
            return False
        try:
            self._ctx.loans.update(changed)
            return True
        except OptimisticLockError:
            self._logger.info("loan_version_conflict_retrying", extra={"loan_id": loan.id})

        fresh = self._ctx.loans.get_by_id(loan.id)
        if fresh is None:
            self._logger.warning("loan_disappeared", extra={"loan_id": loan.id})
            return False
        changed = apply(fresh)
        if changed is None:
            return False
        self._ctx.loans.update(changed)
        return True

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def send_due_date_reminders(self, ctx: ExecutionContext) -> None:
        """Remind customers whose active loan is due in exactly one of the reminder days."""
        as_of = self._ctx.clock.now()
        symbol = self._settings.currency_symbol

        processed = sent = skipped = failed = 0
        for loan in self._active_loans():
            self._stop_if_cancelled(ctx, processed)
            processed += 1

            days = loan.days_until_due(as_of)
            if days not in self._settings.reminder_days:
                continue

            message = (
                f"Your loan #{loan.loan_number} is due in {days} day(s). "
                f"Outstanding balance: {symbol}{loan.outstanding_balance:.2f}"
            )
            outcome = self._notify(
                loan, NotificationType.LOAN_DUE_REMINDER, "Loan Due Date Reminder", message,
            )
            if outcome is True:
                sent += 1
            elif outcome is False:
                skipped += 1
            else:
                failed += 1

        self._logger.info(
            "due_date_reminders_completed",
            extra={"processed": processed, "sent": sent, "skipped": skipped, "failed": failed},
        )

    def send_overdue_notifications(self, ctx: ExecutionContext) -> None:
        """Notify customers of every loan currently in overdue status."""
        as_of = self._ctx.clock.now()
        loans = self._ctx.loans.get_overdue_loans(as_of, self._settings.branch_id)

        sent = skipped = failed = 0
        for index, loan in enumerate(loans):
            self._stop_if_cancelled(ctx, index, len(loans))
            if loan.status != LoanStatus.OVERDUE:
                continue

            days = loan.days_overdue(as_of)
            message = (
                f"Your loan #{loan.loan_number} is {days} day(s) overdue. "
                "Please make your payment as soon as possible to avoid additional charges."
            )
            outcome = self._notify(loan, NotificationType.LOAN_OVERDUE, "Loan Overdue", message)
            if outcome is True:
                sent += 1
            elif outcome is False:
                skipped += 1
            else:
                failed += 1

        self._logger.info(
            "overdue_notifications_completed",
            extra={"candidates": len(loans), "sent": sent, "skipped": skipped, "failed": failed},
        )

    def _notify(
        self,
        loan: Loan,
        notification_type: NotificationType,
        title: str,
        message: str,
    ) -> bool | None:
        """Dispatch one notification for ``loan``.

        Returns True when dispatched, False when skipped (customer missing),
        None when the lookup or the dispatch failed.
        """
        with LogContext.bind(loan_id=loan.id):
            try:
                customer = self._ctx.customers.get_by_id(loan.customer_id)
                if customer is None:
                    self._logger.warning(
                        "notification_customer_not_found",
                        extra={"loan_id": loan.id, "customer_id": loan.customer_id},
                    )
                    return False

                self._ctx.notifications.send_to_customer(
                    SendNotificationRequest(
                        customer_id=customer.id,
                        notification_type=notification_type,
                        title=title,
                        message=message,
                        channel=self._settings.notification_channel,
                        reference_type="loan",
                        reference_id=loan.id,
                    )
                )
                return True
            except Exception:
                self._logger.exception(
                    "notification_dispatch_failed",
                    extra={
                        "loan_id": loan.id,
                        "customer_id": loan.customer_id,
                        "notification_type": notification_type.value,
                    },
                )
                return None

    # -------------------------------------------------------------------------
    # Reporting and housekeeping
    # -------------------------------------------------------------------------

    def generate_daily_report(self, ctx: ExecutionContext) -> DailyReport:
        """Summarise yesterday (local calendar day) and emit it as a log record."""
        clock = self._ctx.clock
        today = clock.now().date()
        # Both bounds are local midnights, so a DST day is 23 or 25 hours long.
        window_start = clock.start_of_day(today - timedelta(days=1))
        window_end = clock.start_of_day(today)
        branch_id = self._settings.branch_id

        loans_page = self._ctx.loans.list(
            LoanFilter(branch_id=branch_id), PageRequest(page=1, per_page=1),
        )

        payment_count = completed_count = 0
        completed_total = Decimal("0")
        payment_filter = PaymentFilter(
            branch_id=branch_id, date_from=window_start, date_to=window_end,
        )
        for payment in self._paged(lambda page: self._ctx.payments.list(payment_filter, page)):
            ctx.check()
            payment_count += 1
            if payment.is_completed:
                completed_count += 1
                completed_total += payment.amount

        report = DailyReport(
            report_date=window_start.date(),
            window_start=window_start,
            window_end=window_end,
            total_loans=loans_page.total,
            payment_count=payment_count,
            completed_payment_count=completed_count,
            completed_payment_total=completed_total,
        )
        self._logger.info(
            "daily_report_generated",
            extra={
                "report_date": report.report_date,
                "total_loans": report.total_loans,
                "payment_count": report.payment_count,
                "completed_payment_count": report.completed_payment_count,
                "completed_payment_total": report.completed_payment_total,
            },
        )
        return report

    def cleanup_expired_sessions(self, ctx: ExecutionContext) -> None:
        """Delete expired refresh tokens when a token repository is wired."""
        if self._ctx.refresh_tokens is None:
            self._logger.info("session_cleanup_skipped", extra={"reason": "no token repository"})
            return
        ctx.check()
        deleted = self._ctx.refresh_tokens.delete_expired(self._ctx.clock.now_utc())
        self._logger.info("expired_sessions_deleted", extra={"deleted": deleted})

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _active_loans(self) -> Iterator[Loan]:
        loan_filter = LoanFilter(status=LoanStatus.ACTIVE, branch_id=self._settings.branch_id)
        return self._paged(lambda page: self._ctx.loans.list(loan_filter, page))

    def _paged(self, fetch: Callable[[PageRequest], Page[T]]) -> Iterator[T]:
        page = PageRequest(page=1, per_page=self._settings.page_size)
        while True:
            result = fetch(page)
            yield from result.items
            if not result.has_next:
                return
            page = page.next()

    def _stop_if_cancelled(self, ctx: ExecutionContext, processed: int, total: int | None = None) -> None:
        if ctx.cancelled:
            self._logger.warning(
                "job_stopped_early",
                extra={"processed": processed, "total": total},
            )
            ctx.check()
