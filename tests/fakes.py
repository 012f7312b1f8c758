"""
In-memory collaborators and builders for job and scheduler tests.

Each fake implements the matching protocol from
``pawnshop_kernel.repositories.interfaces`` and records what was called so
tests can assert on it.  Failure injection is opt-in per instance.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from pawnshop_kernel.domain.dtos import (
    Customer,
    LoanFilter,
    Page,
    PageRequest,
    Payment,
    PaymentFilter,
    PaymentStatus,
)
from pawnshop_kernel.domain.loan import Loan, LoanStatus
from pawnshop_kernel.domain.notification import (
    Notification,
    NotificationStatus,
    SendNotificationRequest,
)
from pawnshop_kernel.exceptions import (
    LoanNotFoundError,
    NotificationError,
    OptimisticLockError,
    RepositoryError,
)

BASE_TIME = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Builders
# =============================================================================


def make_loan(loan_id: int = 1, **overrides) -> Loan:
    fields = dict(
        id=loan_id,
        loan_number=f"L-{loan_id:05d}",
        branch_id=1,
        customer_id=100 + loan_id,
        status=LoanStatus.ACTIVE,
        due_date=BASE_TIME + timedelta(days=30),
        loan_amount=Decimal("1000"),
        interest_rate=Decimal("36.5"),
        late_fee_rate=Decimal("0.5"),
    )
    fields.update(overrides)
    return Loan(**fields)


def make_customer(customer_id: int = 101, **overrides) -> Customer:
    fields = dict(
        id=customer_id,
        branch_id=1,
        first_name="Ana",
        last_name=f"Lopez {customer_id}",
        phone="+502 5555 0000",
    )
    fields.update(overrides)
    return Customer(**fields)


def make_payment(payment_id: int, payment_date: datetime, **overrides) -> Payment:
    fields = dict(
        id=payment_id,
        payment_number=f"P-{payment_id:05d}",
        branch_id=1,
        loan_id=1,
        customer_id=101,
        amount=Decimal("100.00"),
        status=PaymentStatus.COMPLETED,
        payment_date=payment_date,
    )
    fields.update(overrides)
    return Payment(**fields)


def _paginate(items: list, page: PageRequest) -> Page:
    window = items[page.offset:page.offset + page.per_page]
    return Page(items=tuple(window), total=len(items), page=page.page, per_page=page.per_page)


# =============================================================================
# Repositories
# =============================================================================


class InMemoryLoanRepository:
    """Thread-safe loan store with version checks and failure injection.

    Attributes:
        fail_bulk_fetch: exception raised by get_overdue_loans/list when set.
        fail_writes_for: loan ids whose update/update_status raise RepositoryError.
        conflicts: loan id -> number of OptimisticLockErrors to inject on
            update(); each injection bumps the stored version as a concurrent
            writer would.
    """

    def __init__(self, loans=()):
        self._lock = threading.Lock()
        self._loans: dict[int, Loan] = {loan.id: loan for loan in loans}
        self.fail_bulk_fetch: Exception | None = None
        self.fail_writes_for: set[int] = set()
        self.conflicts: dict[int, int] = {}
        self.updates: list[Loan] = []
        self.status_updates: list[tuple[int, LoanStatus]] = []
        self.list_calls = 0

    def add(self, loan: Loan) -> None:
        with self._lock:
            self._loans[loan.id] = loan

    def get(self, loan_id: int) -> Loan:
        with self._lock:
            return self._loans[loan_id]

    def all_loans(self) -> list[Loan]:
        with self._lock:
            return sorted(self._loans.values(), key=lambda loan: loan.id)

    def get_overdue_loans(self, as_of: datetime, branch_id: int | None = None) -> list[Loan]:
        if self.fail_bulk_fetch is not None:
            raise self.fail_bulk_fetch
        with self._lock:
            return sorted(
                (
                    loan for loan in self._loans.values()
                    if loan.status in (LoanStatus.ACTIVE, LoanStatus.OVERDUE)
                    and loan.due_date < as_of
                    and (branch_id is None or loan.branch_id == branch_id)
                ),
                key=lambda loan: loan.id,
            )

    def list(self, filters: LoanFilter, page: PageRequest) -> Page[Loan]:
        if self.fail_bulk_fetch is not None:
            raise self.fail_bulk_fetch
        self.list_calls += 1
        with self._lock:
            items = sorted(
                (
                    loan for loan in self._loans.values()
                    if (filters.status is None or loan.status == filters.status)
                    and (filters.branch_id is None or loan.branch_id == filters.branch_id)
                    and (filters.customer_id is None or loan.customer_id == filters.customer_id)
                ),
                key=lambda loan: loan.id,
            )
        return _paginate(items, page)

    def get_by_id(self, loan_id: int) -> Loan | None:
        with self._lock:
            return self._loans.get(loan_id)

    def update(self, loan: Loan) -> Loan:
        if loan.id in self.fail_writes_for:
            raise RepositoryError("update_loan", "injected failure")
        with self._lock:
            stored = self._loans.get(loan.id)
            if stored is None:
                raise LoanNotFoundError(loan.id)
            if self.conflicts.get(loan.id, 0) > 0:
                self.conflicts[loan.id] -= 1
                self._loans[loan.id] = stored.with_changes(version=stored.version + 1)
                raise OptimisticLockError("Loan", loan.id, expected=loan.version)
            if stored.version != loan.version:
                raise OptimisticLockError("Loan", loan.id, expected=loan.version)
            new = loan.with_changes(version=loan.version + 1)
            self._loans[loan.id] = new
            self.updates.append(new)
            return new

    def update_status(
        self,
        loan_id: int,
        status: LoanStatus,
        expected_status: LoanStatus | None = None,
    ) -> None:
        if loan_id in self.fail_writes_for:
            raise RepositoryError("update_loan_status", "injected failure")
        with self._lock:
            stored = self._loans.get(loan_id)
            if stored is None:
                raise LoanNotFoundError(loan_id)
            if expected_status is not None and stored.status != expected_status:
                raise OptimisticLockError("Loan", loan_id, expected=expected_status.value)
            self._loans[loan_id] = stored.with_changes(status=status, version=stored.version + 1)
            self.status_updates.append((loan_id, status))


class InMemoryPaymentRepository:

    def __init__(self, payments=()):
        self._payments = list(payments)
        self.fail_bulk_fetch: Exception | None = None

    def list(self, filters: PaymentFilter, page: PageRequest) -> Page[Payment]:
        if self.fail_bulk_fetch is not None:
            raise self.fail_bulk_fetch
        items = sorted(
            (
                p for p in self._payments
                if (filters.status is None or p.status == filters.status)
                and (filters.loan_id is None or p.loan_id == filters.loan_id)
                and (filters.branch_id is None or p.branch_id == filters.branch_id)
                and (filters.date_from is None or p.payment_date >= filters.date_from)
                and (filters.date_to is None or p.payment_date < filters.date_to)
            ),
            key=lambda p: (p.payment_date, p.id),
        )
        return _paginate(items, page)


class InMemoryCustomerRepository:

    def __init__(self, customers=()):
        self._customers = {c.id: c for c in customers}
        self.fail_for: set[int] = set()

    def get_by_id(self, customer_id: int) -> Customer | None:
        if customer_id in self.fail_for:
            raise RepositoryError("get_customer", "injected failure")
        return self._customers.get(customer_id)


class RecordingNotificationDispatcher:
    """Records every request; raises NotificationError for ``fail_for`` customers."""

    def __init__(self):
        self._lock = threading.Lock()
        self.sent: list[SendNotificationRequest] = []
        self.fail_for: set[int] = set()

    def send_to_customer(self, request: SendNotificationRequest) -> Notification | None:
        if request.customer_id in self.fail_for:
            raise NotificationError(
                request.customer_id, request.notification_type.value, "gateway down",
            )
        with self._lock:
            self.sent.append(request)
            return Notification(
                id=len(self.sent),
                customer_id=request.customer_id,
                branch_id=1,
                notification_type=request.notification_type,
                channel=request.channel,
                subject=request.title,
                body=request.message,
                status=NotificationStatus.PENDING,
                reference_type=request.reference_type,
                reference_id=request.reference_id,
            )

    def loan_ids(self) -> list[int | None]:
        return [r.reference_id for r in self.sent]


class InMemoryRefreshTokenRepository:

    def __init__(self, expirations=()):
        self.expirations: list[datetime] = list(expirations)
        self.calls: list[datetime] = []

    def delete_expired(self, as_of: datetime) -> int:
        self.calls.append(as_of)
        kept = [e for e in self.expirations if e >= as_of]
        deleted = len(self.expirations) - len(kept)
        self.expirations = kept
        return deleted


# =============================================================================
# Logging
# =============================================================================


class RecordingHandler(logging.Handler):
    """Keeps every LogRecord it receives."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def messages(self) -> list[str]:
        return [r.getMessage() for r in self.records]

    def find(self, message: str) -> list[logging.LogRecord]:
        return [r for r in self.records if r.getMessage() == message]
