"""
Collaborator contracts consumed by the lifecycle jobs.

Contract:
    Structural protocols only; jobs depend on these, never on SQLAlchemy.
    Implementations must be safe to call concurrently from several job
    threads.

Failure model:
    - Infrastructure failures raise ``RepositoryError``.
    - A missing customer is not an error: ``get_by_id`` returns ``None``.
    - ``LoanRepository.update`` raises ``OptimisticLockError`` when the
      stored version no longer matches the snapshot being written.
    - ``LoanRepository.update_status`` raises ``OptimisticLockError`` when
      ``expected_status`` is given and the stored status differs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from pawnshop_kernel.domain.dtos import (
    Customer,
    LoanFilter,
    Page,
    PageRequest,
    Payment,
    PaymentFilter,
)
from pawnshop_kernel.domain.loan import Loan, LoanStatus
from pawnshop_kernel.domain.notification import Notification, SendNotificationRequest


@runtime_checkable
class LoanRepository(Protocol):

    def get_overdue_loans(
        self, as_of: datetime, branch_id: int | None = None,
    ) -> list[Loan]:
        """Active or overdue loans whose due date is before ``as_of``.

        ``branch_id=None`` covers every branch.
        """
        ...

    def list(self, filters: LoanFilter, page: PageRequest) -> Page[Loan]: ...

    def get_by_id(self, loan_id: int) -> Loan | None: ...

    def update(self, loan: Loan) -> Loan:
        """Write the full record; returns the stored loan with its new version."""
        ...

    def update_status(
        self,
        loan_id: int,
        status: LoanStatus,
        expected_status: LoanStatus | None = None,
    ) -> None: ...


@runtime_checkable
class PaymentRepository(Protocol):

    def list(self, filters: PaymentFilter, page: PageRequest) -> Page[Payment]: ...


@runtime_checkable
class CustomerRepository(Protocol):

    def get_by_id(self, customer_id: int) -> Customer | None: ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Fire-and-forget customer notification.

    Returns the recorded notification, or ``None`` when the customer opted
    out of this type/channel. Raises on failure; callers do not retry.
    """

    def send_to_customer(self, request: SendNotificationRequest) -> Notification | None: ...


@runtime_checkable
class RefreshTokenRepository(Protocol):

    def delete_expired(self, as_of: datetime) -> int:
        """Delete tokens that expired before ``as_of``; returns the count."""
        ...
