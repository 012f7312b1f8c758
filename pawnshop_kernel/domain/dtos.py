"""
Data transfer objects shared by repositories and jobs.

Payments, customers, list filters and pagination. All
frozen dataclasses; repositories return these rather than ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar

from pawnshop_kernel.domain.loan import LoanStatus

T = TypeVar("T")


# =============================================================================
# Pagination
# =============================================================================


@dataclass(frozen=True)
class PageRequest:
    """1-based page request."""

    page: int = 1
    per_page: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.per_page < 1:
            raise ValueError(f"per_page must be >= 1, got {self.per_page}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def next(self) -> PageRequest:
        return PageRequest(page=self.page + 1, per_page=self.per_page)


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus the unpaginated total."""

    items: tuple[T, ...]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


# =============================================================================
# Filters
# =============================================================================


@dataclass(frozen=True)
class LoanFilter:
    """Loan list filter. ``None`` fields do not constrain the query."""

    status: LoanStatus | None = None
    branch_id: int | None = None
    customer_id: int | None = None
    due_before: datetime | None = None
    due_after: datetime | None = None


class PaymentStatus(str, Enum):
    """Payment lifecycle status."""

    COMPLETED = "completed"
    PENDING = "pending"
    REVERSED = "reversed"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentFilter:
    """Payment list filter; ``date_from`` is inclusive, ``date_to`` exclusive."""

    status: PaymentStatus | None = None
    loan_id: int | None = None
    branch_id: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


# =============================================================================
# Entities
# =============================================================================


@dataclass(frozen=True)
class Payment:
    id: int
    payment_number: str
    branch_id: int
    loan_id: int
    customer_id: int
    amount: Decimal
    status: PaymentStatus
    payment_date: datetime

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED


@dataclass(frozen=True)
class Customer:
    id: int
    branch_id: int
    first_name: str
    last_name: str
    phone: str | None = None
    email: str | None = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

