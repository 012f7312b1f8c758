"""
Loan -- Pawn loan snapshot and its status chain.

Responsibility:
    Immutable view of a loan as the lifecycle jobs see it, plus the pure
    date arithmetic they share (days overdue, days until due, grace period
    end).

Invariants enforced:
    - Status moves only forward along active -> overdue -> defaulted.
    - paid, cancelled, confiscated and renewed are terminal; defaulted is
      terminal for the scheduler (only an operator can confiscate).
    - Monetary fields are Decimal, never float.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

_ONE_DAY = timedelta(days=1)


class LoanStatus(str, Enum):
    """Loan lifecycle status."""

    ACTIVE = "active"
    OVERDUE = "overdue"
    DEFAULTED = "defaulted"
    PAID = "paid"
    CANCELLED = "cancelled"
    CONFISCATED = "confiscated"
    RENEWED = "renewed"

    @property
    def is_terminal(self) -> bool:
        """True for statuses the scheduler never moves a loan out of."""
        return self in _TERMINAL_STATUSES

    def can_transition_to(self, target: LoanStatus) -> bool:
        """Whether the scheduler may move a loan from this status to ``target``."""
        return target in _FORWARD_TRANSITIONS.get(self, frozenset())


_TERMINAL_STATUSES = frozenset({
    LoanStatus.DEFAULTED,
    LoanStatus.PAID,
    LoanStatus.CANCELLED,
    LoanStatus.CONFISCATED,
    LoanStatus.RENEWED,
})

_FORWARD_TRANSITIONS: dict[LoanStatus, frozenset[LoanStatus]] = {
    LoanStatus.ACTIVE: frozenset({LoanStatus.OVERDUE, LoanStatus.DEFAULTED}),
    LoanStatus.OVERDUE: frozenset({LoanStatus.DEFAULTED}),
}


def whole_days(delta: timedelta) -> int:
    """Floor a timedelta to whole days (negative deltas round down)."""
    return delta // _ONE_DAY


@dataclass(frozen=True)
class Loan:
    """Immutable snapshot of a pawn loan.

    ``version`` increments on every full-record update; repositories use it
    to reject writes based on a stale snapshot.
    """

    id: int
    loan_number: str
    branch_id: int
    customer_id: int
    status: LoanStatus
    due_date: datetime
    loan_amount: Decimal
    interest_rate: Decimal  # annual percentage
    interest_amount: Decimal = Decimal("0")
    late_fee_rate: Decimal = Decimal("0")  # percentage per day overdue
    late_fee_amount: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")
    grace_period_days: int = 0
    version: int = 1

    @property
    def outstanding_balance(self) -> Decimal:
        return self.loan_amount - self.amount_paid

    @property
    def grace_period_end(self) -> datetime:
        return self.due_date + timedelta(days=self.grace_period_days)

    def is_past_due(self, as_of: datetime) -> bool:
        return self.due_date < as_of

    def is_past_grace_period(self, as_of: datetime) -> bool:
        return self.grace_period_end < as_of

    def days_overdue(self, as_of: datetime) -> int:
        """Whole days elapsed since the due date (negative before it)."""
        return whole_days(as_of - self.due_date)

    def days_until_due(self, as_of: datetime) -> int:
        """Whole days remaining until the due date (negative after it)."""
        return whole_days(self.due_date - as_of)

    def with_changes(self, **changes: object) -> Loan:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
