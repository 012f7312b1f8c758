"""
ORM models for loans and payments.

Contract:
    LoanModel and PaymentModel persist the records the lifecycle jobs read
    and update.  Each exposes ``to_dto()``; LoanModel also ``apply_dto()``
    for full-record updates.

Invariants enforced:
    - ``version`` on LoanModel is bumped by the repository on every
      full-record update (optimistic concurrency).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from pawnshop_kernel.db.base import TrackedBase
from pawnshop_kernel.domain.dtos import Payment, PaymentStatus
from pawnshop_kernel.domain.loan import Loan, LoanStatus


class LoanModel(TrackedBase):
    """Persistent pawn loan."""

    __tablename__ = "loans"

    __table_args__ = (
        Index("ix_loans_status_due_date", "status", "due_date"),
        Index("ix_loans_customer_id", "customer_id"),
    )

    loan_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    branch_id: Mapped[int] = mapped_column(Integer, nullable=False)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    due_date: Mapped[datetime] = mapped_column(nullable=False)
    grace_period_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    loan_amount: Mapped[Decimal] = mapped_column(nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(nullable=False)
    interest_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    late_fee_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    late_fee_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    def to_dto(self) -> Loan:
        return Loan(
            id=self.id,
            loan_number=self.loan_number,
            branch_id=self.branch_id,
            customer_id=self.customer_id,
            status=LoanStatus(self.status),
            due_date=self.due_date,
            loan_amount=self.loan_amount,
            interest_rate=self.interest_rate,
            interest_amount=self.interest_amount,
            late_fee_rate=self.late_fee_rate,
            late_fee_amount=self.late_fee_amount,
            amount_paid=self.amount_paid,
            grace_period_days=self.grace_period_days,
            version=self.version,
        )

    def apply_dto(self, loan: Loan) -> None:
        """Copy mutable fields from ``loan`` (id and version are not copied)."""
        self.loan_number = loan.loan_number
        self.branch_id = loan.branch_id
        self.customer_id = loan.customer_id
        self.status = loan.status.value
        self.due_date = loan.due_date
        self.grace_period_days = loan.grace_period_days
        self.loan_amount = loan.loan_amount
        self.interest_rate = loan.interest_rate
        self.interest_amount = loan.interest_amount
        self.late_fee_rate = loan.late_fee_rate
        self.late_fee_amount = loan.late_fee_amount
        self.amount_paid = loan.amount_paid

    @classmethod
    def from_dto(cls, loan: Loan) -> LoanModel:
        model = cls(id=loan.id or None, version=loan.version)
        model.apply_dto(loan)
        return model


class PaymentModel(TrackedBase):
    """Persistent loan payment."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("ix_payments_payment_date", "payment_date"),
        Index("ix_payments_loan_id", "loan_id"),
    )

    payment_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    branch_id: Mapped[int] = mapped_column(Integer, nullable=False)
    loan_id: Mapped[int] = mapped_column(ForeignKey("loans.id"), nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_date: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> Payment:
        return Payment(
            id=self.id,
            payment_number=self.payment_number,
            branch_id=self.branch_id,
            loan_id=self.loan_id,
            customer_id=self.customer_id,
            amount=self.amount,
            status=PaymentStatus(self.status),
            payment_date=self.payment_date,
        )
