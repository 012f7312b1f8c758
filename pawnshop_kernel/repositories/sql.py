"""
Module: pawnshop_kernel.repositories.sql
Responsibility: SQLAlchemy implementations of the repository protocols.
Architecture position: Kernel > Repositories.  May import from db/, models/
    and domain/.  MUST NOT import from pawnshop_batch or pawnshop_services.

Invariants enforced:
    - Session per call: repositories hold a session factory, never a
      session, so concurrent job threads never share ORM state.  Every
      public method runs inside its own ``session_scope``.
    - DTO return convention: callers receive frozen dataclasses, never ORM
      instances.
    - Optimistic concurrency: ``SqlLoanRepository.update`` is a
      version-guarded UPDATE; ``update_status`` with ``expected_status`` is
      a compare-and-set on the status column.

Failure modes:
    - RepositoryError wraps any SQLAlchemyError (original chained).
    - LoanNotFoundError from update/update_status when the row is gone.
    - OptimisticLockError when the guard matches zero rows.
"""

from __future__ import annotations

from abc import ABC
from datetime import datetime
from typing import Callable, Generic, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pawnshop_kernel.db.base import Base
from pawnshop_kernel.db.engine import session_scope
from pawnshop_kernel.domain.dtos import (
    Customer,
    LoanFilter,
    Page,
    PageRequest,
    Payment,
    PaymentFilter,
)
from pawnshop_kernel.domain.loan import Loan, LoanStatus
from pawnshop_kernel.exceptions import (
    LoanNotFoundError,
    OptimisticLockError,
    RepositoryError,
)
from pawnshop_kernel.logging_config import get_logger
from pawnshop_kernel.models.customer import CustomerModel, RefreshTokenModel
from pawnshop_kernel.models.loan import LoanModel, PaymentModel

logger = get_logger("repositories.sql")

ModelType = TypeVar("ModelType", bound=Base)

_SWEEP_STATUSES = (LoanStatus.ACTIVE.value, LoanStatus.OVERDUE.value)


class SqlRepository(ABC, Generic[ModelType]):
    """
    Abstract base for SQL-backed repositories.

    Contract:
        Accepts a session factory (``sessionmaker``) and opens one
        transactional scope per public call.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)

    @staticmethod
    def _wrap(operation: str, exc: SQLAlchemyError) -> RepositoryError:
        logger.error(
            "repository_operation_failed",
            extra={"operation": operation, "error": str(exc)},
        )
        return RepositoryError(operation, str(exc))


class SqlLoanRepository(SqlRepository[LoanModel]):
    """Loans backed by the ``loans`` table."""

    def get_overdue_loans(
        self, as_of: datetime, branch_id: int | None = None,
    ) -> list[Loan]:
        stmt = (
            select(LoanModel)
            .where(LoanModel.status.in_(_SWEEP_STATUSES))
            .where(LoanModel.due_date < as_of)
            .order_by(LoanModel.due_date, LoanModel.id)
        )
        if branch_id is not None:
            stmt = stmt.where(LoanModel.branch_id == branch_id)
        try:
            with self._scope() as session:
                return [m.to_dto() for m in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise self._wrap("get_overdue_loans", exc) from exc

    def list(self, filters: LoanFilter, page: PageRequest) -> Page[Loan]:
        conditions = []
        if filters.status is not None:
            conditions.append(LoanModel.status == filters.status.value)
        if filters.branch_id is not None:
            conditions.append(LoanModel.branch_id == filters.branch_id)
        if filters.customer_id is not None:
            conditions.append(LoanModel.customer_id == filters.customer_id)
        if filters.due_before is not None:
            conditions.append(LoanModel.due_date < filters.due_before)
        if filters.due_after is not None:
            conditions.append(LoanModel.due_date >= filters.due_after)

        try:
            with self._scope() as session:
                total = session.scalar(
                    select(func.count()).select_from(LoanModel).where(*conditions)
                ) or 0
                rows = session.scalars(
                    select(LoanModel)
                    .where(*conditions)
                    .order_by(LoanModel.id)
                    .offset(page.offset)
                    .limit(page.per_page)
                )
                items = tuple(m.to_dto() for m in rows)
        except SQLAlchemyError as exc:
            raise self._wrap("list_loans", exc) from exc

        return Page(items=items, total=total, page=page.page, per_page=page.per_page)

    def get_by_id(self, loan_id: int) -> Loan | None:
        try:
            with self._scope() as session:
                model = session.get(LoanModel, loan_id)
                return model.to_dto() if model is not None else None
        except SQLAlchemyError as exc:
            raise self._wrap("get_loan", exc) from exc

    def add(self, loan: Loan) -> Loan:
        """Insert a new loan and return it with its assigned id."""
        try:
            with self._scope() as session:
                model = LoanModel.from_dto(loan)
                session.add(model)
                session.flush()
                return model.to_dto()
        except SQLAlchemyError as exc:
            raise self._wrap("add_loan", exc) from exc

    def update(self, loan: Loan) -> Loan:
        values = {
            "status": loan.status.value,
            "due_date": loan.due_date,
            "grace_period_days": loan.grace_period_days,
            "loan_amount": loan.loan_amount,
            "interest_rate": loan.interest_rate,
            "interest_amount": loan.interest_amount,
            "late_fee_rate": loan.late_fee_rate,
            "late_fee_amount": loan.late_fee_amount,
            "amount_paid": loan.amount_paid,
            "version": loan.version + 1,
        }
        stmt = (
            update(LoanModel)
            .where(LoanModel.id == loan.id)
            .where(LoanModel.version == loan.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            with self._scope() as session:
                result = session.execute(stmt)
                if result.rowcount == 0:
                    if session.get(LoanModel, loan.id) is None:
                        raise LoanNotFoundError(loan.id)
                    raise OptimisticLockError("Loan", loan.id, expected=loan.version)
        except SQLAlchemyError as exc:
            raise self._wrap("update_loan", exc) from exc

        return loan.with_changes(version=loan.version + 1)

    def update_status(
        self,
        loan_id: int,
        status: LoanStatus,
        expected_status: LoanStatus | None = None,
    ) -> None:
        stmt = (
            update(LoanModel)
            .where(LoanModel.id == loan_id)
            .values(status=status.value, version=LoanModel.version + 1)
            .execution_options(synchronize_session=False)
        )
        if expected_status is not None:
            stmt = stmt.where(LoanModel.status == expected_status.value)
        try:
            with self._scope() as session:
                result = session.execute(stmt)
                if result.rowcount == 0:
                    if session.get(LoanModel, loan_id) is None:
                        raise LoanNotFoundError(loan_id)
                    raise OptimisticLockError(
                        "Loan", loan_id,
                        expected=expected_status.value if expected_status else None,
                    )
        except SQLAlchemyError as exc:
            raise self._wrap("update_loan_status", exc) from exc

        logger.debug(
            "loan_status_updated",
            extra={"loan_id": loan_id, "status": status.value},
        )


class SqlPaymentRepository(SqlRepository[PaymentModel]):
    """Payments backed by the ``payments`` table."""

    def list(self, filters: PaymentFilter, page: PageRequest) -> Page[Payment]:
        conditions = []
        if filters.status is not None:
            conditions.append(PaymentModel.status == filters.status.value)
        if filters.loan_id is not None:
            conditions.append(PaymentModel.loan_id == filters.loan_id)
        if filters.branch_id is not None:
            conditions.append(PaymentModel.branch_id == filters.branch_id)
        if filters.date_from is not None:
            conditions.append(PaymentModel.payment_date >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(PaymentModel.payment_date < filters.date_to)

        try:
            with self._scope() as session:
                total = session.scalar(
                    select(func.count()).select_from(PaymentModel).where(*conditions)
                ) or 0
                rows = session.scalars(
                    select(PaymentModel)
                    .where(*conditions)
                    .order_by(PaymentModel.payment_date, PaymentModel.id)
                    .offset(page.offset)
                    .limit(page.per_page)
                )
                items = tuple(m.to_dto() for m in rows)
        except SQLAlchemyError as exc:
            raise self._wrap("list_payments", exc) from exc

        return Page(items=items, total=total, page=page.page, per_page=page.per_page)


class SqlCustomerRepository(SqlRepository[CustomerModel]):
    """Customers backed by the ``customers`` table."""

    def get_by_id(self, customer_id: int) -> Customer | None:
        try:
            with self._scope() as session:
                model = session.get(CustomerModel, customer_id)
                return model.to_dto() if model is not None else None
        except SQLAlchemyError as exc:
            raise self._wrap("get_customer", exc) from exc


class SqlRefreshTokenRepository(SqlRepository[RefreshTokenModel]):
    """Operator session tokens backed by the ``refresh_tokens`` table."""

    def delete_expired(self, as_of: datetime) -> int:
        stmt = delete(RefreshTokenModel).where(RefreshTokenModel.expires_at < as_of)
        try:
            with self._scope() as session:
                result = session.execute(stmt)
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise self._wrap("delete_expired_tokens", exc) from exc
