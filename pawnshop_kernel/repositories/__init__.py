"""Repository protocols and their SQLAlchemy implementations."""

from pawnshop_kernel.repositories.interfaces import (
    CustomerRepository,
    LoanRepository,
    NotificationDispatcher,
    PaymentRepository,
    RefreshTokenRepository,
)
from pawnshop_kernel.repositories.sql import (
    SqlCustomerRepository,
    SqlLoanRepository,
    SqlPaymentRepository,
    SqlRefreshTokenRepository,
)

__all__ = [
    "CustomerRepository",
    "LoanRepository",
    "NotificationDispatcher",
    "PaymentRepository",
    "RefreshTokenRepository",
    "SqlCustomerRepository",
    "SqlLoanRepository",
    "SqlPaymentRepository",
    "SqlRefreshTokenRepository",
]
