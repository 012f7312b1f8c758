"""
Pure domain layer.

Frozen dataclasses and enums with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (use an injected Clock)
"""

from pawnshop_kernel.domain.clock import Clock, DeterministicClock, SystemClock
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
    NotificationChannel,
    NotificationStatus,
    NotificationType,
    SendNotificationRequest,
)

__all__ = [
    "Clock",
    "Customer",
    "DeterministicClock",
    "Loan",
    "LoanFilter",
    "LoanStatus",
    "Notification",
    "NotificationChannel",
    "NotificationStatus",
    "NotificationType",
    "Page",
    "PageRequest",
    "Payment",
    "PaymentFilter",
    "PaymentStatus",
    "SendNotificationRequest",
    "SystemClock",
]
