"""ORM models. Importing this package registers every table on Base.metadata."""

from pawnshop_kernel.models.customer import (
    CustomerModel,
    NotificationModel,
    NotificationPreferenceModel,
    RefreshTokenModel,
)
from pawnshop_kernel.models.loan import LoanModel, PaymentModel

__all__ = [
    "CustomerModel",
    "LoanModel",
    "NotificationModel",
    "NotificationPreferenceModel",
    "PaymentModel",
    "RefreshTokenModel",
]
