"""
pawnshop_services.notification_service -- Records outbound customer notifications.

Responsibility:
    Accept a ``SendNotificationRequest`` from a job, check that the customer
    exists and has not opted out of that notification type on that channel,
    and persist a pending notification row.  Actual delivery (SMS gateway,
    email) is a separate process that drains pending rows.

Architecture position:
    Services layer.  Implements ``NotificationDispatcher`` from
    pawnshop_kernel.repositories; consumed by pawnshop_batch jobs.

Invariants:
    - One transaction per request: the customer check, the preference check
      and the insert share a session.
    - An opted-out customer is not an error; ``send_to_customer`` returns
      ``None`` and nothing is written.
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pawnshop_kernel.db.engine import session_scope
from pawnshop_kernel.domain.clock import Clock, SystemClock
from pawnshop_kernel.domain.notification import (
    Notification,
    NotificationStatus,
    SendNotificationRequest,
)
from pawnshop_kernel.exceptions import CustomerNotFoundError, NotificationError
from pawnshop_kernel.logging_config import get_logger
from pawnshop_kernel.models.customer import (
    CustomerModel,
    NotificationModel,
    NotificationPreferenceModel,
)

logger = get_logger("services.notifications")


class NotificationService:
    """SQL-backed notification dispatcher."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def send_to_customer(self, request: SendNotificationRequest) -> Notification | None:
        """Record a pending notification for ``request.customer_id``.

        Raises:
            CustomerNotFoundError: the customer does not exist.
            NotificationError: the notification could not be stored.
        """
        try:
            with session_scope(self._session_factory) as session:
                customer = session.get(CustomerModel, request.customer_id)
                if customer is None:
                    raise CustomerNotFoundError(request.customer_id)

                if not self._is_enabled(session, request):
                    logger.info(
                        "notification_opted_out",
                        extra={
                            "customer_id": request.customer_id,
                            "notification_type": request.notification_type.value,
                            "channel": request.channel.value,
                        },
                    )
                    return None

                model = NotificationModel(
                    customer_id=customer.id,
                    branch_id=customer.branch_id,
                    notification_type=request.notification_type.value,
                    channel=request.channel.value,
                    subject=request.title,
                    body=request.message,
                    reference_type=request.reference_type,
                    reference_id=request.reference_id,
                    status=NotificationStatus.PENDING.value,
                    created_at=self._clock.now_utc(),
                    updated_at=self._clock.now_utc(),
                )
                session.add(model)
                session.flush()
                notification = model.to_dto()
        except SQLAlchemyError as exc:
            raise NotificationError(
                request.customer_id, request.notification_type.value, str(exc),
            ) from exc

        logger.debug(
            "notification_recorded",
            extra={
                "notification_id": notification.id,
                "customer_id": notification.customer_id,
                "notification_type": notification.notification_type.value,
            },
        )
        return notification

    @staticmethod
    def _is_enabled(session: Session, request: SendNotificationRequest) -> bool:
        enabled = session.scalar(
            select(NotificationPreferenceModel.is_enabled).where(
                NotificationPreferenceModel.customer_id == request.customer_id,
                NotificationPreferenceModel.notification_type
                == request.notification_type.value,
                NotificationPreferenceModel.channel == request.channel.value,
            )
        )
        return True if enabled is None else bool(enabled)
