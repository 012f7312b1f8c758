"""
Customer notification types.

``SendNotificationRequest`` is what a job hands to the notification
dispatcher; ``Notification`` is the record the dispatcher persists.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    LOAN_DUE_REMINDER = "loan_due_reminder"
    LOAN_OVERDUE = "loan_overdue"
    MINIMUM_PAYMENT_DUE = "minimum_payment_due"
    PAYMENT_RECEIVED = "payment_received"
    LOAN_CONFISCATED = "loan_confiscated"
    GENERAL = "general"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    PUSH = "push"
    INTERNAL = "internal"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SendNotificationRequest:
    """Request to notify one customer.

    ``reference_type``/``reference_id`` point back at the record that
    triggered the notification (e.g. ``("loan", 42)``).
    """

    customer_id: int
    notification_type: NotificationType
    title: str
    message: str
    channel: NotificationChannel = NotificationChannel.SMS
    reference_type: str | None = None
    reference_id: int | None = None


@dataclass(frozen=True)
class Notification:
    id: int
    customer_id: int
    branch_id: int | None
    notification_type: NotificationType
    channel: NotificationChannel
    subject: str
    body: str
    status: NotificationStatus
    reference_type: str | None = None
    reference_id: int | None = None
    created_at: datetime | None = None
