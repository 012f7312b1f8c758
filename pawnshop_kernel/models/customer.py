"""
ORM models for customers, their notifications and session tokens.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pawnshop_kernel.db.base import TrackedBase
from pawnshop_kernel.domain.dtos import Customer
from pawnshop_kernel.domain.notification import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)


class CustomerModel(TrackedBase):
    """Persistent pawnshop customer."""

    __tablename__ = "customers"

    branch_id: Mapped[int] = mapped_column(Integer, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self) -> Customer:
        return Customer(
            id=self.id,
            branch_id=self.branch_id,
            first_name=self.first_name,
            last_name=self.last_name,
            phone=self.phone,
            email=self.email,
            is_active=self.is_active,
        )


class NotificationModel(TrackedBase):
    """Outbound customer notification (delivery is handled elsewhere)."""

    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_customer_id", "customer_id"),
        Index("ix_notifications_status", "status"),
    )

    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    def to_dto(self) -> Notification:
        return Notification(
            id=self.id,
            customer_id=self.customer_id,
            branch_id=self.branch_id,
            notification_type=NotificationType(self.notification_type),
            channel=NotificationChannel(self.channel),
            subject=self.subject,
            body=self.body,
            status=NotificationStatus(self.status),
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            created_at=self.created_at,
        )


class NotificationPreferenceModel(TrackedBase):
    """Per-customer opt-in/opt-out for a notification type on a channel.

    A missing row means the customer has not opted out.
    """

    __tablename__ = "customer_notification_preferences"

    __table_args__ = (
        UniqueConstraint(
            "customer_id", "notification_type", "channel",
            name="uq_notification_preference",
        ),
    )

    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class RefreshTokenModel(TrackedBase):
    """Issued refresh token for an operator session."""

    __tablename__ = "refresh_tokens"

    __table_args__ = (
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
