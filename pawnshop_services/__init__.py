"""
pawnshop_services -- Stateful services built on the kernel.
"""

from pawnshop_services.notification_service import NotificationService

__all__ = ["NotificationService"]
