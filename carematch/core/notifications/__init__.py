# carematch/core/notifications/__init__.py
"""
Уведомления участников заказа.
"""

from carematch.core.notifications.service import (
    EventBusNotificationDispatcher,
    Notification,
    NotificationDispatcher,
    build_notification,
    template_key_for,
)

__all__ = [
    "Notification",
    "NotificationDispatcher",
    "EventBusNotificationDispatcher",
    "build_notification",
    "template_key_for",
]
