# carematch/shared/events/__init__.py
"""
Схемы событий для RabbitMQ.

Все события идемпотентны и содержат event_id для дедупликации.
"""

from carematch.shared.events.base import DomainEvent, EventMetadata
from carematch.shared.events.notification_events import NotificationRequested

__all__ = [
    "DomainEvent",
    "EventMetadata",
    "NotificationRequested",
]
