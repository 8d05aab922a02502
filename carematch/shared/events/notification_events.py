# carematch/shared/events/notification_events.py
"""
События домена уведомлений.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from carematch.common.constants import NotificationKind
from carematch.shared.events.base import DomainEvent


class NotificationRequested(DomainEvent):
    """Событие: запрос на доставку уведомления участнику заказа."""

    event_type: Literal["notification.requested"] = "notification.requested"

    recipient_id: str
    kind: NotificationKind
    order_id: str
    message: str
    template_key: str  # ключ из lang_dict
    template_params: dict[str, Any] = Field(default_factory=dict)
