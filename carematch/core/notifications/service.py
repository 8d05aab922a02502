# carematch/core/notifications/service.py
"""
Уведомления участников заказа.

NotificationDispatcher: внешний получатель событий (доставка best-effort).
EventBusNotificationDispatcher публикует NotificationRequested в RabbitMQ,
фактическая доставка (push, SMS, e-mail) происходит за пределами ядра.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from carematch.common.constants import NotificationKind, TypeMsg
from carematch.common.localization import get_text
from carematch.common.logger import log_info
from carematch.infra.event_bus import EventBus
from carematch.shared.events import NotificationRequested


@dataclass
class Notification:
    """Данные уведомления."""
    recipient_id: str
    kind: NotificationKind
    order_id: str
    message: str
    template_key: str
    params: dict[str, Any] = field(default_factory=dict)


def template_key_for(kind: NotificationKind) -> str:
    """Ключ lang_dict для типа уведомления."""
    return f"NOTIFY_{kind.value.upper()}"


def build_notification(
    kind: NotificationKind,
    recipient_id: str,
    order_id: str,
    language: str = "en",
    **params: Any,
) -> Notification:
    """
    Формирует уведомление с локализованным текстом.

    Args:
        kind: Тип уведомления
        recipient_id: ID получателя
        order_id: ID заказа
        language: Язык текста
        **params: Параметры шаблона
    """
    key = template_key_for(kind)
    return Notification(
        recipient_id=recipient_id,
        kind=kind,
        order_id=order_id,
        message=get_text(key, language, order_id=order_id, **params),
        template_key=key,
        params={"order_id": order_id, **params},
    )


class NotificationDispatcher(ABC):
    """Получатель уведомлений."""

    @abstractmethod
    async def dispatch(self, notification: Notification) -> None:
        """Передаёт уведомление на доставку. Может выбросить исключение."""


class EventBusNotificationDispatcher(NotificationDispatcher):
    """Публикует уведомления в шину событий."""

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus

    async def dispatch(self, notification: Notification) -> None:
        await self._event_bus.publish(NotificationRequested(
            recipient_id=notification.recipient_id,
            kind=notification.kind,
            order_id=notification.order_id,
            message=notification.message,
            template_key=notification.template_key,
            template_params=notification.params,
        ))

        await log_info(
            f"Уведомление поставлено в очередь: recipient={notification.recipient_id}, "
            f"kind={notification.kind.value}, order={notification.order_id}",
            type_msg=TypeMsg.DEBUG,
        )
