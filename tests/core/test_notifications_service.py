# tests/core/test_notifications_service.py
"""
Тесты формирования и отправки уведомлений.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from carematch.common.constants import NotificationKind
from carematch.core.notifications import (
    EventBusNotificationDispatcher,
    Notification,
    build_notification,
    template_key_for,
)
from carematch.shared.events import NotificationRequested


class TestBuildNotification:
    """Тесты для build_notification."""

    @pytest.mark.parametrize("kind", list(NotificationKind))
    def test_every_kind_has_template(self, kind: NotificationKind) -> None:
        notification = build_notification(
            kind, "patient-1", "a1b2", price=Decimal("1500"), currency="INR", category="nursing"
        )

        assert notification.template_key == template_key_for(kind)
        assert not notification.message.startswith("[")
        assert "a1b2" in notification.message

    def test_quote_text(self) -> None:
        notification = build_notification(
            NotificationKind.QUOTE_RECEIVED, "patient-1", "a1b2", price=Decimal("1500"), currency="INR"
        )

        assert notification.message == "You received a quote of 1500 INR for order a1b2."
        assert notification.params == {"order_id": "a1b2", "price": Decimal("1500"), "currency": "INR"}
        assert notification.recipient_id == "patient-1"

    def test_telugu_text(self) -> None:
        en = build_notification(NotificationKind.ORDER_COMPLETED, "patient-1", "a1b2")
        te = build_notification(NotificationKind.ORDER_COMPLETED, "patient-1", "a1b2", language="te")

        assert te.message != en.message
        assert "a1b2" in te.message

    def test_unknown_language_falls_back(self) -> None:
        en = build_notification(NotificationKind.ORDER_RELEASED, "patient-1", "a1b2")
        xx = build_notification(NotificationKind.ORDER_RELEASED, "patient-1", "a1b2", language="xx")

        assert xx.message == en.message

    def test_template_key(self) -> None:
        assert template_key_for(NotificationKind.ORDER_CANCELLED) == "NOTIFY_ORDER_CANCELLED"


class TestEventBusNotificationDispatcher:
    """Тесты публикации уведомлений в шину."""

    @pytest.mark.asyncio
    async def test_publishes_event(self, mock_event_bus: AsyncMock) -> None:
        dispatcher = EventBusNotificationDispatcher(mock_event_bus)
        notification = build_notification(NotificationKind.ORDER_ACCEPTED, "patient-1", "a1b2")

        await dispatcher.dispatch(notification)

        event = mock_event_bus.publish.await_args.args[0]
        assert isinstance(event, NotificationRequested)
        assert event.kind is NotificationKind.ORDER_ACCEPTED
        assert event.recipient_id == "patient-1"
        assert event.order_id == "a1b2"
        assert event.template_key == "NOTIFY_ORDER_ACCEPTED"
        assert event.message == notification.message

    @pytest.mark.asyncio
    async def test_publish_error_propagates(self, mock_event_bus: AsyncMock) -> None:
        """Ошибку доставки обрабатывает вызывающая сторона."""
        mock_event_bus.publish.side_effect = ConnectionError("Нет соединения с RabbitMQ")
        dispatcher = EventBusNotificationDispatcher(mock_event_bus)

        with pytest.raises(ConnectionError):
            await dispatcher.dispatch(Notification(
                recipient_id="nurse-1",
                kind=NotificationKind.ORDER_CANCELLED,
                order_id="a1b2",
                message="cancelled",
                template_key="NOTIFY_ORDER_CANCELLED",
            ))
