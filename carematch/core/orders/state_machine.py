# carematch/core/orders/state_machine.py
"""
Таблица допустимых переходов статусов заказа.
"""

from __future__ import annotations

from enum import Enum

from carematch.common.constants import OrderStatus


class OrderAction(str, Enum):
    """Операции над заказом."""
    CLAIM = "claim"
    ACCEPT = "accept"
    DECLINE = "decline"
    RELEASE = "release"
    COMPLETE = "complete"
    CANCEL = "cancel"


class OrderStateMachine:
    ALLOWED_TRANSITIONS = {
        OrderStatus.PENDING: [OrderStatus.QUOTE_SENT, OrderStatus.ACCEPTED, OrderStatus.CANCELLED],
        OrderStatus.QUOTE_SENT: [
            OrderStatus.ACCEPTED,
            OrderStatus.DECLINED,
            OrderStatus.PENDING,
            OrderStatus.CANCELLED,
        ],
        OrderStatus.ACCEPTED: [OrderStatus.COMPLETED, OrderStatus.PENDING, OrderStatus.CANCELLED],
        OrderStatus.DECLINED: [],
        OrderStatus.CANCELLED: [],
        OrderStatus.COMPLETED: [],
    }

    # Из каких статусов разрешена операция
    ACTION_SOURCES = {
        OrderAction.CLAIM: (OrderStatus.PENDING,),
        OrderAction.ACCEPT: (OrderStatus.QUOTE_SENT,),
        OrderAction.DECLINE: (OrderStatus.QUOTE_SENT,),
        OrderAction.RELEASE: (OrderStatus.QUOTE_SENT, OrderStatus.ACCEPTED),
        OrderAction.COMPLETE: (OrderStatus.ACCEPTED,),
        OrderAction.CANCEL: (OrderStatus.PENDING, OrderStatus.QUOTE_SENT, OrderStatus.ACCEPTED),
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = OrderStatus(current_status)
            new = OrderStatus(new_status)
        except ValueError:
            return False
        return new in OrderStateMachine.ALLOWED_TRANSITIONS.get(curr, [])

    @staticmethod
    def can_perform(action: OrderAction, current_status: OrderStatus) -> bool:
        return current_status in OrderStateMachine.ACTION_SOURCES[action]
