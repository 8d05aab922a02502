# carematch/core/orders/__init__.py
"""
Домен заказов.
Модели, таблица переходов и хранилища заказов.
"""

from carematch.core.orders.memory import InMemoryOrderRepository
from carematch.core.orders.models import EligibleOrder, OrderCreateDTO, ServiceOrder
from carematch.core.orders.repository import OrderRepository, OrderStore
from carematch.core.orders.state_machine import OrderAction, OrderStateMachine

__all__ = [
    "ServiceOrder",
    "OrderCreateDTO",
    "EligibleOrder",
    "OrderStore",
    "OrderRepository",
    "InMemoryOrderRepository",
    "OrderAction",
    "OrderStateMachine",
]
