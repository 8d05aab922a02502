# carematch/core/orders/memory.py
"""
Хранилище заказов в памяти процесса.

Для локального запуска без PostgreSQL и для тестов. Условные обновления
выполняются под asyncio.Lock, поэтому семантика совпадает с OrderRepository
в пределах одного процесса.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Iterable

from carematch.common.constants import OrderStatus, PriceSource, ServiceCategory
from carematch.core.orders.models import ServiceOrder, utc_now
from carematch.core.orders.repository import OrderStore, _check_changes, _rating_columns


class InMemoryOrderRepository(OrderStore):
    """Хранилище заказов на словаре."""

    def __init__(self) -> None:
        self._orders: dict[str, ServiceOrder] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _copy(order: ServiceOrder) -> ServiceOrder:
        return order.model_copy(deep=True)

    async def create(self, order: ServiceOrder) -> ServiceOrder:
        async with self._lock:
            if order.id in self._orders:
                raise ValueError(f"Заказ {order.id} уже существует")
            self._orders[order.id] = self._copy(order)
            return self._copy(order)

    async def get(self, order_id: str) -> ServiceOrder | None:
        order = self._orders.get(order_id)
        return self._copy(order) if order else None

    async def list_pending(
        self,
        category: ServiceCategory,
        limit: int,
        *,
        exclude_requester_id: str | None = None,
        offset: int = 0,
    ) -> list[ServiceOrder]:
        orders = [
            o for o in self._orders.values()
            if o.status is OrderStatus.PENDING
            and o.provider_id is None
            and o.service_category is category
            and o.requester_id != exclude_requester_id
        ]
        orders.sort(key=lambda o: (-o.urgency_level.priority, o.created_at, o.id))
        return [self._copy(o) for o in orders[offset:offset + limit]]

    async def list_for_requester(self, requester_id: str, limit: int) -> list[ServiceOrder]:
        orders = [o for o in self._orders.values() if o.requester_id == requester_id]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return [self._copy(o) for o in orders[:limit]]

    async def list_for_provider(
        self,
        provider_id: str,
        statuses: Iterable[OrderStatus],
        limit: int,
    ) -> list[ServiceOrder]:
        wanted = set(statuses)
        orders = [
            o for o in self._orders.values()
            if o.provider_id == provider_id and o.status in wanted
        ]
        orders.sort(key=lambda o: o.created_at)
        return [self._copy(o) for o in orders[:limit]]

    async def try_claim(
        self,
        order_id: str,
        provider_id: str,
        new_status: OrderStatus,
        *,
        quoted_price: Decimal | None = None,
        price_source: PriceSource | None = None,
        provider_notes: str | None = None,
    ) -> ServiceOrder | None:
        async with self._lock:
            current = self._orders.get(order_id)
            if current is None or current.provider_id is not None or current.status is not OrderStatus.PENDING:
                return None

            now = utc_now()
            update: dict[str, Any] = {
                "provider_id": provider_id,
                "status": new_status,
                "responded_at": now,
                "updated_at": now,
                "provider_notes": provider_notes,
            }
            if quoted_price is not None:
                update["quoted_price"] = quoted_price
            if price_source is not None:
                update["price_source"] = price_source

            updated = current.model_copy(update=update, deep=True)
            self._orders[order_id] = updated
            return self._copy(updated)

    async def transition(
        self,
        order_id: str,
        *,
        from_status: OrderStatus,
        to_status: OrderStatus,
        provider_id: str | None = None,
        requester_id: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> ServiceOrder | None:
        changes = _check_changes(changes)
        async with self._lock:
            current = self._orders.get(order_id)
            if current is None or current.status is not from_status:
                return None
            if provider_id is not None and current.provider_id != provider_id:
                return None
            if requester_id is not None and current.requester_id != requester_id:
                return None

            updated = current.model_copy(
                update={**changes, "status": to_status, "updated_at": utc_now()},
                deep=True,
            )
            self._orders[order_id] = updated
            return self._copy(updated)

    async def set_rating(
        self,
        order_id: str,
        *,
        side: str,
        actor_id: str,
        rating: int,
        review: str | None,
    ) -> ServiceOrder | None:
        rating_field, review_field, actor_field = _rating_columns(side)
        async with self._lock:
            current = self._orders.get(order_id)
            if current is None or current.status is not OrderStatus.COMPLETED:
                return None
            if getattr(current, actor_field) != actor_id or getattr(current, rating_field) is not None:
                return None

            updated = current.model_copy(
                update={rating_field: rating, review_field: review, "updated_at": utc_now()},
                deep=True,
            )
            self._orders[order_id] = updated
            return self._copy(updated)
