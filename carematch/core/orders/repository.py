# carematch/core/orders/repository.py
"""
Хранилище заказов.

OrderStore описывает контракт, от которого зависит координатор.
Ключевой примитив: атомарные условные обновления (try_claim, transition,
set_rating), которые применяются одной командой к хранилищу и возвращают
None, если условие не выполнилось (запись выиграл другой участник).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from asyncpg import Record

from carematch.common.constants import OrderStatus, PriceSource, ServiceCategory
from carematch.core.orders.models import ServiceOrder, utc_now
from carematch.core.pricing.models import PriceBreakdown
from carematch.infra.database import DatabaseManager

# Поля, которые разрешено менять переходами
MUTABLE_FIELDS = frozenset({
    "provider_id",
    "quoted_price",
    "quoted_currency",
    "price_breakdown",
    "price_source",
    "provider_notes",
    "responded_at",
    "completed_at",
    "cancelled_at",
})

class OrderStore(ABC):
    """Контракт хранилища заказов."""

    @abstractmethod
    async def create(self, order: ServiceOrder) -> ServiceOrder:
        """Сохраняет новый заказ."""

    @abstractmethod
    async def get(self, order_id: str) -> ServiceOrder | None:
        """Возвращает заказ или None."""

    @abstractmethod
    async def list_pending(
        self,
        category: ServiceCategory,
        limit: int,
        *,
        exclude_requester_id: str | None = None,
        offset: int = 0,
    ) -> list[ServiceOrder]:
        """
        Незахваченные заказы категории: срочные первыми, затем старые первыми.

        Args:
            category: Категория услуги
            limit: Размер страницы
            exclude_requester_id: Не возвращать заказы этого заказчика
            offset: Сколько заказов пропустить
        """

    @abstractmethod
    async def list_for_requester(self, requester_id: str, limit: int) -> list[ServiceOrder]:
        """Заказы заказчика, новые первыми."""

    @abstractmethod
    async def list_for_provider(
        self,
        provider_id: str,
        statuses: Iterable[OrderStatus],
        limit: int,
    ) -> list[ServiceOrder]:
        """Заказы исполнителя в указанных статусах, старые первыми."""

    @abstractmethod
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
        """
        Назначает исполнителя, только если заказ в pending и provider_id пуст.
        Цена записывается, только если передана (иначе остаётся прежней).

        Returns:
            Обновлённый заказ или None, если условие не выполнено
        """

    @abstractmethod
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
        """
        Меняет статус, только если текущий статус равен from_status и
        (если переданы) совпадают provider_id / requester_id.

        Returns:
            Обновлённый заказ или None, если условие не выполнено
        """

    @abstractmethod
    async def set_rating(
        self,
        order_id: str,
        *,
        side: str,
        actor_id: str,
        rating: int,
        review: str | None,
    ) -> ServiceOrder | None:
        """
        Сохраняет оценку стороны side ("provider" или "requester") для
        завершённого заказа, если её ещё нет.
        """


def _check_changes(changes: dict[str, Any] | None) -> dict[str, Any]:
    changes = dict(changes or {})
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Недопустимые поля для обновления: {sorted(unknown)}")
    return changes


def _rating_columns(side: str) -> tuple[str, str, str]:
    """(колонка оценки, колонка отзыва, колонка автора) для стороны."""
    if side == "provider":
        return "provider_rating", "provider_review", "requester_id"
    if side == "requester":
        return "requester_rating", "requester_review", "provider_id"
    raise ValueError(f"Неизвестная сторона оценки: {side}")


# =============================================================================
# POSTGRESQL
# =============================================================================

_INSERT_COLUMNS = (
    "id", "requester_id", "provider_id",
    "service_category", "service_type", "billing_frequency", "monthly_visits_count", "urgency_level",
    "requester_name", "requester_contact", "requester_email", "issue_description",
    "patient_condition", "equipment_name", "equipment_model", "preferred_at",
    "address", "city", "state", "pincode", "latitude", "longitude",
    "pickup_address", "pickup_latitude", "pickup_longitude",
    "dropoff_address", "dropoff_latitude", "dropoff_longitude",
    "quoted_price", "quoted_currency", "price_breakdown", "price_source", "provider_notes",
    "status", "created_at", "updated_at",
)

_URGENCY_ORDER_SQL = (
    "CASE urgency_level WHEN 'emergency' THEN 2 WHEN 'urgent' THEN 1 ELSE 0 END DESC"
)


def _to_db_value(column: str, value: Any) -> Any:
    """Преобразует значение поля модели в параметр запроса."""
    if value is None:
        return None
    if column == "price_breakdown":
        if isinstance(value, PriceBreakdown):
            return value.model_dump_json()
        return json.dumps(value, default=str)
    if isinstance(value, Enum):
        return value.value
    return value


def _parse_uuid(order_id: str) -> UUID | None:
    try:
        return UUID(str(order_id))
    except ValueError:
        return None


class OrderRepository(OrderStore):
    """Репозиторий заказов в PostgreSQL (таблица service_orders)."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    @staticmethod
    def _row_to_order(row: Record) -> ServiceOrder:
        data = dict(row)
        data["id"] = str(data["id"])
        breakdown = data.get("price_breakdown")
        if isinstance(breakdown, str):
            data["price_breakdown"] = json.loads(breakdown)
        return ServiceOrder.model_validate(data)

    async def create(self, order: ServiceOrder) -> ServiceOrder:
        values = [
            UUID(order.id) if column == "id" else _to_db_value(column, getattr(order, column))
            for column in _INSERT_COLUMNS
        ]
        placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
        row = await self._db.fetchrow(
            f"""
            INSERT INTO service_orders ({", ".join(_INSERT_COLUMNS)})
            VALUES ({placeholders})
            RETURNING *
            """,
            *values,
        )
        return self._row_to_order(row)

    async def get(self, order_id: str) -> ServiceOrder | None:
        uid = _parse_uuid(order_id)
        if uid is None:
            return None
        row = await self._db.fetchrow("SELECT * FROM service_orders WHERE id = $1", uid)
        return self._row_to_order(row) if row else None

    async def list_pending(
        self,
        category: ServiceCategory,
        limit: int,
        *,
        exclude_requester_id: str | None = None,
        offset: int = 0,
    ) -> list[ServiceOrder]:
        rows = await self._db.fetch(
            f"""
            SELECT * FROM service_orders
            WHERE status = $1
              AND provider_id IS NULL
              AND service_category = $2
              AND ($3::text IS NULL OR requester_id <> $3)
            ORDER BY {_URGENCY_ORDER_SQL}, created_at ASC, id ASC
            LIMIT $4 OFFSET $5
            """,
            OrderStatus.PENDING.value,
            category.value,
            exclude_requester_id,
            limit,
            offset,
        )
        return [self._row_to_order(row) for row in rows]

    async def list_for_requester(self, requester_id: str, limit: int) -> list[ServiceOrder]:
        rows = await self._db.fetch(
            """
            SELECT * FROM service_orders
            WHERE requester_id = $1
            ORDER BY created_at DESC
            LIMIT $2
            """,
            requester_id,
            limit,
        )
        return [self._row_to_order(row) for row in rows]

    async def list_for_provider(
        self,
        provider_id: str,
        statuses: Iterable[OrderStatus],
        limit: int,
    ) -> list[ServiceOrder]:
        rows = await self._db.fetch(
            """
            SELECT * FROM service_orders
            WHERE provider_id = $1
              AND status = ANY($2::text[])
            ORDER BY created_at ASC
            LIMIT $3
            """,
            provider_id,
            [s.value for s in statuses],
            limit,
        )
        return [self._row_to_order(row) for row in rows]

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
        uid = _parse_uuid(order_id)
        if uid is None:
            return None
        now = utc_now()
        # Одна условная команда: проигравший получит 0 строк
        row = await self._db.fetchrow(
            """
            UPDATE service_orders
            SET provider_id = $2,
                status = $3,
                responded_at = $4,
                updated_at = $4,
                quoted_price = COALESCE($5, quoted_price),
                price_source = COALESCE($6, price_source),
                provider_notes = $7
            WHERE id = $1
              AND provider_id IS NULL
              AND status = $8
            RETURNING *
            """,
            uid,
            provider_id,
            new_status.value,
            now,
            quoted_price,
            price_source.value if price_source else None,
            provider_notes,
            OrderStatus.PENDING.value,
        )
        return self._row_to_order(row) if row else None

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
        uid = _parse_uuid(order_id)
        if uid is None:
            return None
        changes = _check_changes(changes)

        params: list[Any] = [uid, to_status.value, utc_now()]
        set_parts = ["status = $2", "updated_at = $3"]
        for column, value in changes.items():
            params.append(_to_db_value(column, value))
            set_parts.append(f"{column} = ${len(params)}")

        params.append(from_status.value)
        where_parts = ["id = $1", f"status = ${len(params)}"]
        if provider_id is not None:
            params.append(provider_id)
            where_parts.append(f"provider_id = ${len(params)}")
        if requester_id is not None:
            params.append(requester_id)
            where_parts.append(f"requester_id = ${len(params)}")

        row = await self._db.fetchrow(
            f"""
            UPDATE service_orders
            SET {", ".join(set_parts)}
            WHERE {" AND ".join(where_parts)}
            RETURNING *
            """,
            *params,
        )
        return self._row_to_order(row) if row else None

    async def set_rating(
        self,
        order_id: str,
        *,
        side: str,
        actor_id: str,
        rating: int,
        review: str | None,
    ) -> ServiceOrder | None:
        uid = _parse_uuid(order_id)
        if uid is None:
            return None
        rating_col, review_col, actor_col = _rating_columns(side)
        row = await self._db.fetchrow(
            f"""
            UPDATE service_orders
            SET {rating_col} = $2,
                {review_col} = $3,
                updated_at = $4
            WHERE id = $1
              AND status = $5
              AND {actor_col} = $6
              AND {rating_col} IS NULL
            RETURNING *
            """,
            uid,
            rating,
            review,
            utc_now(),
            OrderStatus.COMPLETED.value,
            actor_id,
        )
        return self._row_to_order(row) if row else None
