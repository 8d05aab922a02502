# carematch/api/schemas.py
"""
Модели запросов и ответов HTTP API.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from carematch.core.orders.models import OrderCreateDTO


class OrderCreateRequest(OrderCreateDTO):
    """
    Тело запроса на создание заказа.
    Заказчик определяется заголовком X-User-Id, поле requester_id игнорируется.
    """

    requester_id: Optional[str] = Field(None, description="Игнорируется")

    def to_dto(self, requester_id: str) -> OrderCreateDTO:
        return OrderCreateDTO(
            **self.model_dump(exclude={"requester_id"}),
            requester_id=requester_id,
        )


class ClaimRequest(BaseModel):
    """Захват заказа. Цена обязательна только для ручной оценки."""

    quoted_price: Optional[Decimal] = Field(
        None,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Цена исполнителя (NUMERIC(12, 2))",
    )
    notes: Optional[str] = Field(None, max_length=2000, description="Комментарий к цене")


class RatingRequest(BaseModel):
    """Оценка второй стороны завершённого заказа."""

    rating: int = Field(..., description="Оценка от 1 до 5")
    review: Optional[str] = Field(None, max_length=2000)


class ErrorResponse(BaseModel):
    """Стандартный ответ с ошибкой."""

    error: str
    detail: str
    order_id: Optional[str] = None
    current_status: Optional[str] = None


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded
    version: Optional[str] = None
    dependencies: dict[str, str] = Field(default_factory=dict)
