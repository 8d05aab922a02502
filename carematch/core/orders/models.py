# carematch/core/orders/models.py
"""
Модели данных заказов на услуги.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from carematch.common.constants import (
    BillingFrequency,
    OrderStatus,
    PriceSource,
    ServiceCategory,
    TERMINAL_STATUSES,
    UrgencyLevel,
)
from carematch.core.geo import Coordinates
from carematch.core.pricing.models import PriceBreakdown


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ServiceOrder(BaseModel):
    """Заказ на услугу."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="UUID заказа")

    # Стороны
    requester_id: str = Field(..., description="ID заказчика")
    provider_id: Optional[str] = Field(None, description="ID исполнителя (после захвата)")

    # Классификация
    service_category: ServiceCategory = Field(..., description="Категория услуги")
    service_type: str = Field(..., description="Тип услуги внутри категории")
    billing_frequency: BillingFrequency = Field(BillingFrequency.PER_VISIT, description="Периодичность оплаты")
    monthly_visits_count: Optional[int] = Field(None, ge=1, description="Визитов в месяц")
    urgency_level: UrgencyLevel = Field(UrgencyLevel.NORMAL, description="Срочность")

    # Данные заказчика
    requester_name: str = Field(..., description="Имя пациента/заказчика")
    requester_contact: str = Field(..., description="Контактный телефон")
    requester_email: Optional[str] = Field(None, description="E-mail")
    issue_description: str = Field(..., description="Описание потребности")
    patient_condition: Optional[str] = Field(None, description="Состояние пациента")
    equipment_name: Optional[str] = Field(None, description="Оборудование (биомед)")
    equipment_model: Optional[str] = Field(None, description="Модель оборудования")
    preferred_at: Optional[datetime] = Field(None, description="Желаемое время визита")

    # Место оказания услуги
    address: Optional[str] = Field(None, description="Адрес")
    city: Optional[str] = Field(None, description="Город")
    state: Optional[str] = Field(None, description="Штат")
    pincode: Optional[str] = Field(None, description="Почтовый индекс")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    # Скорая помощь
    pickup_address: Optional[str] = None
    pickup_latitude: Optional[float] = Field(None, ge=-90, le=90)
    pickup_longitude: Optional[float] = Field(None, ge=-180, le=180)
    dropoff_address: Optional[str] = None
    dropoff_latitude: Optional[float] = Field(None, ge=-90, le=90)
    dropoff_longitude: Optional[float] = Field(None, ge=-180, le=180)

    # Стоимость
    quoted_price: Optional[Decimal] = Field(None, ge=0, description="Цена")
    quoted_currency: str = Field("INR", description="Валюта")
    price_breakdown: Optional[PriceBreakdown] = Field(None, description="Детализация расчёта")
    price_source: Optional[PriceSource] = Field(None, description="Кто назначил цену")
    provider_notes: Optional[str] = Field(None, description="Комментарий исполнителя к цене")

    # Статус и временные метки
    status: OrderStatus = Field(OrderStatus.PENDING, description="Статус заказа")
    created_at: datetime = Field(default_factory=utc_now, description="Время создания")
    updated_at: datetime = Field(default_factory=utc_now, description="Время изменения")
    responded_at: Optional[datetime] = Field(None, description="Время захвата исполнителем")
    completed_at: Optional[datetime] = Field(None, description="Время завершения")
    cancelled_at: Optional[datetime] = Field(None, description="Время отмены")

    # Отзывы
    provider_rating: Optional[int] = Field(None, ge=1, le=5, description="Оценка исполнителя заказчиком")
    provider_review: Optional[str] = None
    requester_rating: Optional[int] = Field(None, ge=1, le=5, description="Оценка заказчика исполнителем")
    requester_review: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def is_terminal(self) -> bool:
        """Заказ в конечном статусе."""
        return self.status in TERMINAL_STATUSES

    @property
    def is_pre_priced(self) -> bool:
        """Цена категории рассчитывается при создании."""
        return self.service_category.is_pre_priced

    @property
    def site(self) -> Coordinates | None:
        """Координаты места оказания услуги."""
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)

    @property
    def pickup(self) -> Coordinates | None:
        """Точка подачи скорой."""
        if self.pickup_latitude is None or self.pickup_longitude is None:
            return None
        return Coordinates(self.pickup_latitude, self.pickup_longitude)

    @property
    def dropoff(self) -> Coordinates | None:
        """Точка назначения скорой."""
        if self.dropoff_latitude is None or self.dropoff_longitude is None:
            return None
        return Coordinates(self.dropoff_latitude, self.dropoff_longitude)

    @property
    def matching_point(self) -> Coordinates | None:
        """Точка, до которой считается расстояние исполнителя."""
        if self.service_category is ServiceCategory.AMBULANCE:
            return self.pickup or self.site
        return self.site

    def is_party(self, actor_id: str) -> bool:
        """Является ли участник заказчиком или назначенным исполнителем."""
        return actor_id == self.requester_id or (
            self.provider_id is not None and actor_id == self.provider_id
        )


class OrderCreateDTO(BaseModel):
    """DTO для создания заказа. Бизнес-валидация выполняется координатором."""

    requester_id: str
    service_category: ServiceCategory
    service_type: str
    urgency_level: UrgencyLevel = UrgencyLevel.NORMAL
    billing_frequency: BillingFrequency = BillingFrequency.PER_VISIT
    monthly_visits_count: Optional[int] = None

    requester_name: str = ""
    requester_contact: str = ""
    requester_email: Optional[str] = None
    issue_description: str = ""
    patient_condition: Optional[str] = None
    equipment_name: Optional[str] = None
    equipment_model: Optional[str] = None
    preferred_at: Optional[datetime] = None

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    pickup_address: Optional[str] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    dropoff_address: Optional[str] = None
    dropoff_latitude: Optional[float] = None
    dropoff_longitude: Optional[float] = None

    # Параметры надбавок (не хранятся отдельно, попадают в детализацию цены)
    sunday_or_holiday: bool = False
    session_minutes: Optional[int] = None
    consumables_cost: Decimal = Decimal("0")


class EligibleOrder(BaseModel):
    """Заказ, доступный исполнителю, с расстоянием до него."""

    order: ServiceOrder
    distance_km: Optional[float] = None
