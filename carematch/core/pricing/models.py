# carematch/core/pricing/models.py
"""
Модели данных расчёта стоимости.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from carematch.common.constants import BillingFrequency, ServiceCategory, UrgencyLevel


# =============================================================================
# ТАРИФЫ
# =============================================================================

class ServiceRate(BaseModel):
    """Тариф на услугу из таблицы service_rates."""

    category: ServiceCategory = Field(..., description="Категория услуги")
    service_type: str = Field(..., description="Тип услуги внутри категории")
    per_visit_price: Optional[Decimal] = Field(None, ge=0, description="Цена за визит/сеанс")
    monthly_price: Optional[Decimal] = Field(None, ge=0, description="Месячный пакет")
    minimum_fare: Optional[Decimal] = Field(None, ge=0, description="Минимальный тариф (скорая)")
    minimum_km: Optional[Decimal] = Field(None, ge=0, description="Км, включённые в минимальный тариф")
    per_km_charge: Optional[Decimal] = Field(None, ge=0, description="Цена за км сверх минимума")
    currency: str = Field("INR", description="Валюта")

    def base_price_for(self, billing_frequency: BillingFrequency) -> Decimal | None:
        """Базовая цена для периодичности оплаты (для скорой: минимальный тариф)."""
        if self.category is ServiceCategory.AMBULANCE:
            return self.minimum_fare
        if billing_frequency is BillingFrequency.MONTHLY:
            return self.monthly_price
        return self.per_visit_price


# =============================================================================
# ВХОДНЫЕ ДАННЫЕ ДВИЖКА
# =============================================================================

class PricingLocation(BaseModel):
    """Место оказания услуги для определения ценового пояса."""

    city: Optional[str] = None
    address: Optional[str] = None


class NursingAddOns(BaseModel):
    """Надбавки для сестринского ухода."""

    category: Literal["nursing"] = "nursing"
    consumables_cost: Decimal = Field(Decimal("0"), ge=0, description="Расходники, оплачиваются отдельно")


class PhysiotherapyAddOns(BaseModel):
    """Надбавки для физиотерапии."""

    category: Literal["physiotherapy"] = "physiotherapy"
    sunday_or_holiday: bool = Field(False, description="Сеанс в воскресенье или праздник")
    session_minutes: Optional[int] = Field(None, gt=0, description="Длительность сеанса")


class AmbulanceAddOns(BaseModel):
    """Параметры расчёта поездки скорой помощи."""

    category: Literal["ambulance"] = "ambulance"
    distance_km: float = Field(..., ge=0, description="Расстояние в одну сторону")
    minimum_km: Decimal = Field(Decimal("0"), ge=0)
    per_km_charge: Decimal = Field(Decimal("0"), ge=0)


CategoryAddOns = Annotated[
    Union[NursingAddOns, PhysiotherapyAddOns, AmbulanceAddOns],
    Field(discriminator="category"),
]


class QuoteModifiers(BaseModel):
    """Модификаторы цены."""

    urgency: UrgencyLevel = UrgencyLevel.NORMAL
    billing_frequency: BillingFrequency = BillingFrequency.PER_VISIT
    appointment_at: Optional[datetime] = Field(None, description="Время визита")
    add_ons: CategoryAddOns

    @property
    def category(self) -> ServiceCategory:
        return ServiceCategory(self.add_ons.category)


# =============================================================================
# РЕЗУЛЬТАТ
# =============================================================================

class CityTier(BaseModel):
    """Результат классификации места по ценовому поясу."""

    name: str
    description: str = ""
    percentage: Decimal = Decimal("0")


class PriceBreakdown(BaseModel):
    """Детализация расчёта для аудита и отображения."""

    category: ServiceCategory
    billing_frequency: BillingFrequency
    base_price: Decimal

    # Скорая помощь
    distance_km: Optional[Decimal] = None
    minimum_km: Optional[Decimal] = None
    extra_km: Optional[Decimal] = None
    extra_km_charge: Optional[Decimal] = None

    subtotal: Decimal

    city_tier: str
    city_tier_description: str = ""
    city_tier_percentage: Decimal
    city_adjustment: Decimal
    after_city_adjustment: Decimal

    night_duty_percentage: Decimal = Decimal("0")
    night_duty_charge: Decimal = Decimal("0")
    emergency_percentage: Decimal = Decimal("0")
    emergency_charge: Decimal = Decimal("0")
    sunday_holiday_charge: Decimal = Decimal("0")
    extended_session_charge: Decimal = Decimal("0")

    consumables_cost: Decimal = Decimal("0")
    consumables_billed_separately: bool = False

    applied_add_ons: list[str] = Field(default_factory=list)

    total_before_rounding: Decimal
    rounding_increment: Decimal
    final_price: Decimal
    currency: str


class Quote(BaseModel):
    """Итоговая цена и её детализация."""

    final_price: Decimal
    currency: str
    breakdown: PriceBreakdown


class PricingRequest(BaseModel):
    """
    Запрос на расчёт цены по тарифу.
    Собирается из заявки или приходит в предварительный расчёт.
    """

    category: ServiceCategory
    service_type: str
    urgency: UrgencyLevel = UrgencyLevel.NORMAL
    billing_frequency: BillingFrequency = BillingFrequency.PER_VISIT
    city: Optional[str] = None
    address: Optional[str] = None
    appointment_at: Optional[datetime] = None

    # Скорая помощь
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    dropoff_latitude: Optional[float] = None
    dropoff_longitude: Optional[float] = None

    # Физиотерапия
    sunday_or_holiday: bool = False
    session_minutes: Optional[int] = Field(None, gt=0)

    # Сестринский уход
    consumables_cost: Decimal = Field(Decimal("0"), ge=0)
