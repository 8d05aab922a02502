# carematch/core/pricing/service.py
"""
Сервис тарификации: поиск тарифа + движок расчёта.
"""

from __future__ import annotations

from carematch.common.constants import ServiceCategory
from carematch.core.exceptions import PricingUnavailableError
from carematch.core.geo import distance_km
from carematch.core.pricing.engine import PricingEngine
from carematch.core.pricing.models import (
    AmbulanceAddOns,
    CategoryAddOns,
    NursingAddOns,
    PhysiotherapyAddOns,
    PricingLocation,
    PricingRequest,
    Quote,
    QuoteModifiers,
    ServiceRate,
)
from carematch.core.pricing.repository import RateRepository


class PricingService:
    """Рассчитывает цену заявки по сохранённым тарифам."""

    def __init__(self, rates: RateRepository, engine: PricingEngine) -> None:
        self._rates = rates
        self._engine = engine

    @property
    def engine(self) -> PricingEngine:
        return self._engine

    async def preview(self, request: PricingRequest) -> Quote:
        """
        Рассчитывает цену без создания заказа.

        Args:
            request: Параметры услуги

        Returns:
            Цена с детализацией

        Raises:
            PricingUnavailableError: Категория оценивается вручную, нет тарифа
                или не хватает данных (координат для скорой)
        """
        if not request.category.is_pre_priced:
            raise PricingUnavailableError(
                f"Категория {request.category.value} оценивается исполнителем вручную"
            )

        rate = await self._rates.get_rate(request.category, request.service_type)
        if rate is None:
            raise PricingUnavailableError(
                f"Нет тарифа для {request.category.value}/{request.service_type}"
            )

        base_price = rate.base_price_for(request.billing_frequency)
        if base_price is None:
            raise PricingUnavailableError(
                f"Тариф {request.category.value}/{request.service_type} не поддерживает "
                f"оплату {request.billing_frequency.value}"
            )

        modifiers = QuoteModifiers(
            urgency=request.urgency,
            billing_frequency=request.billing_frequency,
            appointment_at=request.appointment_at,
            add_ons=self._build_add_ons(request, rate),
        )
        location = PricingLocation(city=request.city, address=request.address)

        return self._engine.quote(base_price, location, modifiers, currency=rate.currency)

    @staticmethod
    def _build_add_ons(request: PricingRequest, rate: ServiceRate) -> CategoryAddOns:
        if request.category is ServiceCategory.NURSING:
            return NursingAddOns(consumables_cost=request.consumables_cost)

        if request.category is ServiceCategory.PHYSIOTHERAPY:
            return PhysiotherapyAddOns(
                sunday_or_holiday=request.sunday_or_holiday,
                session_minutes=request.session_minutes,
            )

        # Скорая: расстояние в одну сторону от точки подачи до точки назначения
        points = (
            request.pickup_latitude,
            request.pickup_longitude,
            request.dropoff_latitude,
            request.dropoff_longitude,
        )
        if any(p is None for p in points):
            raise PricingUnavailableError("Для расчёта скорой нужны координаты подачи и назначения")

        return AmbulanceAddOns(
            distance_km=distance_km(*points),
            minimum_km=rate.minimum_km or 0,
            per_km_charge=rate.per_km_charge or 0,
        )
