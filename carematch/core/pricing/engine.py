# carematch/core/pricing/engine.py
"""
Чистый движок расчёта стоимости.

Порядок шагов фиксирован:
1. subtotal = базовая цена (для скорой: минимальный тариф + доплата за км сверх минимума)
2. надбавка ценового пояса от subtotal
3. ночная надбавка от суммы после пояса
4. надбавка за срочность от суммы после пояса
5. фиксированные доплаты категории (воскресенье/праздник, продлённый сеанс)
6. округление итога ROUND_HALF_UP до шага ROUNDING_INCREMENT

Движок не обращается к БД и не пишет логи: все параметры приходят в конструктор.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from carematch.common.constants import ServiceCategory
from carematch.config.loader import PricingSettings
from carematch.core.pricing.models import (
    AmbulanceAddOns,
    NursingAddOns,
    PhysiotherapyAddOns,
    PriceBreakdown,
    PricingLocation,
    Quote,
    QuoteModifiers,
)
from carematch.core.pricing.tiers import CityTierClassifier

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")

# Метки применённых надбавок в детализации
ADDON_NIGHT_DUTY = "night_duty"
ADDON_EMERGENCY = "emergency"
ADDON_SUNDAY_HOLIDAY = "sunday_holiday"
ADDON_EXTENDED_SESSION = "extended_session"
ADDON_CONSUMABLES = "consumables_billed_separately"
ADDON_EXTRA_DISTANCE = "extra_distance"


def _decimal(value: float | int | str | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_to_increment(amount: Decimal, increment: Decimal) -> Decimal:
    """Округляет сумму до шага increment по правилу ROUND_HALF_UP."""
    units = (amount / increment).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return units * increment


def is_night_hour(hour: int, start_hour: int, end_hour: int) -> bool:
    """
    Попадает ли час в ночное окно [start_hour, end_hour).
    Окно может переходить через полночь (18 -> 7).
    """
    if start_hour == end_hour:
        return False
    if start_hour < end_hour:
        return start_hour <= hour < end_hour
    return hour >= start_hour or hour < end_hour


class PricingEngine:
    """Расчёт итоговой цены и детализации по базовому тарифу и модификаторам."""

    def __init__(self, pricing: PricingSettings, timezone: str = "Asia/Kolkata") -> None:
        """
        Args:
            pricing: Параметры надбавок и ценовых поясов
            timezone: Часовой пояс, в котором оценивается время визита
        """
        self._pricing = pricing
        self._tz = ZoneInfo(timezone)
        self._classifier = CityTierClassifier.from_settings(pricing)
        self._increment = _decimal(pricing.ROUNDING_INCREMENT)
        self._night_categories = {ServiceCategory(c) for c in pricing.NIGHT_DUTY_CATEGORIES}
        self._holidays = set(pricing.HOLIDAYS)

    @property
    def currency(self) -> str:
        return self._pricing.CURRENCY

    @property
    def classifier(self) -> CityTierClassifier:
        return self._classifier

    def _local_time(self, moment: datetime) -> datetime:
        # Наивное время считается уже локальным
        if moment.tzinfo is None:
            return moment
        return moment.astimezone(self._tz)

    def is_night(self, moment: datetime | None) -> bool:
        """Попадает ли время визита в ночное окно."""
        if moment is None:
            return False
        local = self._local_time(moment)
        return is_night_hour(local.hour, self._pricing.NIGHT_START_HOUR, self._pricing.NIGHT_END_HOUR)

    def is_sunday_or_holiday(self, moment: datetime | None) -> bool:
        """Воскресенье или праздничный день по локальной дате визита."""
        if moment is None:
            return False
        local_date = self._local_time(moment).date()
        return local_date.weekday() == 6 or local_date in self._holidays

    def quote(
        self,
        base_price: Decimal | float,
        location: PricingLocation,
        modifiers: QuoteModifiers,
        currency: str | None = None,
    ) -> Quote:
        """
        Рассчитывает итоговую цену.

        Args:
            base_price: Базовый тариф (для скорой: минимальный тариф)
            location: Город и адрес для ценового пояса
            modifiers: Срочность, периодичность, время визита, надбавки категории
            currency: Валюта тарифа (по умолчанию из настроек)

        Returns:
            Итоговая цена с полной детализацией
        """
        base = _decimal(base_price)
        if base < _ZERO:
            raise ValueError("Базовая цена не может быть отрицательной")

        add_ons = modifiers.add_ons
        category = modifiers.category
        applied: list[str] = []
        details: dict = {}

        # 1. Subtotal
        subtotal = base
        if isinstance(add_ons, AmbulanceAddOns):
            distance = _decimal(add_ons.distance_km)
            extra_km = max(_ZERO, distance - add_ons.minimum_km)
            extra_km_charge = extra_km * add_ons.per_km_charge
            subtotal = base + extra_km_charge
            if extra_km_charge > _ZERO:
                applied.append(ADDON_EXTRA_DISTANCE)
            details.update(
                distance_km=distance,
                minimum_km=add_ons.minimum_km,
                extra_km=extra_km,
                extra_km_charge=extra_km_charge,
            )

        # 2. Ценовой пояс
        tier = self._classifier.classify(location)
        city_adjustment = subtotal * tier.percentage / _HUNDRED
        after_city = subtotal + city_adjustment

        # 3. Ночная надбавка
        night_pct = _ZERO
        night_charge = _ZERO
        if category in self._night_categories and self.is_night(modifiers.appointment_at):
            night_pct = _decimal(self._pricing.NIGHT_DUTY_PERCENTAGE)
            night_charge = after_city * night_pct / _HUNDRED
            applied.append(ADDON_NIGHT_DUTY)

        # 4. Срочность
        emergency_pct = _ZERO
        emergency_charge = _ZERO
        if modifiers.urgency.is_surcharged:
            emergency_pct = _decimal(self._pricing.EMERGENCY_PERCENTAGE)
            emergency_charge = after_city * emergency_pct / _HUNDRED
            applied.append(ADDON_EMERGENCY)

        # 5. Фиксированные доплаты
        sunday_charge = _ZERO
        extended_charge = _ZERO
        consumables = _ZERO
        if isinstance(add_ons, PhysiotherapyAddOns):
            if add_ons.sunday_or_holiday or self.is_sunday_or_holiday(modifiers.appointment_at):
                sunday_charge = _decimal(self._pricing.SUNDAY_HOLIDAY_FEE)
                applied.append(ADDON_SUNDAY_HOLIDAY)
            threshold = self._pricing.EXTENDED_SESSION_THRESHOLD_MINUTES
            if add_ons.session_minutes is not None and add_ons.session_minutes > threshold:
                extended_charge = _decimal(self._pricing.EXTENDED_SESSION_FEE)
                applied.append(ADDON_EXTENDED_SESSION)
        elif isinstance(add_ons, NursingAddOns) and add_ons.consumables_cost > _ZERO:
            consumables = add_ons.consumables_cost
            applied.append(ADDON_CONSUMABLES)

        # 6. Итог и округление
        total = after_city + night_charge + emergency_charge + sunday_charge + extended_charge
        final_price = round_to_increment(total, self._increment)
        currency = currency or self._pricing.CURRENCY

        breakdown = PriceBreakdown(
            category=category,
            billing_frequency=modifiers.billing_frequency,
            base_price=base,
            subtotal=subtotal,
            city_tier=tier.name,
            city_tier_description=tier.description,
            city_tier_percentage=tier.percentage,
            city_adjustment=city_adjustment,
            after_city_adjustment=after_city,
            night_duty_percentage=night_pct,
            night_duty_charge=night_charge,
            emergency_percentage=emergency_pct,
            emergency_charge=emergency_charge,
            sunday_holiday_charge=sunday_charge,
            extended_session_charge=extended_charge,
            consumables_cost=consumables,
            consumables_billed_separately=consumables > _ZERO,
            applied_add_ons=applied,
            total_before_rounding=total,
            rounding_increment=self._increment,
            final_price=final_price,
            currency=currency,
            **details,
        )

        return Quote(final_price=final_price, currency=currency, breakdown=breakdown)
