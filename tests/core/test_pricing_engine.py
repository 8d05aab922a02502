# tests/core/test_pricing_engine.py
"""
Тесты для движка расчёта стоимости.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from carematch.common.constants import BillingFrequency, UrgencyLevel
from carematch.config.loader import PricingSettings
from carematch.core.pricing import (
    AmbulanceAddOns,
    NursingAddOns,
    PhysiotherapyAddOns,
    PricingEngine,
    PricingLocation,
    QuoteModifiers,
)
from carematch.core.pricing.engine import (
    ADDON_CONSUMABLES,
    ADDON_EMERGENCY,
    ADDON_EXTENDED_SESSION,
    ADDON_NIGHT_DUTY,
    ADDON_SUNDAY_HOLIDAY,
    is_night_hour,
    round_to_increment,
)


# Среда 4 марта 2026, 10:00 и 22:00 по Калькутте
WEEKDAY_MORNING = datetime(2026, 3, 4, 4, 30, tzinfo=timezone.utc)
WEEKDAY_NIGHT = datetime(2026, 3, 4, 16, 30, tzinfo=timezone.utc)
SUNDAY_MORNING = datetime(2026, 3, 8, 10, 0)
REPUBLIC_DAY = datetime(2026, 1, 26, 11, 0)

TIER_2 = PricingLocation(city="Kakinada", address="Main Road")
UNKNOWN_TOWN = PricingLocation(city="Chilakaluripet")


def physio(**kwargs) -> QuoteModifiers:
    add_ons = {k: kwargs.pop(k) for k in ("sunday_or_holiday", "session_minutes") if k in kwargs}
    return QuoteModifiers(add_ons=PhysiotherapyAddOns(**add_ons), **kwargs)


def nursing(**kwargs) -> QuoteModifiers:
    add_ons = {k: kwargs.pop(k) for k in ("consumables_cost",) if k in kwargs}
    return QuoteModifiers(add_ons=NursingAddOns(**add_ons), **kwargs)


class TestHelpers:
    """Тесты вспомогательных функций."""

    @pytest.mark.parametrize(
        "amount, increment, expected",
        [
            ("632.5", "1", "633"),
            ("632.49", "1", "632"),
            ("632.4", "5", "630"),
            ("632.5", "5", "635"),
            ("10.005", "0.01", "10.01"),
        ],
    )
    def test_round_half_up(self, amount: str, increment: str, expected: str) -> None:
        """Округление до шага по правилу half-up."""
        assert round_to_increment(Decimal(amount), Decimal(increment)) == Decimal(expected)

    @pytest.mark.parametrize(
        "hour, expected",
        [(17, False), (18, True), (23, True), (0, True), (6, True), (7, False), (12, False)],
    )
    def test_night_window_wraps_midnight(self, hour: int, expected: bool) -> None:
        """Окно 18 -> 7 переходит через полночь."""
        assert is_night_hour(hour, 18, 7) is expected

    def test_night_window_same_day(self) -> None:
        assert is_night_hour(22, 22, 23)
        assert not is_night_hour(23, 22, 23)

    def test_empty_night_window(self) -> None:
        """Совпадающие границы означают отсутствие ночного окна."""
        assert not any(is_night_hour(h, 5, 5) for h in range(24))


class TestPricingEngine:
    """Тесты для PricingEngine.quote."""

    def test_tier_and_urgency_example(self, engine: PricingEngine) -> None:
        """500, пояс +10%, срочность +15% -> 632.5 -> 633."""
        quote = engine.quote(
            Decimal("500"),
            TIER_2,
            physio(urgency=UrgencyLevel.URGENT, appointment_at=WEEKDAY_MORNING),
        )

        b = quote.breakdown
        assert b.city_tier == "tier-2"
        assert b.city_adjustment == Decimal("50")
        assert b.after_city_adjustment == Decimal("550")
        assert b.emergency_charge == Decimal("82.5")
        assert b.night_duty_charge == 0
        assert b.total_before_rounding == Decimal("632.5")
        assert quote.final_price == Decimal("633")
        assert b.applied_add_ons == [ADDON_EMERGENCY]

    def test_ambulance_extra_distance(self, engine: PricingEngine) -> None:
        """Минимальный тариф 300 за 5 км, 20 за км, 12 км -> 440."""
        modifiers = QuoteModifiers(
            appointment_at=WEEKDAY_MORNING,
            add_ons=AmbulanceAddOns(distance_km=12.0, minimum_km=Decimal("5"), per_km_charge=Decimal("20")),
        )

        quote = engine.quote(Decimal("300"), UNKNOWN_TOWN, modifiers)

        b = quote.breakdown
        assert b.extra_km == Decimal("7")
        assert b.extra_km_charge == Decimal("140")
        assert b.subtotal == Decimal("440")
        assert b.city_tier == "tier-3"
        assert quote.final_price == Decimal("440")

    def test_ambulance_within_minimum_distance(self, engine: PricingEngine) -> None:
        modifiers = QuoteModifiers(
            appointment_at=WEEKDAY_MORNING,
            add_ons=AmbulanceAddOns(distance_km=3.2, minimum_km=Decimal("5"), per_km_charge=Decimal("20")),
        )

        quote = engine.quote(Decimal("300"), UNKNOWN_TOWN, modifiers)

        assert quote.breakdown.extra_km == 0
        assert quote.final_price == Decimal("300")

    def test_surcharges_apply_to_after_city_amount(self, engine: PricingEngine) -> None:
        """Ночная и срочная надбавки считаются от суммы после пояса, не друг от друга."""
        quote = engine.quote(
            Decimal("1000"),
            PricingLocation(city="Guntur"),
            nursing(urgency=UrgencyLevel.EMERGENCY, appointment_at=WEEKDAY_NIGHT),
        )

        b = quote.breakdown
        assert b.after_city_adjustment == Decimal("1200")
        assert b.night_duty_charge == Decimal("240")
        assert b.emergency_charge == Decimal("180")
        assert quote.final_price == Decimal("1620")
        assert b.applied_add_ons == [ADDON_NIGHT_DUTY, ADDON_EMERGENCY]

    def test_night_duty_not_applied_to_physiotherapy(self, engine: PricingEngine) -> None:
        quote = engine.quote(Decimal("500"), UNKNOWN_TOWN, physio(appointment_at=WEEKDAY_NIGHT))
        assert quote.breakdown.night_duty_charge == 0
        assert quote.final_price == Decimal("500")

    def test_naive_time_is_local(self, engine: PricingEngine) -> None:
        """Наивное время считается временем часового пояса платформы."""
        assert engine.is_night(datetime(2026, 3, 4, 22, 0))
        assert not engine.is_night(datetime(2026, 3, 4, 10, 0))

    def test_aware_time_converted_to_local(self, engine: PricingEngine) -> None:
        # 13:00 UTC = 18:30 IST
        assert engine.is_night(datetime(2026, 3, 4, 13, 0, tzinfo=timezone.utc))

    def test_no_appointment_time_means_day(self, engine: PricingEngine) -> None:
        quote = engine.quote(Decimal("600"), UNKNOWN_TOWN, nursing())
        assert quote.final_price == Decimal("600")

    def test_sunday_fee_from_date(self, engine: PricingEngine) -> None:
        quote = engine.quote(Decimal("500"), UNKNOWN_TOWN, physio(appointment_at=SUNDAY_MORNING))
        assert quote.breakdown.sunday_holiday_charge == Decimal("100")
        assert quote.final_price == Decimal("600")
        assert ADDON_SUNDAY_HOLIDAY in quote.breakdown.applied_add_ons

    def test_holiday_fee_from_calendar(self, engine: PricingEngine) -> None:
        quote = engine.quote(Decimal("500"), UNKNOWN_TOWN, physio(appointment_at=REPUBLIC_DAY))
        assert quote.breakdown.sunday_holiday_charge == Decimal("100")

    def test_holiday_fee_from_flag(self, engine: PricingEngine) -> None:
        quote = engine.quote(
            Decimal("500"), UNKNOWN_TOWN, physio(sunday_or_holiday=True, appointment_at=WEEKDAY_MORNING)
        )
        assert quote.final_price == Decimal("600")

    @pytest.mark.parametrize("minutes, charged", [(45, False), (60, False), (61, True), (90, True)])
    def test_extended_session(self, engine: PricingEngine, minutes: int, charged: bool) -> None:
        quote = engine.quote(
            Decimal("500"), UNKNOWN_TOWN, physio(session_minutes=minutes, appointment_at=WEEKDAY_MORNING)
        )
        assert (ADDON_EXTENDED_SESSION in quote.breakdown.applied_add_ons) is charged
        assert quote.final_price == (Decimal("600") if charged else Decimal("500"))

    def test_flat_fees_are_not_scaled_by_tier(self, engine: PricingEngine) -> None:
        quote = engine.quote(
            Decimal("500"), TIER_2, physio(session_minutes=90, appointment_at=SUNDAY_MORNING)
        )
        assert quote.final_price == Decimal("750")

    def test_consumables_billed_separately(self, engine: PricingEngine) -> None:
        quote = engine.quote(
            Decimal("600"),
            UNKNOWN_TOWN,
            nursing(consumables_cost=Decimal("250"), appointment_at=WEEKDAY_MORNING),
        )

        b = quote.breakdown
        assert b.consumables_cost == Decimal("250")
        assert b.consumables_billed_separately is True
        assert ADDON_CONSUMABLES in b.applied_add_ons
        assert quote.final_price == Decimal("600")

    def test_monthly_billing_recorded(self, engine: PricingEngine) -> None:
        quote = engine.quote(
            Decimal("18000"),
            UNKNOWN_TOWN,
            nursing(billing_frequency=BillingFrequency.MONTHLY, appointment_at=WEEKDAY_MORNING),
        )
        assert quote.breakdown.billing_frequency is BillingFrequency.MONTHLY
        assert quote.final_price == Decimal("18000")

    def test_negative_base_rejected(self, engine: PricingEngine) -> None:
        with pytest.raises(ValueError):
            engine.quote(Decimal("-1"), UNKNOWN_TOWN, nursing())

    def test_percentages_are_configuration(self) -> None:
        """Проценты берутся из настроек, а не из кода."""
        custom = PricingEngine(PricingSettings(
            CITY_TIERS=[],
            DEFAULT_CITY_TIER="flat",
            DEFAULT_CITY_TIER_PERCENTAGE=5,
            EMERGENCY_PERCENTAGE=50,
            ROUNDING_INCREMENT=10,
        ))

        quote = custom.quote(
            Decimal("100"), UNKNOWN_TOWN, nursing(urgency=UrgencyLevel.URGENT, appointment_at=WEEKDAY_MORNING)
        )

        assert quote.breakdown.city_tier == "flat"
        assert quote.breakdown.total_before_rounding == Decimal("157.5")
        assert quote.final_price == Decimal("160")

    def test_currency_from_rate(self, engine: PricingEngine) -> None:
        quote = engine.quote(Decimal("10"), UNKNOWN_TOWN, nursing(), currency="USD")
        assert quote.currency == "USD"
        assert quote.breakdown.currency == "USD"


class TestPricingMonotonicity:
    """Включение любой надбавки не уменьшает итоговую цену."""

    @pytest.mark.parametrize("base", ["0", "1", "499.99", "500", "12345.67"])
    @pytest.mark.parametrize("city", ["Ongole", "Vizag", "Nowhere", None])
    def test_each_surcharge_never_decreases_price(
        self, engine: PricingEngine, base: str, city: str | None
    ) -> None:
        location = PricingLocation(city=city)
        price = Decimal(base)

        def final(modifiers: QuoteModifiers) -> Decimal:
            return engine.quote(price, location, modifiers).final_price

        day = WEEKDAY_MORNING
        pairs = [
            (nursing(appointment_at=day), nursing(appointment_at=WEEKDAY_NIGHT)),
            (nursing(appointment_at=day), nursing(appointment_at=day, urgency=UrgencyLevel.URGENT)),
            (physio(appointment_at=day), physio(appointment_at=day, sunday_or_holiday=True)),
            (physio(appointment_at=day, session_minutes=30), physio(appointment_at=day, session_minutes=120)),
        ]
        for without, with_surcharge in pairs:
            assert final(with_surcharge) >= final(without)
