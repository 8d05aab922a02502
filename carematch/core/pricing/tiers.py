# carematch/core/pricing/tiers.py
"""
Классификация места оказания услуги по ценовым поясам.

Пояса проверяются в порядке конфигурации (премиальные районы идут первыми),
совпадение ищется по целым словам в названии города и адресе.
Неизвестное место всегда получает пояс по умолчанию.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Iterable

from carematch.config.loader import CityTierConfig, PricingSettings
from carematch.core.pricing.models import CityTier, PricingLocation

_NON_WORD = re.compile(r"[^\w]+", re.UNICODE)


def normalize_place(value: str | None) -> str:
    """Приводит название к нижнему регистру, знаки препинания заменяет пробелами."""
    if not value:
        return ""
    return " ".join(_NON_WORD.sub(" ", value.lower()).split())


def _contains_phrase(haystack: str, phrase: str) -> bool:
    # haystack и phrase нормализованы: слова разделены одиночными пробелами
    return f" {phrase} " in f" {haystack} "


class CityTierClassifier:
    """Определяет ценовой пояс по городу и адресу."""

    def __init__(
        self,
        tiers: Iterable[CityTierConfig],
        default_name: str,
        default_description: str = "",
        default_percentage: float = 0.0,
    ) -> None:
        self._tiers: list[tuple[CityTier, list[str]]] = []
        for tier in tiers:
            names = [normalize_place(n) for n in (*tier.localities, *tier.cities)]
            self._tiers.append((
                CityTier(
                    name=tier.name,
                    description=tier.description,
                    percentage=Decimal(str(tier.percentage)),
                ),
                [n for n in names if n],
            ))
        self._default = CityTier(
            name=default_name,
            description=default_description,
            percentage=Decimal(str(default_percentage)),
        )

    @classmethod
    def from_settings(cls, pricing: PricingSettings) -> CityTierClassifier:
        return cls(
            pricing.CITY_TIERS,
            default_name=pricing.DEFAULT_CITY_TIER,
            default_description=pricing.DEFAULT_CITY_TIER_DESCRIPTION,
            default_percentage=pricing.DEFAULT_CITY_TIER_PERCENTAGE,
        )

    @property
    def default_tier(self) -> CityTier:
        return self._default

    def classify(self, location: PricingLocation) -> CityTier:
        """
        Возвращает ценовой пояс для места.

        Args:
            location: Город и адрес

        Returns:
            Первый подходящий пояс или пояс по умолчанию
        """
        city = normalize_place(location.city)
        haystack = " ".join(part for part in (normalize_place(location.address), city) if part)
        if not haystack:
            return self._default

        for tier, names in self._tiers:
            for name in names:
                if name == city or _contains_phrase(haystack, name):
                    return tier

        return self._default
