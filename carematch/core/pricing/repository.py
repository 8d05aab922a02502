# carematch/core/pricing/repository.py
"""
Репозиторий тарифов (таблица service_rates) с кэшем в Redis.
"""

from __future__ import annotations

from asyncpg import Record

from carematch.common.constants import ServiceCategory
from carematch.core.pricing.models import ServiceRate
from carematch.infra.database import DatabaseManager
from carematch.infra.redis_client import RedisClient

_RATE_COLUMNS = """
    category, service_type, per_visit_price, monthly_price,
    minimum_fare, minimum_km, per_km_charge, currency
"""


class RateRepository:
    """Чтение тарифов на услуги."""

    def __init__(self, db: DatabaseManager, redis: RedisClient, cache_ttl: int = 600) -> None:
        """
        Args:
            db: Менеджер базы данных
            redis: Клиент Redis для кэша тарифов
            cache_ttl: Время жизни записи кэша (секунды)
        """
        self._db = db
        self._redis = redis
        self._cache_ttl = cache_ttl

    @staticmethod
    def _cache_key(category: ServiceCategory, service_type: str) -> str:
        return f"rate:{category.value}:{service_type.strip().lower()}"

    @staticmethod
    def _row_to_rate(row: Record) -> ServiceRate:
        return ServiceRate(
            category=ServiceCategory(row["category"]),
            service_type=row["service_type"],
            per_visit_price=row["per_visit_price"],
            monthly_price=row["monthly_price"],
            minimum_fare=row["minimum_fare"],
            minimum_km=row["minimum_km"],
            per_km_charge=row["per_km_charge"],
            currency=row["currency"],
        )

    async def get_rate(self, category: ServiceCategory, service_type: str) -> ServiceRate | None:
        """
        Возвращает активный тариф для категории и типа услуги.

        Args:
            category: Категория услуги
            service_type: Тип услуги (без учёта регистра)

        Returns:
            Тариф или None, если он не настроен
        """
        cache_key = self._cache_key(category, service_type)

        cached = await self._redis.get_model(cache_key, ServiceRate)
        if cached is not None:
            return cached

        row = await self._db.fetchrow(
            f"""
            SELECT {_RATE_COLUMNS}
            FROM service_rates
            WHERE category = $1
              AND LOWER(service_type) = LOWER($2)
              AND is_active = TRUE
            LIMIT 1
            """,
            category.value,
            service_type.strip(),
        )
        if row is None:
            return None

        rate = self._row_to_rate(row)
        await self._redis.set_model(cache_key, rate, ttl=self._cache_ttl)
        return rate

    async def list_rates(self, category: ServiceCategory | None = None) -> list[ServiceRate]:
        """Список активных тарифов (опционально по категории)."""
        if category is None:
            rows = await self._db.fetch(
                f"""
                SELECT {_RATE_COLUMNS}
                FROM service_rates
                WHERE is_active = TRUE
                ORDER BY category, service_type
                """
            )
        else:
            rows = await self._db.fetch(
                f"""
                SELECT {_RATE_COLUMNS}
                FROM service_rates
                WHERE is_active = TRUE AND category = $1
                ORDER BY service_type
                """,
                category.value,
            )
        return [self._row_to_rate(row) for row in rows]
