# carematch/api/dependencies.py
"""
Зависимости HTTP API.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header

from carematch.common.constants import TypeMsg
from carematch.common.logger import log_info
from carematch.core.exceptions import UnauthorizedError
from carematch.core.matching import MatchingCoordinator
from carematch.core.notifications import EventBusNotificationDispatcher
from carematch.core.orders import OrderRepository
from carematch.core.pricing import PricingEngine, PricingService, RateRepository
from carematch.infra.database import close_db, get_db, init_db
from carematch.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
from carematch.infra.redis_client import close_redis, get_redis, init_redis


_rate_repository: Optional[RateRepository] = None
_pricing_service: Optional[PricingService] = None
_coordinator: Optional[MatchingCoordinator] = None


async def init_dependencies() -> None:
    """Подключение инфраструктуры и сборка сервисов."""
    global _rate_repository, _pricing_service, _coordinator

    from carematch.config import settings

    await init_db()
    await init_redis()
    await init_event_bus()

    _rate_repository = RateRepository(get_db(), get_redis(), cache_ttl=settings.redis_ttl.RATE_TTL)
    _pricing_service = PricingService(
        _rate_repository,
        PricingEngine(settings.pricing, timezone=settings.domain.TIMEZONE),
    )
    _coordinator = MatchingCoordinator(
        OrderRepository(get_db()),
        _pricing_service,
        EventBusNotificationDispatcher(get_event_bus()),
        language=settings.domain.DEFAULT_LANGUAGE,
        list_limit=settings.matching.LIST_LIMIT,
        default_radius_km=settings.matching.DEFAULT_SEARCH_RADIUS_KM,
    )

    await log_info("Сервисы CareMatch инициализированы", type_msg=TypeMsg.INFO)


async def close_dependencies() -> None:
    """Закрытие всех ресурсов."""
    global _rate_repository, _pricing_service, _coordinator

    await close_event_bus()
    await close_redis()
    await close_db()

    _rate_repository = None
    _pricing_service = None
    _coordinator = None


async def get_rate_repository() -> RateRepository:
    if _rate_repository is None:
        raise RuntimeError("RateRepository не инициализирован")
    return _rate_repository


async def get_pricing_service() -> PricingService:
    if _pricing_service is None:
        raise RuntimeError("PricingService не инициализирован")
    return _pricing_service


async def get_coordinator() -> MatchingCoordinator:
    if _coordinator is None:
        raise RuntimeError("MatchingCoordinator не инициализирован")
    return _coordinator


async def get_actor_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """ID участника из заголовка, выставленного шлюзом аутентификации."""
    actor_id = x_user_id.strip()
    if not actor_id:
        raise UnauthorizedError("Пустой заголовок X-User-Id")
    return actor_id
