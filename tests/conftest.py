# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("RABBITMQ_PASSWORD", "guest")

from carematch.common.constants import ServiceCategory
from carematch.config.loader import PricingSettings
from carematch.core.matching import MatchingCoordinator
from carematch.core.notifications import NotificationDispatcher
from carematch.core.orders import InMemoryOrderRepository, OrderCreateDTO
from carematch.core.pricing import PricingEngine, PricingService, ServiceRate


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture(scope="session")
def lang_dict_path(project_root: Path) -> Path:
    """Путь к файлу локализации."""
    return project_root / "config" / "lang_dict.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "carematch_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "API_HOST": "127.0.0.1",
        "API_PORT": 8100,
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FORMAT": "colored",
        "DEFAULT_LANGUAGE": "te",
        "TIMEZONE": "Asia/Kolkata",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "carematch_test",
        "DB_USER": "postgres",
        "DB_MIN_POOL_SIZE": 2,
        "DB_MAX_POOL_SIZE": 5,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "carematch_test",
        "RATE_TTL": 120,
        "RABBITMQ_EXCHANGE": "carematch.test",
        "CURRENCY": "INR",
        "ROUNDING_INCREMENT": 1,
        "CITY_TIERS": [
            {"name": "metro", "description": "Metro", "percentage": 25, "cities": ["Hyderabad"]},
        ],
        "DEFAULT_CITY_TIER": "rural",
        "DEFAULT_CITY_TIER_PERCENTAGE": 0,
        "NIGHT_START_HOUR": 20,
        "NIGHT_END_HOUR": 6,
        "NIGHT_DUTY_PERCENTAGE": 25,
        "EMERGENCY_PERCENTAGE": 10,
        "HOLIDAYS": ["2026-01-26"],
        "DEFAULT_SEARCH_RADIUS_KM": 15,
        "LIST_LIMIT": 50,
    }


@pytest.fixture
def mock_lang_dict() -> dict[str, dict[str, str]]:
    """Мок словаря локализации для тестов."""
    return {
        "GREETING": {
            "en": "Hello, {name}!",
            "te": "నమస్కారం, {name}!",
        },
        "ONLY_EN": {
            "en": "English only",
        },
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


@pytest.fixture
def temp_lang_dict_file(tmp_path: Path, mock_lang_dict: dict[str, dict[str, str]]) -> Path:
    """Создаёт временный файл локализации."""
    lang_file = tmp_path / "lang_dict.json"
    lang_file.write_text(json.dumps(mock_lang_dict, ensure_ascii=False, indent=2))
    return lang_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.exists = AsyncMock(return_value=False)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# ФИКСТУРЫ ДОМЕНА
# =============================================================================

@pytest.fixture
def pricing_settings() -> PricingSettings:
    """Параметры тарификации по умолчанию (пояса AP, ночь 18-7)."""
    return PricingSettings(HOLIDAYS=[date(2026, 1, 26)])


@pytest.fixture
def engine(pricing_settings: PricingSettings) -> PricingEngine:
    return PricingEngine(pricing_settings, timezone="Asia/Kolkata")


@pytest.fixture
def sample_rates() -> dict[tuple[ServiceCategory, str], ServiceRate]:
    """Тарифы, как в migrations/init.sql."""
    rates = [
        ServiceRate(
            category=ServiceCategory.NURSING,
            service_type="General Nursing",
            per_visit_price=Decimal("600"),
            monthly_price=Decimal("18000"),
        ),
        ServiceRate(
            category=ServiceCategory.PHYSIOTHERAPY,
            service_type="General Physiotherapy",
            per_visit_price=Decimal("500"),
            monthly_price=Decimal("15000"),
        ),
        ServiceRate(
            category=ServiceCategory.AMBULANCE,
            service_type="Basic Life Support",
            minimum_fare=Decimal("300"),
            minimum_km=Decimal("5"),
            per_km_charge=Decimal("20"),
        ),
    ]
    return {(r.category, r.service_type.lower()): r for r in rates}


@pytest.fixture
def rate_repository(sample_rates: dict[tuple[ServiceCategory, str], ServiceRate]) -> MagicMock:
    """Мок репозитория тарифов поверх sample_rates."""
    repo = MagicMock()

    async def get_rate(category: ServiceCategory, service_type: str) -> ServiceRate | None:
        return sample_rates.get((category, service_type.strip().lower()))

    repo.get_rate = AsyncMock(side_effect=get_rate)
    repo.list_rates = AsyncMock(return_value=list(sample_rates.values()))
    return repo


@pytest.fixture
def pricing_service(rate_repository: MagicMock, engine: PricingEngine) -> PricingService:
    return PricingService(rate_repository, engine)


@pytest.fixture
def order_store() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def notifier() -> AsyncMock:
    """Мок получателя уведомлений."""
    dispatcher = AsyncMock(spec=NotificationDispatcher)
    dispatcher.dispatch = AsyncMock(return_value=None)
    return dispatcher


@pytest.fixture
def coordinator(
    order_store: InMemoryOrderRepository,
    pricing_service: PricingService,
    notifier: AsyncMock,
) -> MatchingCoordinator:
    return MatchingCoordinator(order_store, pricing_service, notifier)


@pytest.fixture
def make_order_request() -> Callable[..., OrderCreateDTO]:
    """Фабрика заявок с заполненными обязательными полями."""

    def _make(**overrides: Any) -> OrderCreateDTO:
        data: dict[str, Any] = {
            "requester_id": "patient-1",
            "service_category": ServiceCategory.NURSING,
            "service_type": "General Nursing",
            "requester_name": "Lakshmi Devi",
            "requester_contact": "+919876543210",
            "issue_description": "Post-operative wound dressing",
            "address": "12 Gandhi Road",
            "city": "Ongole",
            "latitude": 15.5057,
            "longitude": 80.0499,
            # 10:00 по Калькутте, будний день
            "preferred_at": datetime(2026, 3, 4, 4, 30, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return OrderCreateDTO(**data)

    return _make
