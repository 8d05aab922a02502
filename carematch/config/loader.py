# carematch/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секретные данные и адреса сервисов переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "carematch"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"


class DeploymentSettings(BaseModel):
    """Настройки развертывания HTTP API."""
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_WORKERS: int = 1


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760


class DomainSettings(BaseModel):
    """Настройки домена и локализации."""
    DEFAULT_LANGUAGE: str = "en"
    TIMEZONE: str = "Asia/Kolkata"


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "carematch"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "carematch"
    REDIS_MAX_CONNECTIONS: int = 50

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RedisTTLSettings(BaseModel):
    """Настройки TTL кэша."""
    RATE_TTL: int = 600


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "carematch.events"

    @field_validator("RABBITMQ_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        env_pass = os.getenv("RABBITMQ_PASSWORD", "")
        if env_pass:
            return env_pass
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class CityTierConfig(BaseModel):
    """Описание ценового пояса города."""
    name: str
    description: str = ""
    percentage: float = 0.0
    cities: list[str] = Field(default_factory=list)
    localities: list[str] = Field(default_factory=list)


def _default_city_tiers() -> list[CityTierConfig]:
    return [
        CityTierConfig(
            name="premium",
            description="Premium Locality",
            percentage=30.0,
            localities=[
                "benz circle", "mvp colony", "jubilee hills", "film nagar",
                "madhurawada", "gachibowli", "hitech city",
            ],
        ),
        CityTierConfig(
            name="tier-1",
            description="Tier-1 City (Major AP Cities)",
            percentage=20.0,
            cities=["vizag", "visakhapatnam", "vijayawada", "guntur"],
        ),
        CityTierConfig(
            name="tier-2",
            description="Tier-2 City",
            percentage=10.0,
            cities=[
                "kakinada", "rajahmundry", "tirupati", "nellore", "kurnool",
                "kadapa", "anantapur", "eluru", "ongole", "bhimavaram",
                "machilipatnam", "tenali", "proddatur", "hindupur", "chittoor",
            ],
        ),
    ]


class PricingSettings(BaseModel):
    """Параметры расчёта стоимости услуг."""
    CURRENCY: str = "INR"
    ROUNDING_INCREMENT: float = 1.0
    CITY_TIERS: list[CityTierConfig] = Field(default_factory=_default_city_tiers)
    DEFAULT_CITY_TIER: str = "tier-3"
    DEFAULT_CITY_TIER_DESCRIPTION: str = "Tier-3 Town (Base Rate)"
    DEFAULT_CITY_TIER_PERCENTAGE: float = 0.0
    NIGHT_START_HOUR: int = 18
    NIGHT_END_HOUR: int = 7
    NIGHT_DUTY_PERCENTAGE: float = 20.0
    NIGHT_DUTY_CATEGORIES: list[str] = Field(default_factory=lambda: ["nursing", "ambulance"])
    EMERGENCY_PERCENTAGE: float = 15.0
    SUNDAY_HOLIDAY_FEE: float = 100.0
    EXTENDED_SESSION_FEE: float = 100.0
    EXTENDED_SESSION_THRESHOLD_MINUTES: int = 60
    HOLIDAYS: list[date] = Field(default_factory=list)

    @field_validator("NIGHT_START_HOUR", "NIGHT_END_HOUR")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Час должен быть в диапазоне 0..23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Час вне диапазона 0..23: {v}")
        return v

    @field_validator("ROUNDING_INCREMENT")
    @classmethod
    def validate_increment(cls, v: float) -> float:
        """Шаг округления должен быть положительным."""
        if v <= 0:
            raise ValueError("ROUNDING_INCREMENT должен быть больше нуля")
        return v


class MatchingSettings(BaseModel):
    """Настройки подбора заказов для исполнителей."""
    DEFAULT_SEARCH_RADIUS_KM: float | None = None
    LIST_LIMIT: int = 100


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    domain: DomainSettings = Field(default_factory=DomainSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    redis_ttl: RedisTTLSettings = Field(default_factory=RedisTTLSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты переопределяются из переменных окружения.
        """
        config_data = load_config_json()
        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: dict[str, Any]) -> "Settings":
        """
        Раскладывает плоский словарь ключей по секциям.

        Args:
            config_data: Содержимое config.json

        Returns:
            Объект настроек
        """
        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        pricing_defaults = PricingSettings()

        return cls(
            system=SystemSettings(
                PROJECT_NAME=data.get("PROJECT_NAME", "carematch"),
                VERSION=data.get("VERSION", "1.0.0"),
                DEBUG=data.get("DEBUG", True),
                ENVIRONMENT=os.getenv("ENVIRONMENT", data.get("ENVIRONMENT", "development")),
            ),
            deployment=DeploymentSettings(
                API_HOST=os.getenv("API_HOST", data.get("API_HOST", "0.0.0.0")),
                API_PORT=int(os.getenv("API_PORT", data.get("API_PORT", 8000))),
                API_WORKERS=data.get("API_WORKERS", 1),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=data.get("LOG_LEVEL", "DEBUG"),
                LOG_TO_FILE=data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=data.get("LOG_MAX_BYTES", 10485760),
            ),
            domain=DomainSettings(
                DEFAULT_LANGUAGE=data.get("DEFAULT_LANGUAGE", "en"),
                TIMEZONE=data.get("TIMEZONE", "Asia/Kolkata"),
            ),
            database=DatabaseSettings(
                DB_HOST=os.getenv("DB_HOST", data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", data.get("DB_NAME", "carematch")),
                DB_USER=os.getenv("DB_USER", data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=data.get("DB_COMMAND_TIMEOUT", 60),
                DB_RETRY_ATTEMPTS=data.get("DB_RETRY_ATTEMPTS", 3),
                DB_RETRY_DELAY=data.get("DB_RETRY_DELAY", 1.0),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", data.get("REDIS_PORT", 6379))),
                REDIS_DB=data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", data.get("REDIS_PASSWORD", "")),
                REDIS_NAMESPACE=data.get("REDIS_NAMESPACE", "carematch"),
                REDIS_MAX_CONNECTIONS=data.get("REDIS_MAX_CONNECTIONS", 50),
            ),
            redis_ttl=RedisTTLSettings(
                RATE_TTL=data.get("RATE_TTL", 600),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_HOST=os.getenv("RABBITMQ_HOST", data.get("RABBITMQ_HOST", "localhost")),
                RABBITMQ_PORT=int(os.getenv("RABBITMQ_PORT", data.get("RABBITMQ_PORT", 5672))),
                RABBITMQ_USER=os.getenv("RABBITMQ_USER", data.get("RABBITMQ_USER", "guest")),
                RABBITMQ_PASSWORD=os.getenv("RABBITMQ_PASSWORD", data.get("RABBITMQ_PASSWORD", "guest")),
                RABBITMQ_VHOST=data.get("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=data.get("RABBITMQ_EXCHANGE", "carematch.events"),
            ),
            pricing=PricingSettings(
                CURRENCY=data.get("CURRENCY", pricing_defaults.CURRENCY),
                ROUNDING_INCREMENT=data.get("ROUNDING_INCREMENT", pricing_defaults.ROUNDING_INCREMENT),
                CITY_TIERS=data.get("CITY_TIERS", pricing_defaults.CITY_TIERS),
                DEFAULT_CITY_TIER=data.get("DEFAULT_CITY_TIER", pricing_defaults.DEFAULT_CITY_TIER),
                DEFAULT_CITY_TIER_DESCRIPTION=data.get(
                    "DEFAULT_CITY_TIER_DESCRIPTION", pricing_defaults.DEFAULT_CITY_TIER_DESCRIPTION
                ),
                DEFAULT_CITY_TIER_PERCENTAGE=data.get(
                    "DEFAULT_CITY_TIER_PERCENTAGE", pricing_defaults.DEFAULT_CITY_TIER_PERCENTAGE
                ),
                NIGHT_START_HOUR=data.get("NIGHT_START_HOUR", pricing_defaults.NIGHT_START_HOUR),
                NIGHT_END_HOUR=data.get("NIGHT_END_HOUR", pricing_defaults.NIGHT_END_HOUR),
                NIGHT_DUTY_PERCENTAGE=data.get("NIGHT_DUTY_PERCENTAGE", pricing_defaults.NIGHT_DUTY_PERCENTAGE),
                NIGHT_DUTY_CATEGORIES=data.get("NIGHT_DUTY_CATEGORIES", pricing_defaults.NIGHT_DUTY_CATEGORIES),
                EMERGENCY_PERCENTAGE=data.get("EMERGENCY_PERCENTAGE", pricing_defaults.EMERGENCY_PERCENTAGE),
                SUNDAY_HOLIDAY_FEE=data.get("SUNDAY_HOLIDAY_FEE", pricing_defaults.SUNDAY_HOLIDAY_FEE),
                EXTENDED_SESSION_FEE=data.get("EXTENDED_SESSION_FEE", pricing_defaults.EXTENDED_SESSION_FEE),
                EXTENDED_SESSION_THRESHOLD_MINUTES=data.get(
                    "EXTENDED_SESSION_THRESHOLD_MINUTES", pricing_defaults.EXTENDED_SESSION_THRESHOLD_MINUTES
                ),
                HOLIDAYS=data.get("HOLIDAYS", []),
            ),
            matching=MatchingSettings(
                DEFAULT_SEARCH_RADIUS_KM=data.get("DEFAULT_SEARCH_RADIUS_KM"),
                LIST_LIMIT=data.get("LIST_LIMIT", 100),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
