# carematch/infra/__init__.py
"""
Инфраструктурный слой.
Работа с внешними сервисами: PostgreSQL, Redis, RabbitMQ.
"""

from carematch.infra.database import DatabaseManager, get_db
from carematch.infra.event_bus import EventBus, get_event_bus
from carematch.infra.redis_client import RedisClient, get_redis

__all__ = [
    "DatabaseManager",
    "get_db",
    "RedisClient",
    "get_redis",
    "EventBus",
    "get_event_bus",
]
