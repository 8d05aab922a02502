# tests/infra/test_redis_client.py
"""
Тесты для клиента Redis.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from carematch.common.constants import ServiceCategory
from carematch.core.pricing import ServiceRate
from carematch.infra.redis_client import RedisClient


@pytest.fixture
def redis_client() -> RedisClient:
    """Клиент с мок-соединением."""
    RedisClient._instance = None
    client = RedisClient()
    client._client = AsyncMock()
    client._namespace = "carematch_test"
    return client


class TestRedisClient:
    """Тесты базовых операций."""

    def test_client_not_initialized(self) -> None:
        RedisClient._instance = None
        with pytest.raises(RuntimeError):
            _ = RedisClient().client

    def test_make_key(self, redis_client: RedisClient) -> None:
        assert redis_client._make_key("rate:nursing:general nursing") == "carematch_test:rate:nursing:general nursing"

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, redis_client: RedisClient) -> None:
        redis_client.client.set = AsyncMock(return_value=True)

        await redis_client.set("key", "value", ttl=60)

        redis_client.client.set.assert_awaited_once_with("carematch_test:key", "value", ex=60)

    @pytest.mark.asyncio
    async def test_health_check_failure(self, redis_client: RedisClient) -> None:
        redis_client.client.ping = AsyncMock(side_effect=ConnectionError("down"))
        assert await redis_client.health_check() is False

    @pytest.mark.asyncio
    async def test_connect_pings(self) -> None:
        RedisClient._instance = None
        client = RedisClient()
        fake = AsyncMock()

        with patch("carematch.infra.redis_client.redis.from_url", return_value=fake) as from_url:
            await client.connect(url="redis://localhost:6379/0", namespace="carematch_test")

        from_url.assert_called_once()
        fake.ping.assert_awaited_once()
        assert client._namespace == "carematch_test"


class TestModelOperations:
    """Тесты операций с Pydantic моделями."""

    @pytest.mark.asyncio
    async def test_model_round_trip(self, redis_client: RedisClient) -> None:
        rate = ServiceRate(
            category=ServiceCategory.NURSING,
            service_type="General Nursing",
            per_visit_price=Decimal("600"),
        )
        store: dict[str, str] = {}

        async def fake_set(key: str, value: str, ex: int | None = None) -> bool:
            store[key] = value
            return True

        async def fake_get(key: str) -> str | None:
            return store.get(key)

        redis_client.client.set = AsyncMock(side_effect=fake_set)
        redis_client.client.get = AsyncMock(side_effect=fake_get)

        await redis_client.set_model("rate:nursing:general nursing", rate, ttl=600)
        cached = await redis_client.get_model("rate:nursing:general nursing", ServiceRate)

        assert cached == rate

    @pytest.mark.asyncio
    async def test_get_model_miss(self, redis_client: RedisClient) -> None:
        redis_client.client.get = AsyncMock(return_value=None)
        assert await redis_client.get_model("missing", ServiceRate) is None

    @pytest.mark.asyncio
    async def test_corrupted_entry_is_miss(self, redis_client: RedisClient) -> None:
        redis_client.client.get = AsyncMock(return_value='{"category": "dental"}')
        assert await redis_client.get_model("rate:dental:x", ServiceRate) is None

    @pytest.mark.asyncio
    async def test_invalid_json_is_miss(self, redis_client: RedisClient) -> None:
        redis_client.client.get = AsyncMock(return_value="not json")
        assert await redis_client.get_model("rate:nursing:x", ServiceRate) is None
