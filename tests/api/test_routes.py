# tests/api/test_routes.py
"""
Тесты HTTP API поверх координатора с хранилищем в памяти.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from carematch.api.app import app
from carematch.api.dependencies import get_coordinator, get_pricing_service, get_rate_repository
from carematch.core.matching import MatchingCoordinator
from carematch.core.pricing import PricingService

PATIENT = {"X-User-Id": "patient-1"}
NURSE = {"X-User-Id": "nurse-1"}
OTHER_NURSE = {"X-User-Id": "nurse-2"}


@pytest.fixture
def client(
    coordinator: MatchingCoordinator,
    pricing_service: PricingService,
    rate_repository: MagicMock,
) -> Iterator[TestClient]:
    """Клиент без lifespan: сервисы подменены фикстурами."""

    async def override_coordinator() -> MatchingCoordinator:
        return coordinator

    async def override_pricing() -> PricingService:
        return pricing_service

    async def override_rates() -> MagicMock:
        return rate_repository

    app.dependency_overrides[get_coordinator] = override_coordinator
    app.dependency_overrides[get_pricing_service] = override_pricing
    app.dependency_overrides[get_rate_repository] = override_rates
    yield TestClient(app)
    app.dependency_overrides.clear()


def order_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "service_category": "nursing",
        "service_type": "General Nursing",
        "requester_name": "Lakshmi Devi",
        "requester_contact": "+919876543210",
        "issue_description": "Post-operative wound dressing",
        "address": "12 Gandhi Road",
        "city": "Ongole",
        "latitude": 15.5057,
        "longitude": 80.0499,
        "preferred_at": "2026-03-04T10:00:00+05:30",
    }
    payload.update(overrides)
    return payload


def create_order(client: TestClient, **overrides: Any) -> dict[str, Any]:
    response = client.post("/api/v1/orders", json=order_payload(**overrides), headers=PATIENT)
    assert response.status_code == 201, response.text
    return response.json()


class TestOrderRoutes:
    """Тесты жизненного цикла заказа через API."""

    def test_create_order(self, client: TestClient) -> None:
        body = create_order(client, requester_id="someone-else")

        assert body["requester_id"] == "patient-1"
        assert body["status"] == "pending"
        assert Decimal(body["quoted_price"]) == Decimal("660")
        assert body["price_source"] == "engine"
        assert body["price_breakdown"]["city_tier"] == "tier-2"

    def test_create_missing_fields(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/orders", json=order_payload(requester_name=" "), headers=PATIENT
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        assert "requester_name" in response.json()["detail"]

    def test_missing_actor_header(self, client: TestClient) -> None:
        assert client.post("/api/v1/orders", json=order_payload()).status_code == 422

    def test_blank_actor_header(self, client: TestClient) -> None:
        response = client.post("/api/v1/orders", json=order_payload(), headers={"X-User-Id": " "})
        assert response.status_code == 403

    def test_eligible_list(self, client: TestClient) -> None:
        order = create_order(client)

        response = client.get(
            "/api/v1/orders/eligible",
            params={"specialty": "nurse", "latitude": 15.5057, "longitude": 80.0499, "radius_km": 5},
            headers=NURSE,
        )

        assert response.status_code == 200
        items = response.json()
        assert [i["order"]["id"] for i in items] == [order["id"]]
        assert items[0]["distance_km"] == 0

    def test_eligible_requires_coordinate_pair(self, client: TestClient) -> None:
        response = client.get(
            "/api/v1/orders/eligible", params={"specialty": "nurse", "latitude": 15.5}, headers=NURSE
        )
        assert response.status_code == 422

    def test_eligible_unknown_specialty(self, client: TestClient) -> None:
        response = client.get("/api/v1/orders/eligible", params={"specialty": "dentist"}, headers=NURSE)
        assert response.status_code == 422

    def test_claim_complete_and_rate(self, client: TestClient) -> None:
        order = create_order(client)
        order_url = f"/api/v1/orders/{order['id']}"

        claimed = client.post(f"{order_url}/claim", headers=NURSE)
        assigned = client.get("/api/v1/orders/assigned", headers=NURSE)
        completed = client.post(f"{order_url}/complete", headers=NURSE)
        rated = client.post(f"{order_url}/rate-provider", json={"rating": 5, "review": "Kind"}, headers=PATIENT)
        rated_back = client.post(f"{order_url}/rate-requester", json={"rating": 4}, headers=NURSE)

        assert claimed.status_code == 200
        assert claimed.json()["status"] == "accepted"
        assert [o["id"] for o in assigned.json()] == [order["id"]]
        assert completed.json()["status"] == "completed"
        assert rated.json()["provider_rating"] == 5
        assert rated_back.json()["requester_rating"] == 4

    def test_second_claim_conflict(self, client: TestClient) -> None:
        order = create_order(client)
        client.post(f"/api/v1/orders/{order['id']}/claim", headers=NURSE)

        response = client.post(f"/api/v1/orders/{order['id']}/claim", headers=OTHER_NURSE)

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"
        assert response.json()["order_id"] == order["id"]

    def test_manual_quote_flow(self, client: TestClient) -> None:
        order = create_order(
            client, service_category="biomedical", service_type="Ventilator", equipment_name="ICU Ventilator"
        )
        url = f"/api/v1/orders/{order['id']}"

        without_price = client.post(f"{url}/claim", headers=NURSE)
        quoted = client.post(f"{url}/claim", json={"quoted_price": "2500", "notes": "Sensor"}, headers=NURSE)
        accepted = client.post(f"{url}/accept", headers=PATIENT)

        assert order["quoted_price"] is None
        assert without_price.status_code == 422
        assert quoted.json()["status"] == "quote_sent"
        assert Decimal(quoted.json()["quoted_price"]) == Decimal("2500")
        assert accepted.json()["status"] == "accepted"

    @pytest.mark.parametrize("quoted_price", ["0", "-5", "10000000000", "99.999", "NaN"])
    def test_manual_quote_bounds(self, client: TestClient, quoted_price: str) -> None:
        """Цена исполнителя укладывается в NUMERIC(12, 2)."""
        order = create_order(
            client, service_category="biomedical", service_type="Ventilator", equipment_name="ICU Ventilator"
        )

        response = client.post(
            f"/api/v1/orders/{order['id']}/claim", json={"quoted_price": quoted_price}, headers=NURSE
        )
        view = client.get(f"/api/v1/orders/{order['id']}", headers=PATIENT)

        assert response.status_code == 422
        assert view.json()["status"] == "pending"
        assert view.json()["provider_id"] is None

    def test_invalid_transition(self, client: TestClient) -> None:
        order = create_order(client)

        response = client.post(f"/api/v1/orders/{order['id']}/complete", headers=NURSE)

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"
        assert response.json()["current_status"] == "pending"

    def test_wrong_party(self, client: TestClient) -> None:
        order = create_order(client)
        client.post(f"/api/v1/orders/{order['id']}/claim", headers=NURSE)

        release = client.post(f"/api/v1/orders/{order['id']}/release", headers=OTHER_NURSE)
        view = client.get(f"/api/v1/orders/{order['id']}", headers=OTHER_NURSE)

        assert release.status_code == 403
        assert view.status_code == 403

    def test_release_and_cancel(self, client: TestClient) -> None:
        order = create_order(client)
        url = f"/api/v1/orders/{order['id']}"
        client.post(f"{url}/claim", headers=NURSE)

        released = client.post(f"{url}/release", headers=NURSE)
        cancelled = client.post(f"{url}/cancel", headers=PATIENT)

        assert released.json()["status"] == "pending"
        assert Decimal(released.json()["quoted_price"]) == Decimal("660")
        assert cancelled.json()["status"] == "cancelled"

    def test_not_found(self, client: TestClient) -> None:
        response = client.get("/api/v1/orders/does-not-exist", headers=PATIENT)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_my_orders(self, client: TestClient) -> None:
        first = create_order(client)
        second = create_order(client)

        response = client.get("/api/v1/orders/mine", headers=PATIENT)

        assert {o["id"] for o in response.json()} == {first["id"], second["id"]}

    def test_rating_out_of_range(self, client: TestClient) -> None:
        order = create_order(client)
        response = client.post(
            f"/api/v1/orders/{order['id']}/rate-provider", json={"rating": 6}, headers=PATIENT
        )
        assert response.status_code == 422


class TestPricingRoutes:
    """Тесты предварительного расчёта и списка тарифов."""

    def test_quote_preview(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/pricing/quote",
            json={
                "category": "nursing",
                "service_type": "General Nursing",
                "urgency": "emergency",
                "city": "Guntur",
                "appointment_at": "2026-03-04T10:00:00+05:30",
            },
        )

        assert response.status_code == 200
        body = response.json()
        # 600 + 20% = 720, + 15% срочности от 720 = 828
        assert Decimal(body["final_price"]) == Decimal("828")
        assert body["breakdown"]["city_tier"] == "tier-1"

    def test_quote_unavailable(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/pricing/quote", json={"category": "biomedical", "service_type": "Ventilator"}
        )

        assert response.status_code == 422
        assert response.json()["error"] == "pricing_unavailable"

    def test_rates(self, client: TestClient, rate_repository: MagicMock) -> None:
        response = client.get("/api/v1/pricing/rates", params={"category": "nursing"})

        assert response.status_code == 200
        assert len(response.json()) == 3
        rate_repository.list_rates.assert_awaited_once()


class TestHealth:
    """Тесты /health."""

    @pytest.mark.parametrize("redis_ok, expected", [(True, "healthy"), (False, "degraded")])
    def test_health(self, client: TestClient, redis_ok: bool, expected: str) -> None:
        healthy = MagicMock(health_check=AsyncMock(return_value=True))
        redis = MagicMock(health_check=AsyncMock(return_value=redis_ok))

        with patch("carematch.api.app.get_db", return_value=healthy), \
                patch("carematch.api.app.get_redis", return_value=redis), \
                patch("carematch.api.app.get_event_bus", return_value=healthy):
            response = client.get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == expected
        assert body["dependencies"]["redis"] == ("healthy" if redis_ok else "unhealthy")
