# carematch/api/routes.py
"""
Маршруты HTTP API: заказы и предварительный расчёт цены.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from carematch.api.dependencies import (
    get_actor_id,
    get_coordinator,
    get_pricing_service,
    get_rate_repository,
)
from carematch.api.schemas import ClaimRequest, OrderCreateRequest, RatingRequest
from carematch.common.constants import ProviderSpecialty, ServiceCategory
from carematch.core.exceptions import ValidationError
from carematch.core.geo import Coordinates
from carematch.core.matching import MatchingCoordinator
from carematch.core.orders import EligibleOrder, ServiceOrder
from carematch.core.pricing import (
    PricingRequest,
    PricingService,
    Quote,
    RateRepository,
    ServiceRate,
)

router = APIRouter(prefix="/api/v1")


# =============================================================================
# ЗАКАЗЫ
# =============================================================================

@router.post(
    "/orders",
    response_model=ServiceOrder,
    status_code=status.HTTP_201_CREATED,
    tags=["Orders"],
)
async def create_order(
    request: OrderCreateRequest,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    """Создание заказа от имени заказчика."""
    return await coordinator.create(request.to_dto(actor_id))


@router.get("/orders/eligible", response_model=list[EligibleOrder], tags=["Orders"])
async def list_eligible_orders(
    specialty: ProviderSpecialty,
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0),
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> list[EligibleOrder]:
    """Незахваченные заказы по специализации исполнителя."""
    if (latitude is None) != (longitude is None):
        raise ValidationError("Нужны и latitude, и longitude")
    location = Coordinates(latitude, longitude) if latitude is not None else None

    return await coordinator.list_eligible(
        actor_id,
        specialty,
        provider_location=location,
        radius_km=radius_km,
    )


@router.get("/orders/mine", response_model=list[ServiceOrder], tags=["Orders"])
async def list_my_orders(
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> list[ServiceOrder]:
    """Заказы текущего заказчика."""
    return await coordinator.list_for_requester(actor_id)


@router.get("/orders/assigned", response_model=list[ServiceOrder], tags=["Orders"])
async def list_assigned_orders(
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> list[ServiceOrder]:
    """Заказы, закреплённые за текущим исполнителем."""
    return await coordinator.list_assigned(actor_id)


@router.get("/orders/{order_id}", response_model=ServiceOrder, tags=["Orders"])
async def get_order(
    order_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    return await coordinator.get_order(order_id, actor_id)


@router.post("/orders/{order_id}/claim", response_model=ServiceOrder, tags=["Orders"])
async def claim_order(
    order_id: str,
    request: Optional[ClaimRequest] = None,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    """Захват заказа исполнителем (с ценой для ручной оценки)."""
    request = request or ClaimRequest()
    return await coordinator.claim(
        order_id,
        actor_id,
        quoted_price=request.quoted_price,
        notes=request.notes,
    )


@router.post("/orders/{order_id}/accept", response_model=ServiceOrder, tags=["Orders"])
async def accept_quote(
    order_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    return await coordinator.accept(order_id, actor_id)


@router.post("/orders/{order_id}/decline", response_model=ServiceOrder, tags=["Orders"])
async def decline_quote(
    order_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    return await coordinator.decline(order_id, actor_id)


@router.post("/orders/{order_id}/release", response_model=ServiceOrder, tags=["Orders"])
async def release_order(
    order_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    return await coordinator.release(order_id, actor_id)


@router.post("/orders/{order_id}/complete", response_model=ServiceOrder, tags=["Orders"])
async def complete_order(
    order_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    return await coordinator.complete(order_id, actor_id)


@router.post("/orders/{order_id}/cancel", response_model=ServiceOrder, tags=["Orders"])
async def cancel_order(
    order_id: str,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    return await coordinator.cancel(order_id, actor_id)


@router.post("/orders/{order_id}/rate-provider", response_model=ServiceOrder, tags=["Ratings"])
async def rate_provider(
    order_id: str,
    request: RatingRequest,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    """Оценка исполнителя заказчиком."""
    return await coordinator.rate_provider(order_id, actor_id, request.rating, request.review)


@router.post("/orders/{order_id}/rate-requester", response_model=ServiceOrder, tags=["Ratings"])
async def rate_requester(
    order_id: str,
    request: RatingRequest,
    actor_id: str = Depends(get_actor_id),
    coordinator: MatchingCoordinator = Depends(get_coordinator),
) -> ServiceOrder:
    """Оценка заказчика исполнителем."""
    return await coordinator.rate_requester(order_id, actor_id, request.rating, request.review)


# =============================================================================
# ТАРИФЫ
# =============================================================================

@router.post("/pricing/quote", response_model=Quote, tags=["Pricing"])
async def preview_quote(
    request: PricingRequest,
    pricing: PricingService = Depends(get_pricing_service),
) -> Quote:
    """Предварительный расчёт цены без создания заказа."""
    return await pricing.preview(request)


@router.get("/pricing/rates", response_model=list[ServiceRate], tags=["Pricing"])
async def list_rates(
    category: Optional[ServiceCategory] = None,
    rates: RateRepository = Depends(get_rate_repository),
) -> list[ServiceRate]:
    """Активные тарифы."""
    return await rates.list_rates(category)
