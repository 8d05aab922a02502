# carematch/core/matching/service.py
"""
Координатор подбора исполнителей.

Управляет жизненным циклом заказа: создание с расчётом цены, список
доступных заказов для исполнителя, захват, подтверждение/отклонение цены,
освобождение, завершение, отмена и взаимные оценки.

Каждый переход проверяет существование заказа, допустимость перехода из
текущего статуса и права участника, после чего выполняется условным
обновлением в хранилище. Захват заказа выполняется одной атомарной
командой (compare-and-set по provider_id).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from carematch.common.constants import (
    NotificationKind,
    OrderStatus,
    PriceSource,
    ProviderSpecialty,
    ServiceCategory,
    TypeMsg,
)
from carematch.common.logger import log_error, log_info
from carematch.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PricingUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from carematch.core.geo import Coordinates
from carematch.core.matching.specialties import category_for_specialty
from carematch.core.notifications import NotificationDispatcher, build_notification
from carematch.core.orders.models import EligibleOrder, OrderCreateDTO, ServiceOrder, utc_now
from carematch.core.orders.repository import OrderStore
from carematch.core.orders.state_machine import OrderAction, OrderStateMachine
from carematch.core.pricing import PricingRequest, PricingService

# Статусы, в которых заказ числится за исполнителем
ASSIGNED_STATUSES = (OrderStatus.QUOTE_SENT, OrderStatus.ACCEPTED)

# Сколько страниц pending-заказов просматривается при фильтре по радиусу
ELIGIBLE_SCAN_PAGES = 10

MIN_RATING = 1
MAX_RATING = 5


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _parse_quote(value: Optional[Decimal]) -> Optional[Decimal]:
    """Цена исполнителя: конечное число больше нуля, иначе None."""
    if value is None:
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def _check_pair(errors: list[str], name: str, lat: Optional[float], lon: Optional[float]) -> None:
    """Координаты передаются парой и в допустимых пределах."""
    if (lat is None) != (lon is None):
        errors.append(f"{name}: нужны и широта, и долгота")
        return
    if lat is None:
        return
    try:
        Coordinates(lat, lon)
    except ValueError as e:
        errors.append(f"{name}: {e}")


class MatchingCoordinator:
    """
    Координатор заказов.
    Единственная точка, через которую меняется состояние заказа.
    """

    def __init__(
        self,
        store: OrderStore,
        pricing: PricingService,
        notifier: NotificationDispatcher,
        *,
        language: str = "en",
        list_limit: int = 100,
        default_radius_km: Optional[float] = None,
    ) -> None:
        """
        Args:
            store: Хранилище заказов
            pricing: Сервис тарификации
            notifier: Получатель уведомлений
            language: Язык текстов уведомлений
            list_limit: Максимум заказов в списках
            default_radius_km: Радиус поиска по умолчанию (None = без фильтра)
        """
        self._store = store
        self._pricing = pricing
        self._notifier = notifier
        self._language = language
        self._list_limit = list_limit
        self._default_radius_km = default_radius_km

    # =========================================================================
    # СОЗДАНИЕ
    # =========================================================================

    @staticmethod
    def _validate_create(request: OrderCreateDTO) -> None:
        errors: list[str] = []

        for field_name in ("requester_id", "requester_name", "requester_contact", "issue_description", "service_type"):
            if _is_blank(getattr(request, field_name)):
                errors.append(f"{field_name}: обязательное поле")

        _check_pair(errors, "site", request.latitude, request.longitude)
        _check_pair(errors, "pickup", request.pickup_latitude, request.pickup_longitude)
        _check_pair(errors, "dropoff", request.dropoff_latitude, request.dropoff_longitude)

        if request.monthly_visits_count is not None and request.monthly_visits_count < 1:
            errors.append("monthly_visits_count: должно быть не меньше 1")
        if request.session_minutes is not None and request.session_minutes <= 0:
            errors.append("session_minutes: должно быть больше 0")
        if request.consumables_cost < 0:
            errors.append("consumables_cost: не может быть отрицательной")

        if errors:
            raise ValidationError("; ".join(errors))

    async def create(self, request: OrderCreateDTO) -> ServiceOrder:
        """
        Создаёт заказ в статусе pending.

        Для категорий с расчётной ценой цена считается сразу. Если тарифа нет,
        заказ всё равно создаётся без цены и уходит на ручную оценку.

        Args:
            request: Данные заказа

        Returns:
            Сохранённый заказ

        Raises:
            ValidationError: Не заполнены обязательные поля
        """
        self._validate_create(request)

        order = ServiceOrder(
            **request.model_dump(
                exclude={"sunday_or_holiday", "session_minutes", "consumables_cost"},
            ),
            quoted_currency=self._pricing.engine.currency,
        )

        if order.is_pre_priced:
            await self._apply_engine_quote(order, request)

        order = await self._store.create(order)

        await log_info(
            f"Заказ {order.id} создан: category={order.service_category.value}, "
            f"requester={order.requester_id}, price={order.quoted_price}",
            type_msg=TypeMsg.INFO,
        )
        await self._notify(
            NotificationKind.ORDER_CREATED,
            order.requester_id,
            order,
            category=order.service_category.value,
        )
        return order

    async def _apply_engine_quote(self, order: ServiceOrder, request: OrderCreateDTO) -> None:
        address = order.address
        # Для скорой без адреса места пояс определяется по точке подачи
        if order.service_category is ServiceCategory.AMBULANCE and _is_blank(address) and _is_blank(order.city):
            address = order.pickup_address

        pricing_request = PricingRequest(
            category=order.service_category,
            service_type=order.service_type,
            urgency=order.urgency_level,
            billing_frequency=order.billing_frequency,
            city=order.city,
            address=address,
            appointment_at=order.preferred_at or order.created_at,
            pickup_latitude=order.pickup_latitude,
            pickup_longitude=order.pickup_longitude,
            dropoff_latitude=order.dropoff_latitude,
            dropoff_longitude=order.dropoff_longitude,
            sunday_or_holiday=request.sunday_or_holiday,
            session_minutes=request.session_minutes,
            consumables_cost=request.consumables_cost,
        )
        try:
            quote = await self._pricing.preview(pricing_request)
        except PricingUnavailableError as e:
            await log_info(
                f"Заказ {order.id} остаётся без цены и уходит на ручную оценку: {e.message}",
                type_msg=TypeMsg.WARNING,
            )
            return

        order.quoted_price = quote.final_price
        order.quoted_currency = quote.currency
        order.price_breakdown = quote.breakdown
        order.price_source = PriceSource.ENGINE

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def _require(self, order_id: str) -> ServiceOrder:
        order = await self._store.get(order_id)
        if order is None:
            raise NotFoundError(f"Заказ {order_id} не найден", order_id=order_id)
        return order

    async def get_order(self, order_id: str, actor_id: str) -> ServiceOrder:
        """Заказ виден только заказчику и назначенному исполнителю."""
        order = await self._require(order_id)
        if not order.is_party(actor_id):
            raise UnauthorizedError(f"Нет доступа к заказу {order_id}", order_id=order_id)
        return order

    async def list_for_requester(self, requester_id: str) -> list[ServiceOrder]:
        """Все заказы заказчика, новые первыми."""
        return await self._store.list_for_requester(requester_id, self._list_limit)

    async def list_assigned(self, provider_id: str) -> list[ServiceOrder]:
        """Заказы, закреплённые за исполнителем, старые первыми."""
        return await self._store.list_for_provider(provider_id, ASSIGNED_STATUSES, self._list_limit)

    async def list_eligible(
        self,
        provider_id: str,
        specialty: ProviderSpecialty | str,
        provider_location: Optional[Coordinates] = None,
        radius_km: Optional[float] = None,
    ) -> list[EligibleOrder]:
        """
        Незахваченные заказы категории исполнителя.

        Порядок: срочность (emergency > urgent > normal), затем время
        создания (старые первыми). Расстояние считается до места услуги
        (для скорой до точки подачи), если известны обе точки. При заданном
        радиусе заказы дальше радиуса отбрасываются, заказы без координат
        остаются в списке. Собственные заказы исполнителя не показываются.
        Просматривается не больше ELIGIBLE_SCAN_PAGES страниц по list_limit
        заказов.

        Args:
            provider_id: ID исполнителя
            specialty: Специализация исполнителя
            provider_location: Текущие координаты исполнителя
            radius_km: Радиус поиска (по умолчанию из настроек)

        Returns:
            Список заказов с расстоянием
        """
        category = category_for_specialty(specialty)
        radius = radius_km if radius_km is not None else self._default_radius_km

        result: list[EligibleOrder] = []
        offset = 0
        # Заказы вне радиуса отсеиваются здесь, поэтому хранилище читается
        # страницами, пока список не заполнится
        for _ in range(ELIGIBLE_SCAN_PAGES):
            page = await self._store.list_pending(
                category,
                self._list_limit,
                exclude_requester_id=provider_id,
                offset=offset,
            )
            for order in page:
                distance = None
                point = order.matching_point
                if provider_location is not None and point is not None:
                    distance = round(provider_location.distance_to(point), 2)
                    if radius is not None and distance > radius:
                        continue

                result.append(EligibleOrder(order=order, distance_km=distance))
                if len(result) >= self._list_limit:
                    break

            if len(result) >= self._list_limit or len(page) < self._list_limit:
                break
            offset += len(page)

        result.sort(key=lambda e: (-e.order.urgency_level.priority, e.order.created_at))
        return result

    # =========================================================================
    # ЗАХВАТ
    # =========================================================================

    async def claim(
        self,
        order_id: str,
        provider_id: str,
        quoted_price: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> ServiceOrder:
        """
        Захватывает заказ исполнителем.

        Заказ с готовой ценой переходит в accepted. Заказ без цены
        (ручная оценка) требует quoted_price и переходит в quote_sent.

        Raises:
            NotFoundError: Заказ не найден
            ConflictError: Заказ уже захвачен или не в pending
            ValidationError: Нет цены для ручной оценки или цена передана
                для заказа с готовой ценой
            UnauthorizedError: Исполнитель захватывает собственный заказ
        """
        order = await self._require(order_id)

        if order.status is not OrderStatus.PENDING or order.provider_id is not None:
            raise ConflictError(f"Заказ {order_id} уже недоступен для захвата", order_id=order_id)
        if order.requester_id == provider_id:
            raise UnauthorizedError("Нельзя захватить собственный заказ", order_id=order_id)

        manual = order.quoted_price is None
        if manual:
            price = _parse_quote(quoted_price)
            if price is None:
                raise ValidationError(
                    f"Для заказа {order_id} нужно указать цену больше нуля", order_id=order_id
                )
            new_status = OrderStatus.QUOTE_SENT
            source: Optional[PriceSource] = PriceSource.PROVIDER
        else:
            if quoted_price is not None:
                raise ValidationError(
                    f"Цена заказа {order_id} уже рассчитана и не может быть изменена",
                    order_id=order_id,
                )
            new_status = OrderStatus.ACCEPTED
            price = None
            source = None

        claimed = await self._store.try_claim(
            order_id,
            provider_id,
            new_status,
            quoted_price=price,
            price_source=source,
            provider_notes=notes,
        )

        if claimed is None or claimed.provider_id != provider_id:
            await log_info(
                f"Исполнитель {provider_id} проиграл гонку за заказ {order_id}",
                type_msg=TypeMsg.DEBUG,
            )
            raise ConflictError(f"Заказ {order_id} захвачен другим исполнителем", order_id=order_id)

        await log_info(
            f"Заказ {order_id} захвачен исполнителем {provider_id}: status={claimed.status.value}",
            type_msg=TypeMsg.INFO,
        )

        if manual:
            await self._notify(
                NotificationKind.QUOTE_RECEIVED,
                claimed.requester_id,
                claimed,
                price=claimed.quoted_price,
                currency=claimed.quoted_currency,
            )
        else:
            await self._notify(NotificationKind.ORDER_ACCEPTED, claimed.requester_id, claimed)
        return claimed

    # =========================================================================
    # ПЕРЕХОДЫ
    # =========================================================================

    @staticmethod
    def _check_action(order: ServiceOrder, action: OrderAction) -> None:
        if not OrderStateMachine.can_perform(action, order.status):
            raise InvalidTransitionError(
                f"Действие {action.value} недопустимо для заказа {order.id} в статусе {order.status.value}",
                order_id=order.id,
                current_status=order.status.value,
            )

    @staticmethod
    def _check_requester(order: ServiceOrder, requester_id: str) -> None:
        if order.requester_id != requester_id:
            raise UnauthorizedError(
                f"Участник {requester_id} не является заказчиком {order.id}", order_id=order.id
            )

    @staticmethod
    def _check_provider(order: ServiceOrder, provider_id: str) -> None:
        if order.provider_id is None or order.provider_id != provider_id:
            raise UnauthorizedError(
                f"Участник {provider_id} не является исполнителем {order.id}", order_id=order.id
            )

    async def _lost_transition(self, order_id: str, action: OrderAction) -> InvalidTransitionError:
        """Условное обновление не применилось: перечитываем заказ."""
        current = await self._require(order_id)
        await log_info(
            f"Действие {action.value} над заказом {order_id} не применено: "
            f"статус изменился на {current.status.value}",
            type_msg=TypeMsg.DEBUG,
        )
        return InvalidTransitionError(
            f"Заказ {order_id} уже в статусе {current.status.value}",
            order_id=order_id,
            current_status=current.status.value,
        )

    async def _transition(
        self,
        order: ServiceOrder,
        action: OrderAction,
        to_status: OrderStatus,
        *,
        provider_id: Optional[str] = None,
        requester_id: Optional[str] = None,
        changes: Optional[dict[str, Any]] = None,
    ) -> ServiceOrder:
        if not OrderStateMachine.can_transition(order.status, to_status):
            raise InvalidTransitionError(
                f"Переход {order.status.value} -> {to_status.value} недопустим для заказа {order.id}",
                order_id=order.id,
                current_status=order.status.value,
            )

        updated = await self._store.transition(
            order.id,
            from_status=order.status,
            to_status=to_status,
            provider_id=provider_id,
            requester_id=requester_id,
            changes=changes,
        )
        if updated is None:
            raise await self._lost_transition(order.id, action)

        await log_info(
            f"Заказ {order.id}: {order.status.value} -> {updated.status.value} ({action.value})",
            type_msg=TypeMsg.INFO,
        )
        return updated

    async def accept(self, order_id: str, requester_id: str) -> ServiceOrder:
        """Заказчик принимает цену исполнителя: quote_sent -> accepted."""
        order = await self._require(order_id)
        self._check_action(order, OrderAction.ACCEPT)
        self._check_requester(order, requester_id)

        updated = await self._transition(
            order, OrderAction.ACCEPT, OrderStatus.ACCEPTED, requester_id=requester_id
        )
        await self._notify(NotificationKind.QUOTE_ACCEPTED, updated.provider_id, updated)
        return updated

    async def decline(self, order_id: str, requester_id: str) -> ServiceOrder:
        """Заказчик отклоняет цену исполнителя: quote_sent -> declined."""
        order = await self._require(order_id)
        self._check_action(order, OrderAction.DECLINE)
        self._check_requester(order, requester_id)

        updated = await self._transition(
            order, OrderAction.DECLINE, OrderStatus.DECLINED, requester_id=requester_id
        )
        await self._notify(NotificationKind.QUOTE_DECLINED, order.provider_id, updated)
        return updated

    async def release(self, order_id: str, provider_id: str) -> ServiceOrder:
        """
        Исполнитель освобождает заказ: quote_sent/accepted -> pending.

        Рассчитанная при создании цена сохраняется, цена исполнителя
        сбрасывается вместе с provider_id.
        """
        order = await self._require(order_id)
        self._check_action(order, OrderAction.RELEASE)
        self._check_provider(order, provider_id)

        changes: dict[str, Any] = {
            "provider_id": None,
            "responded_at": None,
            "provider_notes": None,
        }
        if order.price_source is PriceSource.PROVIDER:
            changes.update(quoted_price=None, price_breakdown=None, price_source=None)

        updated = await self._transition(
            order, OrderAction.RELEASE, OrderStatus.PENDING, provider_id=provider_id, changes=changes
        )
        await self._notify(NotificationKind.ORDER_RELEASED, updated.requester_id, updated)
        return updated

    async def complete(self, order_id: str, provider_id: str) -> ServiceOrder:
        """Исполнитель завершает заказ: accepted -> completed."""
        order = await self._require(order_id)
        self._check_action(order, OrderAction.COMPLETE)
        self._check_provider(order, provider_id)

        updated = await self._transition(
            order,
            OrderAction.COMPLETE,
            OrderStatus.COMPLETED,
            provider_id=provider_id,
            changes={"completed_at": utc_now()},
        )
        await self._notify(NotificationKind.ORDER_COMPLETED, updated.requester_id, updated)
        return updated

    async def cancel(self, order_id: str, requester_id: str) -> ServiceOrder:
        """Заказчик отменяет незавершённый заказ. Назначенный исполнитель получает уведомление."""
        order = await self._require(order_id)
        self._check_action(order, OrderAction.CANCEL)
        self._check_requester(order, requester_id)

        updated = await self._transition(
            order,
            OrderAction.CANCEL,
            OrderStatus.CANCELLED,
            requester_id=requester_id,
            changes={"cancelled_at": utc_now()},
        )
        if updated.provider_id is not None:
            await self._notify(NotificationKind.ORDER_CANCELLED, updated.provider_id, updated)
        return updated

    # =========================================================================
    # ОЦЕНКИ
    # =========================================================================

    async def rate_provider(
        self,
        order_id: str,
        requester_id: str,
        rating: int,
        review: Optional[str] = None,
    ) -> ServiceOrder:
        """Заказчик оценивает исполнителя завершённого заказа."""
        return await self._rate(order_id, "provider", requester_id, rating, review)

    async def rate_requester(
        self,
        order_id: str,
        provider_id: str,
        rating: int,
        review: Optional[str] = None,
    ) -> ServiceOrder:
        """Исполнитель оценивает заказчика завершённого заказа."""
        return await self._rate(order_id, "requester", provider_id, rating, review)

    async def _rate(
        self,
        order_id: str,
        side: str,
        actor_id: str,
        rating: int,
        review: Optional[str],
    ) -> ServiceOrder:
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(
                f"Оценка должна быть от {MIN_RATING} до {MAX_RATING}", order_id=order_id
            )

        order = await self._require(order_id)
        if order.status is not OrderStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Оценить можно только завершённый заказ, статус {order.status.value}",
                order_id=order_id,
                current_status=order.status.value,
            )

        if side == "provider":
            self._check_requester(order, actor_id)
            existing = order.provider_rating
        else:
            self._check_provider(order, actor_id)
            existing = order.requester_rating
        if existing is not None:
            raise ConflictError(f"Оценка для заказа {order_id} уже выставлена", order_id=order_id)

        updated = await self._store.set_rating(
            order_id, side=side, actor_id=actor_id, rating=rating, review=review
        )
        if updated is None:
            raise ConflictError(f"Оценка для заказа {order_id} уже выставлена", order_id=order_id)

        await log_info(
            f"Заказ {order_id}: оценка {side}={rating} от {actor_id}",
            type_msg=TypeMsg.INFO,
        )
        return updated

    # =========================================================================
    # УВЕДОМЛЕНИЯ
    # =========================================================================

    async def _notify(
        self,
        kind: NotificationKind,
        recipient_id: Optional[str],
        order: ServiceOrder,
        **params: Any,
    ) -> None:
        """Доставка best-effort: ошибка получателя не откатывает переход."""
        if recipient_id is None:
            return
        try:
            notification = build_notification(
                kind, recipient_id, order.id, self._language, **params
            )
            await self._notifier.dispatch(notification)
        except Exception as e:
            await log_error(
                f"Не удалось отправить уведомление {kind.value} по заказу {order.id}: {e}",
                exc_info=True,
            )
