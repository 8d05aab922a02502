# carematch/core/exceptions.py
"""
Типизированные ошибки ядра подбора и расчёта стоимости.

Каждая ошибка несёт машиночитаемый code, по которому вызывающая
сторона отличает проигранную гонку (conflict) от недопустимого
перехода или отсутствующего заказа.
"""

from __future__ import annotations


class CareMatchError(Exception):
    """Базовая ошибка домена."""

    code = "carematch_error"

    def __init__(self, message: str, *, order_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.order_id = order_id


class ValidationError(CareMatchError):
    """Отсутствуют или некорректны поля запроса."""

    code = "validation_error"


class NotFoundError(CareMatchError):
    """Заказ не найден."""

    code = "not_found"


class UnauthorizedError(CareMatchError):
    """Действие выполняет не заказчик и не назначенный исполнитель."""

    code = "unauthorized"


class InvalidTransitionError(CareMatchError):
    """Операция недопустима из текущего статуса заказа."""

    code = "invalid_transition"

    def __init__(
        self,
        message: str,
        *,
        order_id: str | None = None,
        current_status: str | None = None,
    ) -> None:
        super().__init__(message, order_id=order_id)
        self.current_status = current_status


class ConflictError(CareMatchError):
    """Заказ уже захвачен другим исполнителем (или оценка уже выставлена)."""

    code = "conflict"


class PricingUnavailableError(CareMatchError):
    """Для категории/типа услуги нет тарифа или не хватает данных для расчёта."""

    code = "pricing_unavailable"
