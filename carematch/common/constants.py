# carematch/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ServiceCategory(str, Enum):
    """Категории услуг."""
    NURSING = "nursing"
    PHYSIOTHERAPY = "physiotherapy"
    AMBULANCE = "ambulance"
    BIOMEDICAL = "biomedical"

    @property
    def is_pre_priced(self) -> bool:
        """Цена рассчитывается при создании заказа."""
        return self in PRE_PRICED_CATEGORIES


PRE_PRICED_CATEGORIES = frozenset({
    ServiceCategory.NURSING,
    ServiceCategory.PHYSIOTHERAPY,
    ServiceCategory.AMBULANCE,
})


class ProviderSpecialty(str, Enum):
    """Специализации исполнителей."""
    NURSE = "nurse"
    PHYSIOTHERAPIST = "physiotherapist"
    AMBULANCE_OPERATOR = "ambulance_operator"
    BIOMEDICAL_ENGINEER = "biomedical_engineer"


class OrderStatus(str, Enum):
    """Статусы заказа."""
    PENDING = "pending"
    QUOTE_SENT = "quote_sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.DECLINED,
})


class UrgencyLevel(str, Enum):
    """Срочность заказа."""
    NORMAL = "normal"
    URGENT = "urgent"
    EMERGENCY = "emergency"

    @property
    def priority(self) -> int:
        """Приоритет для сортировки (чем больше, тем срочнее)."""
        return _URGENCY_PRIORITY[self]

    @property
    def is_surcharged(self) -> bool:
        """Облагается ли срочность надбавкой."""
        return self is not UrgencyLevel.NORMAL


_URGENCY_PRIORITY = {
    UrgencyLevel.NORMAL: 0,
    UrgencyLevel.URGENT: 1,
    UrgencyLevel.EMERGENCY: 2,
}


class BillingFrequency(str, Enum):
    """Периодичность оплаты."""
    PER_VISIT = "per_visit"
    MONTHLY = "monthly"


class PriceSource(str, Enum):
    """Источник цены заказа."""
    ENGINE = "engine"      # рассчитана при создании
    PROVIDER = "provider"  # назначена исполнителем при захвате


class NotificationKind(str, Enum):
    """Типы уведомлений."""
    ORDER_CREATED = "order_created"
    ORDER_ACCEPTED = "order_accepted"
    QUOTE_RECEIVED = "quote_received"
    QUOTE_ACCEPTED = "quote_accepted"
    QUOTE_DECLINED = "quote_declined"
    ORDER_RELEASED = "order_released"
    ORDER_COMPLETED = "order_completed"
    ORDER_CANCELLED = "order_cancelled"
