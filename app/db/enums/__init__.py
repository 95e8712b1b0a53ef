"""Enum definitions for application constants."""

from app.db.enums.orders import (
    CLOSED_ORDER_STATUS_VALUES,
    CLOSED_ORDER_STATUSES,
    OrderStatus,
    ThreadEventSource,
    ThreadEventType,
    can_post,
)

__all__ = [
    "CLOSED_ORDER_STATUS_VALUES",
    "CLOSED_ORDER_STATUSES",
    "OrderStatus",
    "ThreadEventSource",
    "ThreadEventType",
    "can_post",
]
