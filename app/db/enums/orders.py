"""Order and order-thread enums."""

from enum import Enum


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    NEEDS_FEEDBACK = "needs-feedback"
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class ThreadEventType(str, Enum):
    """Kind of entry in an order thread."""

    COMMENT = "comment"
    STATUS = "status"
    EMAIL = "email"


class ThreadEventSource(str, Enum):
    """Where a thread entry came from."""

    WEB = "web"
    EMAIL = "email"
    SYSTEM = "system"


# Orders in these states accept no new comments
CLOSED_ORDER_STATUSES = frozenset({OrderStatus.COMPLETE, OrderStatus.CANCELLED})
CLOSED_ORDER_STATUS_VALUES = frozenset(status.value for status in CLOSED_ORDER_STATUSES)


def can_post(status: str) -> bool:
    """Comments are accepted until the order is complete or cancelled."""
    return str(getattr(status, "value", status)) not in CLOSED_ORDER_STATUS_VALUES
