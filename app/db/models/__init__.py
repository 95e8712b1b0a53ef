"""SQLAlchemy ORM models."""

from app.db.models.orders import (
    RATE_LIMIT_INDEX_NAME,
    Order,
    OrderReadReceipt,
    OrderThreadEvent,
)
from app.db.models.users import User

__all__ = [
    "RATE_LIMIT_INDEX_NAME",
    "Order",
    "OrderReadReceipt",
    "OrderThreadEvent",
    "User",
]
