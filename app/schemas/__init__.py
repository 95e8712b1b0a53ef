"""Pydantic schemas for API request/response models."""

from app.schemas.auth import ActorSession, TokenPayload
from app.schemas.orders import (
    AdminOrderListItem,
    AdminOrderListResponse,
    AssignmentResponse,
    CustomerInboxResponse,
    InboxOrderItem,
    OrderAssignRequest,
    OrderRead,
    OrderStatusUpdate,
    OrderThreadResponse,
    OrderUpdateCreate,
    StatusChangeResponse,
    ThreadEventRead,
)

__all__ = [
    "ActorSession",
    "TokenPayload",
    "AdminOrderListItem",
    "AdminOrderListResponse",
    "AssignmentResponse",
    "CustomerInboxResponse",
    "InboxOrderItem",
    "OrderAssignRequest",
    "OrderRead",
    "OrderStatusUpdate",
    "OrderThreadResponse",
    "OrderUpdateCreate",
    "StatusChangeResponse",
    "ThreadEventRead",
]
