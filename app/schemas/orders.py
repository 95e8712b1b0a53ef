"""Pydantic schemas for order thread, admin list, and inbox APIs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# SQLite returns naive values; every stored timestamp is UTC
UtcDatetime = Annotated[datetime, AfterValidator(_to_utc)]


# =============================================================================
# Requests
# =============================================================================

class OrderUpdateCreate(BaseModel):
    """Comment on an order thread. The body is sanitized server-side."""

    body: str | None = None
    requires_response: bool = Field(
        default=False,
        validation_alias=AliasChoices("requires_response", "requiresResponse"),
    )


class OrderStatusUpdate(BaseModel):
    status: str


class OrderAssignRequest(BaseModel):
    admin_user_id: int = Field(
        validation_alias=AliasChoices("admin_user_id", "adminUserId", "assignedAdminId"),
    )


# =============================================================================
# Responses
# =============================================================================

class OrderRead(BaseModel):
    """Order as shown to its customer or an admin."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int | None = None
    name: str
    email: str
    business_name: str | None = None
    project_type: str
    budget: str | None = None
    timeline: str | None = None
    description: str | None = None
    status: str
    assigned_admin_id: int | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ThreadEventRead(BaseModel):
    """One entry in an order thread."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    author_user_id: int | None = None
    author_email: str | None = None
    body: str
    source: str
    event_type: str
    requires_customer_response: bool
    created_at: UtcDatetime
    edited_at: UtcDatetime | None = None


class OrderThreadResponse(BaseModel):
    order: OrderRead
    updates: list[ThreadEventRead]
    can_post: bool


class StatusChangeResponse(BaseModel):
    order_id: int
    status: str


class AssignmentResponse(BaseModel):
    order_id: int
    assigned_admin_id: int


class AdminOrderListItem(OrderRead):
    """Admin list row: order plus activity rollups."""

    customer_email: str | None = None
    latest_update_at: UtcDatetime | None = None
    unread_count: int = 0
    age_hours: int = 0


class AdminOrderListResponse(BaseModel):
    rows: list[AdminOrderListItem]
    total: int
    page: int
    page_size: int


class InboxOrderItem(OrderRead):
    """Customer inbox row."""

    last_read_at: UtcDatetime | None = None
    latest_update_at: UtcDatetime | None = None
    unread_count: int = 0
    is_unread: bool = False


class CustomerInboxResponse(BaseModel):
    orders: list[InboxOrderItem]
    unread_order_ids: list[int]
