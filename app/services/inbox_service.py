"""List projections over orders: admin order list, customer inbox, thread view.

Unread counts and latest-update times come from the batch queries in
read_receipt_service / thread_repository, one round trip each per page.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.db.enums import OrderStatus, can_post
from app.db.models import Order, OrderThreadEvent, User
from app.schemas.auth import ActorSession
from app.services import authorization_service, read_receipt_service, thread_repository
from app.services.order_errors import NotFound, ValidationError
from app.services.order_update_service import validate_id
from app.utils.normalization import escape_like, normalize_search_text
from app.utils.pagination import clamp_pagination

UPDATED_WITHIN_WINDOWS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def age_hours(created_at: datetime | None, now: datetime) -> int:
    """Whole hours since creation, never negative."""
    created_at = thread_repository.as_utc(created_at)
    if created_at is None:
        return 0
    return max(0, round((now - created_at).total_seconds() / 3600))


# =============================================================================
# Admin order list
# =============================================================================

@dataclass(frozen=True)
class AdminOrderFilters:
    status: str | None = None
    assigned: str | None = None
    updated_within: str | None = None
    q: str | None = None
    project_type: str | None = None
    unread_only: bool = False


@dataclass
class AdminOrderRow:
    order: Order
    customer_email: str | None
    latest_update_at: datetime | None
    unread_count: int
    age_hours: int


@dataclass
class AdminOrderPage:
    rows: list[AdminOrderRow]
    total: int
    page: int
    page_size: int


def _assigned_condition(assigned: str | None, viewer: ActorSession):
    if assigned is None or assigned == "" or assigned == "any":
        return None
    if assigned == "me":
        return Order.assigned_admin_id == viewer.user_id
    if assigned == "none":
        return Order.assigned_admin_id.is_(None)
    if assigned.isdigit() and int(assigned) > 0:
        return Order.assigned_admin_id == int(assigned)
    raise ValidationError("Invalid assigned filter.")


def _updated_since(updated_within: str | None, now: datetime) -> datetime | None:
    if updated_within is None or updated_within in ("", "all"):
        return None
    window = UPDATED_WITHIN_WINDOWS.get(updated_within)
    if window is None:
        raise ValidationError("Invalid updatedWithin filter.")
    return now - window


def list_admin_orders(
    db: Session,
    viewer: ActorSession,
    filters: AdminOrderFilters | None = None,
    page: int | None = 1,
    page_size: int | None = 25,
) -> AdminOrderPage:
    """
    Filtered, paginated order list for admins, newest activity first.

    All filters (including unread_only) run in SQL so ``total`` is the size
    of the filtered set, independent of the page slice.

    Raises:
        Forbidden: Viewer is not an admin
        ValidationError: Unknown status / assigned / updated_within value
    """
    authorization_service.ensure_admin(viewer)
    filters = filters or AdminOrderFilters()
    pagination = clamp_pagination(page, page_size)
    now = _now_utc()

    query = db.query(Order, User.email).outerjoin(User, User.id == Order.customer_id)

    if filters.status and filters.status != "all":
        if not OrderStatus.has_value(filters.status):
            raise ValidationError("Invalid status filter.")
        query = query.filter(Order.status == filters.status)

    assigned_condition = _assigned_condition(filters.assigned, viewer)
    if assigned_condition is not None:
        query = query.filter(assigned_condition)

    since = _updated_since(filters.updated_within, now)
    if since is not None:
        query = query.filter(Order.updated_at >= since)

    if filters.project_type:
        query = query.filter(Order.project_type == filters.project_type)

    q = normalize_search_text(filters.q)
    if q:
        search = f"%{escape_like(q)}%"
        query = query.filter(
            or_(
                Order.name.ilike(search, escape="\\"),
                Order.email.ilike(search, escape="\\"),
                Order.business_name.ilike(search, escape="\\"),
            )
        )

    if filters.unread_only:
        query = query.filter(read_receipt_service.has_unread_clause(viewer.user_id, Order.id))

    total = query.order_by(None).count()
    page_rows = (
        query.order_by(Order.updated_at.desc(), Order.id.desc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
        .all()
    )

    order_ids = [order.id for order, _ in page_rows]
    latest = thread_repository.latest_event_timestamps_for(db, order_ids)
    unread = read_receipt_service.unread_counts_for(db, viewer.user_id, order_ids)

    rows = [
        AdminOrderRow(
            order=order,
            customer_email=customer_email,
            latest_update_at=latest.get(order.id),
            unread_count=unread.get(order.id, 0),
            age_hours=age_hours(order.created_at, now),
        )
        for order, customer_email in page_rows
    ]
    return AdminOrderPage(
        rows=rows,
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


# =============================================================================
# Customer inbox
# =============================================================================

@dataclass
class CustomerInboxOrder:
    order: Order
    last_read_at: datetime | None
    latest_update_at: datetime | None
    unread_count: int

    @property
    def is_unread(self) -> bool:
        return self.unread_count > 0


@dataclass
class CustomerInbox:
    orders: list[CustomerInboxOrder] = field(default_factory=list)

    @property
    def unread_order_ids(self) -> list[int]:
        return [item.order.id for item in self.orders if item.is_unread]


def _customer_orders(db: Session, user_id: int) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.customer_id == user_id)
        .order_by(Order.updated_at.desc(), Order.id.desc())
        .all()
    )


def customer_inbox(db: Session, user_id: int) -> CustomerInbox:
    """The customer's orders with watermark, latest update and unread count."""
    orders = _customer_orders(db, user_id)
    order_ids = [order.id for order in orders]
    last_read = read_receipt_service.get_last_read_for(db, user_id, order_ids)
    latest = thread_repository.latest_event_timestamps_for(db, order_ids)
    unread = read_receipt_service.unread_counts_for(db, user_id, order_ids)
    return CustomerInbox(
        orders=[
            CustomerInboxOrder(
                order=order,
                last_read_at=last_read.get(order.id),
                latest_update_at=latest.get(order.id),
                unread_count=unread.get(order.id, 0),
            )
            for order in orders
        ]
    )


def mark_inbox_read(db: Session, user_id: int) -> int:
    """Mark every order the customer owns as read."""
    order_ids = [order.id for order in _customer_orders(db, user_id)]
    return read_receipt_service.mark_all_read(db, user_id, order_ids)


# =============================================================================
# Thread view
# =============================================================================

@dataclass
class OrderThread:
    order: Order
    events: list[OrderThreadEvent]
    can_post: bool
    viewer_is_admin: bool


def get_thread(db: Session, order_id: int, actor: ActorSession) -> OrderThread:
    """
    Order plus its full thread, oldest first.

    Raises:
        ValidationError: Bad id
        NotFound: Order does not exist
        Forbidden: Actor is neither owner nor admin
    """
    order_id = validate_id(order_id, "order id")
    order = thread_repository.get_order(db, order_id)
    if not order:
        raise NotFound("Order not found.")
    decision = authorization_service.ensure_can_access(actor, order)
    return OrderThread(
        order=order,
        events=thread_repository.list_events(db, order.id),
        can_post=can_post(order.status),
        viewer_is_admin=decision.is_admin,
    )
