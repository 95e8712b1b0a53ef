"""Order thread APIs: comments, thread view, status/assignment, read receipts."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.core.deps import (
    get_current_actor,
    get_db,
    get_notification_dispatcher,
    require_csrf_header,
)
from app.core.rate_limit import MUTATION_LIMIT, limiter
from app.db.models import Order, OrderThreadEvent
from app.schemas.auth import ActorSession
from app.schemas.orders import (
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
from app.services import (
    inbox_service,
    order_admin_service,
    order_update_service,
    read_receipt_service,
)
from app.services.notification_dispatcher import NotificationDispatcher

router = APIRouter(prefix="/orders", tags=["Orders"])


def _event_read(event: OrderThreadEvent) -> ThreadEventRead:
    return ThreadEventRead(
        id=event.id,
        order_id=event.order_id,
        author_user_id=event.author_user_id,
        author_email=event.author.email if event.author else None,
        body=event.body,
        source=event.source,
        event_type=event.event_type,
        requires_customer_response=event.requires_customer_response,
        created_at=event.created_at,
        edited_at=event.edited_at,
    )


def _order_fields(order: Order) -> dict:
    return OrderRead.model_validate(order).model_dump()


@router.get("/mine", response_model=CustomerInboxResponse)
def my_orders(
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(get_current_actor),
) -> CustomerInboxResponse:
    """Customer inbox: own orders with unread state."""
    inbox = inbox_service.customer_inbox(db, actor.user_id)
    return CustomerInboxResponse(
        orders=[
            InboxOrderItem(
                **_order_fields(item.order),
                last_read_at=item.last_read_at,
                latest_update_at=item.latest_update_at,
                unread_count=item.unread_count,
                is_unread=item.is_unread,
            )
            for item in inbox.orders
        ],
        unread_order_ids=inbox.unread_order_ids,
    )


@router.post(
    "/read-all",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(MUTATION_LIMIT)
def mark_all_read(
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(get_current_actor),
) -> Response:
    """Mark every order the customer owns as read."""
    inbox_service.mark_inbox_read(db, actor.user_id)
    return Response(status_code=204)


@router.get("/{order_id}/thread", response_model=OrderThreadResponse)
def get_thread(
    order_id: int,
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(get_current_actor),
) -> OrderThreadResponse:
    """Order with its full update thread (owner or admin)."""
    thread = inbox_service.get_thread(db, order_id, actor)
    return OrderThreadResponse(
        order=OrderRead.model_validate(thread.order),
        updates=[_event_read(event) for event in thread.events],
        can_post=thread.can_post,
    )


@router.post(
    "/{order_id}/updates",
    response_model=ThreadEventRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(MUTATION_LIMIT)
def post_update(
    request: Request,
    order_id: int,
    data: OrderUpdateCreate,
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(get_current_actor),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> ThreadEventRead:
    """Post a comment; notifies the other party by email in the background."""
    event = order_update_service.post_comment(
        db,
        order_id=order_id,
        actor=actor,
        raw_body=data.body,
        requires_response=data.requires_response,
        dispatcher=dispatcher,
    )
    return _event_read(event)


@router.post(
    "/{order_id}/status",
    response_model=StatusChangeResponse,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(MUTATION_LIMIT)
def set_status(
    request: Request,
    order_id: int,
    data: OrderStatusUpdate,
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(get_current_actor),
) -> StatusChangeResponse:
    """Change order status (admin only)."""
    result = order_admin_service.set_status(db, order_id, data.status, actor)
    return StatusChangeResponse(order_id=result.order_id, status=result.status)


@router.post(
    "/{order_id}/assign",
    response_model=AssignmentResponse,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(MUTATION_LIMIT)
def assign_order(
    request: Request,
    order_id: int,
    data: OrderAssignRequest,
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(get_current_actor),
) -> AssignmentResponse:
    """Assign order to an admin (admin only)."""
    result = order_admin_service.assign(db, order_id, data.admin_user_id, actor)
    return AssignmentResponse(
        order_id=result.order_id,
        assigned_admin_id=result.assigned_admin_id,
    )


@router.post(
    "/{order_id}/cancel",
    response_model=StatusChangeResponse,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(MUTATION_LIMIT)
def cancel_order(
    request: Request,
    order_id: int,
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(get_current_actor),
) -> StatusChangeResponse:
    """Customer cancels their own order within the cancellation window."""
    result = order_admin_service.cancel_order(db, order_id, actor)
    return StatusChangeResponse(order_id=result.order_id, status=result.status)


@router.post(
    "/{order_id}/read",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(MUTATION_LIMIT)
def mark_read(
    request: Request,
    order_id: int,
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(get_current_actor),
) -> Response:
    """Advance the caller's read watermark for this order."""
    read_receipt_service.mark_order_read(db, order_id, actor)
    return Response(status_code=204)
