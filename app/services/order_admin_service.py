"""Order status and assignment transitions.

Every transition writes the order row and a system thread event in one
transaction, so the thread always explains the current state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.enums import OrderStatus, ThreadEventType, can_post
from app.schemas.auth import ActorSession
from app.services import authorization_service, identity_service, thread_repository
from app.services.order_errors import Forbidden, NotFound, OrderClosed, ValidationError
from app.services.order_update_service import validate_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChangeResult:
    order_id: int
    status: str


@dataclass(frozen=True)
class AssignmentResult:
    order_id: int
    assigned_admin_id: int


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_status(value: object) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str) or not OrderStatus.has_value(value):
        raise ValidationError("Invalid status.")
    return OrderStatus(value)


def _transition_status(
    db: Session,
    order_id: int,
    status: OrderStatus,
    actor: ActorSession,
    require_open: bool = False,
) -> StatusChangeResult:
    thread_repository.apply_order_change(
        db,
        order_id=order_id,
        values={"status": status.value},
        event_body=f"Status changed to {status.value}",
        event_type=ThreadEventType.STATUS,
        actor_user_id=actor.user_id,
        now=_now_utc(),
        require_open=require_open,
    )
    logger.info(
        "Order status changed to %s",
        status.value,
        extra=build_log_context(user_id=actor.user_id, order_id=order_id),
    )
    return StatusChangeResult(order_id=order_id, status=status.value)


def set_status(
    db: Session,
    order_id: int,
    next_status: object,
    actor: ActorSession,
) -> StatusChangeResult:
    """
    Admin-only status change. Any status may follow any other.

    Raises:
        Forbidden: Actor is not an admin
        ValidationError: Bad id or unknown status
        NotFound: Order does not exist
        StorageError: Transaction failed; nothing was written
    """
    authorization_service.ensure_admin(actor)
    order_id = validate_id(order_id, "order id")
    status = _parse_status(next_status)
    return _transition_status(db, order_id, status, actor)


def assign(
    db: Session,
    order_id: int,
    admin_id: object,
    actor: ActorSession,
) -> AssignmentResult:
    """
    Admin-only assignment of an order to an admin.

    Raises:
        Forbidden: Actor is not an admin
        ValidationError: Bad id, or admin_id is not an active admin
        NotFound: Order does not exist
        StorageError: Transaction failed; nothing was written
    """
    authorization_service.ensure_admin(actor)
    order_id = validate_id(order_id, "order id")
    admin_id = validate_id(admin_id, "admin id")
    if identity_service.get_active_admin(db, admin_id) is None:
        raise ValidationError("Assignee must be an admin.")

    thread_repository.apply_order_change(
        db,
        order_id=order_id,
        values={"assigned_admin_id": admin_id},
        event_body=f"Assigned to admin #{admin_id}",
        event_type=ThreadEventType.STATUS,
        actor_user_id=actor.user_id,
        now=_now_utc(),
    )
    logger.info(
        "Order assigned to admin %s",
        admin_id,
        extra=build_log_context(user_id=actor.user_id, order_id=order_id),
    )
    return AssignmentResult(order_id=order_id, assigned_admin_id=admin_id)


def cancel_order(db: Session, order_id: int, actor: ActorSession) -> StatusChangeResult:
    """
    Customer cancellation of their own order within the cancellation window.

    Raises:
        ValidationError: Bad id
        NotFound: Order does not exist
        Forbidden: Not the owner, or the window has passed
        OrderClosed: Order is already complete or cancelled
        StorageError: Transaction failed; nothing was written
    """
    order_id = validate_id(order_id, "order id")
    order = thread_repository.get_order(db, order_id)
    if not order:
        raise NotFound("Order not found.")

    decision = authorization_service.authorize(actor, order)
    if not decision.is_owner:
        raise Forbidden("Only the customer who placed the order can cancel it.")

    if not can_post(order.status):
        raise OrderClosed(order.status)

    created_at = thread_repository.as_utc(order.created_at)
    window = timedelta(hours=settings.CANCEL_WINDOW_HOURS)
    if created_at is None or _now_utc() - created_at > window:
        raise Forbidden(
            f"Orders can only be cancelled within {settings.CANCEL_WINDOW_HOURS} hours of submission."
        )

    # A concurrent close between the checks above and the write still wins
    return _transition_status(db, order_id, OrderStatus.CANCELLED, actor, require_open=True)
