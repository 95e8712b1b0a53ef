"""Posting comments to an order thread."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.enums import can_post
from app.db.models import Order, OrderThreadEvent
from app.schemas.auth import ActorSession
from app.services import authorization_service, thread_repository
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.notification_service import OrderUpdateNotice
from app.services.order_errors import NotFound, OrderClosed, ValidationError
from app.utils.normalization import sanitize_thread_body

logger = logging.getLogger(__name__)


def validate_id(value: object, label: str = "id") -> int:
    """Positive integer ids only; bools and numeric strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"Invalid {label}.")
    return value


def clean_comment_body(raw_body: str | None) -> str:
    body = sanitize_thread_body(raw_body)
    if not body:
        raise ValidationError("Update body cannot be empty.")
    if len(body) > settings.COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"Update body is too long (max {settings.COMMENT_MAX_LENGTH} characters)."
        )
    return body


def notification_target(order: Order, actor: ActorSession) -> int | None:
    """The other party: customer for admin posts, assigned admin for customer posts."""
    target = order.customer_id if actor.is_admin else order.assigned_admin_id
    if not target or target == actor.user_id:
        return None
    return target


def post_comment(
    db: Session,
    order_id: int,
    actor: ActorSession,
    raw_body: str | None,
    requires_response: bool = False,
    dispatcher: NotificationDispatcher | None = None,
) -> OrderThreadEvent:
    """
    Append an authored comment to an order thread.

    Sanitizes the body, checks access and open status, inserts under the
    per-second rate limit, then hands an email notice to the dispatcher.
    The notice is submitted after commit and can never fail the post.

    Raises:
        ValidationError: Bad id or empty/oversized body
        NotFound: Order does not exist
        Forbidden: Actor is neither owner nor admin
        OrderClosed: Order is complete or cancelled
        RateLimited: Actor already posted on this order this second
        StorageError: Insert failed for another reason
    """
    order_id = validate_id(order_id, "order id")
    validate_id(actor.user_id, "user id")
    body = clean_comment_body(raw_body)

    order = thread_repository.get_order(db, order_id)
    if not order:
        raise NotFound("Order not found.")

    decision = authorization_service.ensure_can_access(actor, order)

    if not can_post(order.status):
        raise OrderClosed(order.status)

    event = thread_repository.append_comment(
        db,
        order_id=order.id,
        author_user_id=actor.user_id,
        body=body,
        requires_customer_response=bool(requires_response) and decision.is_admin,
    )
    logger.info(
        "Order update posted",
        extra=build_log_context(user_id=actor.user_id, order_id=order.id),
    )

    target_user_id = notification_target(order, actor)
    if dispatcher is not None and target_user_id is not None:
        notice = OrderUpdateNotice(
            order_id=order.id,
            event_id=event.id,
            actor_user_id=actor.user_id,
            target_user_id=target_user_id,
            body=event.body,
        )
        try:
            dispatcher.submit(notice)
        except Exception:
            # Comment is already committed
            logger.exception(
                "Notification submit failed",
                extra=build_log_context(user_id=actor.user_id, order_id=order.id),
            )
    return event
