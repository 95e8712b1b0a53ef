"""Order thread storage: append-only events plus the order-row writes that go with them.

Rows in order_thread_events are never updated or deleted here. Comment
rate limiting is the unique index on (order_id, author_user_id, rate_bucket);
this module only translates its violation into RateLimited.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.structured_logging import build_log_context
from app.db.enums import CLOSED_ORDER_STATUS_VALUES, ThreadEventSource, ThreadEventType
from app.db.models import RATE_LIMIT_INDEX_NAME, Order, OrderThreadEvent
from app.services.order_errors import NotFound, OrderClosed, RateLimited, StorageError

logger = logging.getLogger(__name__)

_FK_VIOLATION_SQLSTATE = "23503"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def rate_bucket_for(created_at: datetime) -> int:
    """Epoch second of the event time; one authored comment per bucket."""
    return int(created_at.timestamp())


# =============================================================================
# IntegrityError classification
# =============================================================================

def _is_rate_limit_conflict(error: IntegrityError) -> bool:
    constraint_name = getattr(getattr(error.orig, "diag", None), "constraint_name", None)
    if constraint_name == RATE_LIMIT_INDEX_NAME:
        return True
    message = str(error.orig) if error.orig else str(error)
    # SQLite reports the columns, not the index name
    return RATE_LIMIT_INDEX_NAME in message or "rate_bucket" in message


def _is_foreign_key_violation(error: IntegrityError) -> bool:
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    if sqlstate == _FK_VIOLATION_SQLSTATE:
        return True
    message = str(error.orig) if error.orig else str(error)
    return "FOREIGN KEY constraint failed" in message


def _raise_not_open(db: Session, order_id: int) -> None:
    """Explain a guarded order update that matched no row: gone, or already closed."""
    status = db.execute(select(Order.status).where(Order.id == order_id)).scalar_one_or_none()
    if status is None:
        raise NotFound("Order not found.")
    raise OrderClosed(status)


# =============================================================================
# Reads
# =============================================================================

def get_order(db: Session, order_id: int) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).first()


def list_events(db: Session, order_id: int) -> list[OrderThreadEvent]:
    """All events for an order, oldest first, with authors loaded."""
    return (
        db.query(OrderThreadEvent)
        .options(joinedload(OrderThreadEvent.author))
        .filter(OrderThreadEvent.order_id == order_id)
        .order_by(OrderThreadEvent.created_at.asc(), OrderThreadEvent.id.asc())
        .all()
    )


def latest_event_timestamps_for(db: Session, order_ids: list[int]) -> dict[int, datetime]:
    """
    Newest event time per order, one query for any number of orders.

    Orders without events are absent from the result.
    """
    ids = sorted(set(order_ids))
    if not ids:
        return {}
    rows = db.execute(
        select(OrderThreadEvent.order_id, func.max(OrderThreadEvent.created_at))
        .where(OrderThreadEvent.order_id.in_(ids))
        .group_by(OrderThreadEvent.order_id)
    ).all()
    return {order_id: as_utc(latest) for order_id, latest in rows if latest is not None}


# =============================================================================
# Writes
# =============================================================================

def append_comment(
    db: Session,
    *,
    order_id: int,
    author_user_id: int,
    body: str,
    requires_customer_response: bool,
    now: datetime | None = None,
) -> OrderThreadEvent:
    """
    Bump the order's updated_at and insert an authored comment, then commit.

    The bump only matches an open order, so a close committed after the
    caller's status check still wins.

    Raises:
        NotFound: Order no longer exists
        OrderClosed: Order was closed after the caller loaded it
        RateLimited: Same author already commented on this order this second
        StorageError: Any other write failure (including FK violations)
    """
    created_at = now or _now_utc()
    event = OrderThreadEvent(
        order_id=order_id,
        author_user_id=author_user_id,
        body=body,
        source=ThreadEventSource.WEB.value,
        event_type=ThreadEventType.COMMENT.value,
        requires_customer_response=requires_customer_response,
        rate_bucket=rate_bucket_for(created_at),
        created_at=created_at,
    )
    log_extra = build_log_context(user_id=author_user_id, order_id=order_id)
    try:
        bumped = db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.status.notin_(sorted(CLOSED_ORDER_STATUS_VALUES)),
            )
            .values(updated_at=created_at)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount != 1:
            db.rollback()
            logger.info("Comment refused: order not open", extra=log_extra)
            _raise_not_open(db, order_id)
        db.add(event)
        db.flush()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _is_rate_limit_conflict(exc):
            logger.info("Comment rate limited", extra=log_extra)
            raise RateLimited() from exc
        if _is_foreign_key_violation(exc):
            logger.warning("Comment references a missing row", extra=log_extra)
            raise StorageError("Order or author no longer exists.") from exc
        logger.exception("Comment insert failed", extra=log_extra)
        raise StorageError("Could not save update.") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Comment insert failed", extra=log_extra)
        raise StorageError("Could not save update.") from exc

    db.refresh(event)
    return event


def apply_order_change(
    db: Session,
    *,
    order_id: int,
    values: dict,
    event_body: str,
    event_type: ThreadEventType,
    actor_user_id: int | None = None,
    now: datetime | None = None,
    require_open: bool = False,
) -> None:
    """
    Update the order row and append the matching system event atomically.

    With require_open the update only matches an order that is not complete
    or cancelled at write time.

    Raises:
        NotFound: No order row was updated
        OrderClosed: require_open was set and the order is already closed
        StorageError: Write failed; neither change is kept
    """
    changed_at = now or _now_utc()
    log_extra = build_log_context(user_id=actor_user_id, order_id=order_id)
    conditions = [Order.id == order_id]
    if require_open:
        conditions.append(Order.status.notin_(sorted(CLOSED_ORDER_STATUS_VALUES)))
    try:
        result = db.execute(
            update(Order)
            .where(*conditions)
            .values(**values, updated_at=changed_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            _raise_not_open(db, order_id)
        db.add(
            OrderThreadEvent(
                order_id=order_id,
                author_user_id=None,
                body=event_body,
                source=ThreadEventSource.SYSTEM.value,
                event_type=event_type.value,
                requires_customer_response=False,
                created_at=changed_at,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Order change failed", extra=log_extra)
        raise StorageError("Could not update order.") from exc
    # Identity map may hold a stale copy of the row
    db.expire_all()
