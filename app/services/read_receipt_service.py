"""Read watermarks and unread counts for order threads.

An event is unread for a user when it is newer than the user's watermark on
that order (every event counts when there is no watermark). Events the user
wrote are never unread for them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.models import OrderReadReceipt, OrderThreadEvent
from app.schemas.auth import ActorSession
from app.services import authorization_service, thread_repository
from app.services.order_errors import NotFound, StorageError
from app.services.order_update_service import validate_id

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _insert_for(db: Session):
    """Dialect insert that supports ON CONFLICT (PostgreSQL in prod, SQLite in tests)."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


def _upsert_watermarks(db: Session, user_id: int, order_ids: list[int], now: datetime) -> None:
    insert = _insert_for(db)
    stmt = insert(OrderReadReceipt).values(
        [
            {
                "user_id": user_id,
                "order_id": order_id,
                "last_read_at": now,
                "created_at": now,
                "updated_at": now,
            }
            for order_id in order_ids
        ]
    )
    # Watermarks only move forward, even under concurrent marks
    stmt = stmt.on_conflict_do_update(
        index_elements=[OrderReadReceipt.user_id, OrderReadReceipt.order_id],
        set_={
            "last_read_at": case(
                (
                    OrderReadReceipt.last_read_at > stmt.excluded.last_read_at,
                    OrderReadReceipt.last_read_at,
                ),
                else_=stmt.excluded.last_read_at,
            ),
            "updated_at": stmt.excluded.updated_at,
        },
    )
    log_extra = build_log_context(user_id=user_id)
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Read receipt upsert failed", extra=log_extra)
        raise StorageError("Could not record read receipt.") from exc


def get_last_read(db: Session, user_id: int, order_id: int) -> datetime | None:
    value = db.execute(
        select(OrderReadReceipt.last_read_at).where(
            OrderReadReceipt.user_id == user_id,
            OrderReadReceipt.order_id == order_id,
        )
    ).scalar_one_or_none()
    return thread_repository.as_utc(value)


def get_last_read_for(db: Session, user_id: int, order_ids: list[int]) -> dict[int, datetime]:
    ids = sorted(set(order_ids))
    if not ids:
        return {}
    rows = db.execute(
        select(OrderReadReceipt.order_id, OrderReadReceipt.last_read_at).where(
            OrderReadReceipt.user_id == user_id,
            OrderReadReceipt.order_id.in_(ids),
        )
    ).all()
    return {order_id: thread_repository.as_utc(last_read) for order_id, last_read in rows}


def mark_read(db: Session, user_id: int, order_id: int) -> datetime:
    """Advance the user's watermark on one order to now; returns the stored watermark."""
    _upsert_watermarks(db, user_id, [order_id], _now_utc())
    return get_last_read(db, user_id, order_id)


def mark_order_read(db: Session, order_id: int, actor: ActorSession) -> datetime:
    """mark_read for an actor that must be the owner or an admin."""
    order_id = validate_id(order_id, "order id")
    order = thread_repository.get_order(db, order_id)
    if not order:
        raise NotFound("Order not found.")
    authorization_service.ensure_can_access(actor, order)
    return mark_read(db, actor.user_id, order.id)


def mark_all_read(db: Session, user_id: int, order_ids: list[int]) -> int:
    """Advance watermarks for many orders in one statement; returns how many."""
    ids = sorted(set(order_ids))
    if not ids:
        return 0
    _upsert_watermarks(db, user_id, ids, _now_utc())
    return len(ids)


# =============================================================================
# Unread aggregation
# =============================================================================

def _unread_predicate(user_id: int):
    """Unread filter shared by the count query and the EXISTS clause."""
    return and_(
        or_(
            OrderReadReceipt.last_read_at.is_(None),
            OrderThreadEvent.created_at > OrderReadReceipt.last_read_at,
        ),
        or_(
            OrderThreadEvent.author_user_id.is_(None),
            OrderThreadEvent.author_user_id != user_id,
        ),
    )


def _receipt_join(user_id: int):
    return and_(
        OrderReadReceipt.order_id == OrderThreadEvent.order_id,
        OrderReadReceipt.user_id == user_id,
    )


def unread_counts_for(db: Session, user_id: int, order_ids: list[int]) -> dict[int, int]:
    """
    Unread event count per order, one query for any number of orders.

    Orders with nothing unread are absent from the result.
    """
    ids = sorted(set(order_ids))
    if not ids:
        return {}
    rows = db.execute(
        select(OrderThreadEvent.order_id, func.count(OrderThreadEvent.id))
        .select_from(OrderThreadEvent)
        .outerjoin(OrderReadReceipt, _receipt_join(user_id))
        .where(OrderThreadEvent.order_id.in_(ids), _unread_predicate(user_id))
        .group_by(OrderThreadEvent.order_id)
    ).all()
    return {order_id: int(count) for order_id, count in rows}


def unread_count_for_order(db: Session, user_id: int, order_id: int) -> int:
    """
    Events on the order newer than the user's watermark, excluding their own comments.

    With no receipt yet, every event counts as unread except comments the
    user authored; system events count for everyone.
    """
    return unread_counts_for(db, user_id, [order_id]).get(order_id, 0)


def has_unread_clause(user_id: int, order_id_column):
    """Correlated EXISTS for filtering order queries down to unread ones."""
    return (
        select(OrderThreadEvent.id)
        .select_from(OrderThreadEvent)
        .outerjoin(OrderReadReceipt, _receipt_join(user_id))
        .where(OrderThreadEvent.order_id == order_id_column, _unread_predicate(user_id))
        .exists()
    )
