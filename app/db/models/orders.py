"""Order, order thread, and read-receipt ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base

if TYPE_CHECKING:
    from app.db.models import User


# Name is matched when translating IntegrityError -> RateLimited
RATE_LIMIT_INDEX_NAME = "uq_order_thread_events_rate_bucket"

_ORDER_STATUS_VALUES = "'pending', 'in-progress', 'needs-feedback', 'complete', 'cancelled'"
_RATE_LIMITED_ROWS = text("event_type = 'comment' AND author_user_id IS NOT NULL")


class Order(Base):
    """
    Customer order submitted through the intake form.

    Created by the intake flow; this service only changes status,
    assignment and updated_at.
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(f"status IN ({_ORDER_STATUS_VALUES})", name="status_valid"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_assigned_admin", "assigned_admin_id"),
        Index("idx_orders_customer", "customer_id"),
        Index("idx_orders_updated_at", "updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Intake fields
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_type: Mapped[str] = mapped_column(String(100), nullable=False)
    budget: Mapped[str | None] = mapped_column(String(100), nullable=True)
    timeline: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    assigned_admin_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    customer: Mapped["User | None"] = relationship(foreign_keys=[customer_id])
    assigned_admin: Mapped["User | None"] = relationship(foreign_keys=[assigned_admin_id])


class OrderThreadEvent(Base):
    """
    One immutable entry in an order's thread.

    Rows are only inserted. ``rate_bucket`` holds the epoch second of
    ``created_at`` for authored comments and backs the one-comment-per-second
    unique index; it stays NULL for system and email events.
    """

    __tablename__ = "order_thread_events"
    __table_args__ = (
        Index("idx_thread_events_order_created", "order_id", "created_at"),
        Index("idx_thread_events_order_author", "order_id", "author_user_id"),
        Index(
            RATE_LIMIT_INDEX_NAME,
            "order_id",
            "author_user_id",
            "rate_bucket",
            unique=True,
            postgresql_where=_RATE_LIMITED_ROWS,
            sqlite_where=_RATE_LIMITED_ROWS,
        ),
        CheckConstraint("source IN ('web', 'email', 'system')", name="source_valid"),
        CheckConstraint("event_type IN ('comment', 'status', 'email')", name="event_type_valid"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    # NULL = system-authored
    author_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(20), default="web", nullable=False)
    event_type: Mapped[str] = mapped_column(String(20), default="comment", nullable=False)
    requires_customer_response: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    rate_bucket: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    edited_at: Mapped[datetime | None] = mapped_column(nullable=True)

    author: Mapped["User | None"] = relationship()


class OrderReadReceipt(Base):
    """Per-user, per-order read watermark."""

    __tablename__ = "order_read_receipts"
    __table_args__ = (Index("idx_read_receipts_order", "order_id"),)

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True
    )
    last_read_at: Mapped[datetime] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
