"""Baseline: users, orders, order thread events, read receipts

Revision ID: 0001_order_threads
Revises:
Create Date: 2026-10-19

Tables:
- users: identity directory (admin capability provisioned upstream)
- orders: intake orders with status + assignment
- order_thread_events: append-only thread log; rate_bucket backs the
  one-comment-per-second unique index
- order_read_receipts: per-user, per-order read watermark
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_order_threads"
down_revision = None
branch_labels = None
depends_on = None

RATE_LIMITED_ROWS = sa.text("event_type = 'comment' AND author_user_id IS NOT NULL")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "customer_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("project_type", sa.String(100), nullable=False),
        sa.Column("budget", sa.String(100), nullable=True),
        sa.Column("timeline", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column(
            "assigned_admin_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'in-progress', 'needs-feedback', 'complete', 'cancelled')",
            name="ck_orders_status_valid",
        ),
    )
    op.create_index("idx_orders_status", "orders", ["status"])
    op.create_index("idx_orders_assigned_admin", "orders", ["assigned_admin_id"])
    op.create_index("idx_orders_customer", "orders", ["customer_id"])
    op.create_index("idx_orders_updated_at", "orders", ["updated_at"])

    op.create_table(
        "order_thread_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "author_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("source", sa.String(20), nullable=False, server_default="web"),
        sa.Column("event_type", sa.String(20), nullable=False, server_default="comment"),
        sa.Column(
            "requires_customer_response",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("rate_bucket", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "source IN ('web', 'email', 'system')",
            name="ck_order_thread_events_source_valid",
        ),
        sa.CheckConstraint(
            "event_type IN ('comment', 'status', 'email')",
            name="ck_order_thread_events_event_type_valid",
        ),
    )
    op.create_index(
        "idx_thread_events_order_created",
        "order_thread_events",
        ["order_id", "created_at"],
    )
    op.create_index(
        "idx_thread_events_order_author",
        "order_thread_events",
        ["order_id", "author_user_id"],
    )
    op.create_index(
        "uq_order_thread_events_rate_bucket",
        "order_thread_events",
        ["order_id", "author_user_id", "rate_bucket"],
        unique=True,
        postgresql_where=RATE_LIMITED_ROWS,
        sqlite_where=RATE_LIMITED_ROWS,
    )

    op.create_table(
        "order_read_receipts",
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("last_read_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_read_receipts_order", "order_read_receipts", ["order_id"])


def downgrade() -> None:
    op.drop_index("idx_read_receipts_order", table_name="order_read_receipts")
    op.drop_table("order_read_receipts")

    op.drop_index("uq_order_thread_events_rate_bucket", table_name="order_thread_events")
    op.drop_index("idx_thread_events_order_author", table_name="order_thread_events")
    op.drop_index("idx_thread_events_order_created", table_name="order_thread_events")
    op.drop_table("order_thread_events")

    op.drop_index("idx_orders_updated_at", table_name="orders")
    op.drop_index("idx_orders_customer", table_name="orders")
    op.drop_index("idx_orders_assigned_admin", table_name="orders")
    op.drop_index("idx_orders_status", table_name="orders")
    op.drop_table("orders")

    op.drop_table("users")
