"""add booking lookup and live idempotency-key indexes

Revision ID: 0002_booking_idempotency
Revises: 0001_marketplace
Create Date: 2026-10-14
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_booking_idempotency"
down_revision = "0001_marketplace"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "ix_orders_item_booking",
        "orders",
        ["item_id", "type", "status"],
    )
    op.create_index(
        "uq_orders_idempotency_key_active",
        "orders",
        ["idempotency_key"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
        sqlite_where=sa.text("deleted_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_orders_idempotency_key_active", table_name="orders")
    op.drop_index("ix_orders_item_booking", table_name="orders")
