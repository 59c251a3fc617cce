"""track the running refunded total per payment

Revision ID: 0003_refunded_total
Revises: 0002_booking_idempotency
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_refunded_total"
down_revision = "0002_booking_idempotency"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "payments",
        sa.Column("refunded_total_cents", sa.Integer(), server_default=sa.text("0"), nullable=False),
    )
    op.execute(
        "UPDATE payments SET refunded_total_cents = COALESCE(refund_amount_cents, 0) "
        "WHERE status IN ('REFUNDED', 'PARTIALLY_REFUNDED')"
    )


def downgrade() -> None:
    op.drop_column("payments", "refunded_total_cents")
