"""Order core database models.

This DB is the source of truth for order state, the payment tied to each
order, and the audit trail written alongside every mutation.
"""

from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, func, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from closetshare.common.db import Base
from closetshare.common.state_machine import OrderStatus, PaymentStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderType(str, Enum):
    RENT = "RENT"
    BUY = "BUY"
    SWAP = "SWAP"


def _enum_column(enum_cls):
    return SAEnum(enum_cls, native_enum=False, length=32, validate_strings=True)


JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class WardrobeItem(Base):
    """Catalog row the order core needs: ownership and soft-delete state."""

    __tablename__ = "wardrobe_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    title: Mapped[str] = mapped_column(String(200))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class Order(Base):
    """One rent/buy/swap transaction between a renter and an owner over one item."""

    __tablename__ = "orders"
    __table_args__ = (
        # Idempotency keys only need to be unique among live orders.
        Index(
            "uq_orders_idempotency_key_active",
            "idempotency_key",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_orders_item_booking", "item_id", "type", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    renter_id: Mapped[int] = mapped_column(Integer, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("wardrobe_items.id"), index=True)
    type: Mapped[OrderType] = mapped_column(_enum_column(OrderType))
    status: Mapped[OrderStatus] = mapped_column(_enum_column(OrderStatus), default=OrderStatus.REQUESTED)
    previous_status: Mapped[OrderStatus | None] = mapped_column(_enum_column(OrderStatus), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Written by the dispute subsystem; read-only here.
    has_active_dispute: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dispute_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dispute_locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )


class Payment(Base):
    """Monetary instrument tied to exactly one order."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), index=True)
    status: Mapped[PaymentStatus] = mapped_column(_enum_column(PaymentStatus), index=True)
    amount_cents: Mapped[int] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3))
    refund_amount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    refunded_total_cents: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    gateway_order_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    authorized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class AuditLog(Base):
    """Append-only record of every order and payment mutation."""

    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(64))
    entity_id: Mapped[int] = mapped_column(Integer)
    action: Mapped[str] = mapped_column(String(64))
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    old_value: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
    new_value: Mapped[dict | None] = mapped_column(JSONDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


def order_snapshot(order: Order) -> dict:
    """JSON-safe view of an order for audit payloads."""

    return {
        "id": order.id,
        "renter_id": order.renter_id,
        "owner_id": order.owner_id,
        "item_id": order.item_id,
        "type": order.type.value,
        "status": order.status.value,
        "version": order.version,
        "start_date": order.start_date.isoformat() if order.start_date else None,
        "end_date": order.end_date.isoformat() if order.end_date else None,
        "idempotency_key": order.idempotency_key,
    }
