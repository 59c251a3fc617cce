"""Request/result shapes accepted and returned by the coordinators."""

from datetime import date
from typing import NamedTuple

from pydantic import BaseModel, Field

from closetshare.services.orders.models import Order, OrderType, Payment


class OrderCreateRequest(BaseModel):
    """Snapshot of what the renter asked for when the order was requested."""

    renter_id: int = Field(gt=0)
    owner_id: int = Field(gt=0)
    item_id: int = Field(gt=0)
    type: OrderType
    start_date: date | None = None
    end_date: date | None = None
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=255)


class PaymentOrderOutcome(NamedTuple):
    """Payment and order as committed by one payment-driven unit of work.

    `order` is None when the unit left the order untouched (partial refund).
    """

    payment: Payment
    order: Order | None
