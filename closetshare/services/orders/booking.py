"""Anti-double-booking checks for rental windows."""

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from closetshare.common.errors import DateConflict, InvalidDateRange
from closetshare.common.state_machine import OrderStatus
from closetshare.services.orders.models import Order, OrderType, WardrobeItem


# Commitments that hold the item on the calendar. REQUESTED is only an ask;
# CANCELLED, RETURNED and COMPLETED no longer hold future days.
OCCUPYING_STATUSES = frozenset(
    {OrderStatus.APPROVED, OrderStatus.PAID, OrderStatus.DISPATCHED, OrderStatus.DELIVERED}
)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Inclusive overlap: a shared boundary day counts."""

    return start_a <= end_b and end_a >= start_b


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    if start_date is None or end_date is None or start_date > end_date:
        raise InvalidDateRange(start_date, end_date)


class ConflictDetector:
    """Decides whether a rental window collides with an existing commitment.

    `check` must run inside the same unit of work as the write it guards. It
    locks the item row first, so two units checking the same item queue up
    behind each other instead of both passing and then both writing.
    """

    def check(
        self,
        db: Session,
        item_id: int,
        start_date: date,
        end_date: date,
        exclude_order_id: int | None = None,
    ) -> None:
        validate_date_range(start_date, end_date)
        db.execute(select(WardrobeItem.id).where(WardrobeItem.id == item_id).with_for_update()).first()

        query = (
            select(Order.id)
            .where(
                Order.item_id == item_id,
                Order.type == OrderType.RENT,
                Order.deleted_at.is_(None),
                Order.status.in_(sorted(OCCUPYING_STATUSES)),
                Order.start_date <= end_date,
                Order.end_date >= start_date,
            )
            .order_by(Order.id)
            .limit(1)
        )
        if exclude_order_id is not None:
            query = query.where(Order.id != exclude_order_id)

        conflicting_id = db.execute(query).scalar_one_or_none()
        if conflicting_id is not None:
            raise DateConflict(conflicting_id)
