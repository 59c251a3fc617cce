"""Optimistic concurrency for order status writes."""

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from closetshare.common.errors import VersionConflict
from closetshare.common.state_machine import OrderStatus
from closetshare.services.orders.models import Order, utcnow


def check_version(actual: int, expected: int | None) -> None:
    """Reject stale callers; `expected=None` opts out of the check."""

    if expected is not None and expected != actual:
        raise VersionConflict(expected, actual)


def apply_status_change(db: Session, order: Order, new_status: OrderStatus) -> None:
    """Write one status change conditioned on the version that was read.

    The guard value and the WHERE clause are the same number, so a writer that
    lost a race gets `VersionConflict` instead of silently overwriting.
    """

    from_status = order.status
    current_version = order.version
    now = utcnow()

    result = db.execute(
        update(Order)
        .where(Order.id == order.id, Order.version == current_version)
        .values(
            status=new_status,
            previous_status=from_status,
            version=current_version + 1,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        actual = db.execute(select(Order.version).where(Order.id == order.id)).scalar_one()
        raise VersionConflict(current_version, actual)

    set_committed_value(order, "status", new_status)
    set_committed_value(order, "previous_status", from_status)
    set_committed_value(order, "version", current_version + 1)
    set_committed_value(order, "updated_at", now)
