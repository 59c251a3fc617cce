"""Anti-double-booking: overlap math, status filter, and how creation uses it."""

from datetime import date, datetime, timezone

import pytest

from closetshare.common.errors import DateConflict, InvalidDateRange
from closetshare.common.state_machine import OrderStatus
from closetshare.services.orders.booking import ConflictDetector, ranges_overlap
from closetshare.services.orders.models import Order, OrderType, WardrobeItem


JUN = 6


def day(n: int) -> date:
    return date(2026, JUN, n)


def test_ranges_overlap_is_inclusive():
    assert ranges_overlap(day(10), day(15), day(15), day(20))
    assert ranges_overlap(day(10), day(15), day(1), day(10))
    assert ranges_overlap(day(10), day(15), day(11), day(12))
    assert not ranges_overlap(day(10), day(15), day(16), day(20))
    assert not ranges_overlap(day(10), day(15), day(1), day(9))


def test_shared_boundary_day_conflicts(order_service, rent_request, advance):
    """An approved booking for Jun 10-15 blocks Jun 15-20 but not Jun 16-20."""

    booked = order_service.create_order(rent_request(day(10), day(15)), requester_id=21)
    advance(booked.id, OrderStatus.APPROVED)

    with pytest.raises(DateConflict) as exc_info:
        order_service.create_order(rent_request(day(15), day(20)), requester_id=22)
    assert exc_info.value.conflicting_order_id == booked.id
    assert exc_info.value.status_code == 409

    later = order_service.create_order(rent_request(day(16), day(20)), requester_id=22)
    assert later.status == OrderStatus.REQUESTED


def test_requested_order_does_not_occupy_calendar(order_service, rent_request):
    order_service.create_order(rent_request(day(10), day(15)), requester_id=21)

    second = order_service.create_order(rent_request(day(12), day(14)), requester_id=22)
    assert second.id is not None


def test_cancelled_order_does_not_occupy_calendar(order_service, rent_request, advance):
    first = order_service.create_order(rent_request(day(10), day(15)), requester_id=21)
    advance(first.id, OrderStatus.APPROVED, OrderStatus.CANCELLED)

    second = order_service.create_order(rent_request(day(10), day(15)), requester_id=22)
    assert second.id != first.id


@pytest.mark.parametrize(
    "path",
    [
        [OrderStatus.APPROVED, OrderStatus.PAID],
        [OrderStatus.APPROVED, OrderStatus.PAID, OrderStatus.DISPATCHED],
        [OrderStatus.APPROVED, OrderStatus.PAID, OrderStatus.DISPATCHED, OrderStatus.DELIVERED],
    ],
)
def test_committed_statuses_block(order_service, rent_request, advance, path):
    first = order_service.create_order(rent_request(day(10), day(15)), requester_id=21)
    advance(first.id, *path)

    with pytest.raises(DateConflict):
        order_service.create_order(rent_request(day(14), day(18)), requester_id=22)


def test_returned_order_frees_calendar(order_service, rent_request, advance):
    first = order_service.create_order(rent_request(day(10), day(15)), requester_id=21)
    advance(
        first.id,
        OrderStatus.APPROVED,
        OrderStatus.PAID,
        OrderStatus.DISPATCHED,
        OrderStatus.DELIVERED,
        OrderStatus.RETURN_REQUESTED,
        OrderStatus.RETURNED,
    )

    order_service.create_order(rent_request(day(10), day(15)), requester_id=22)


def test_detector_ignores_deleted_other_items_and_non_rentals(session_factory, item):
    with session_factory() as db:
        other_item = WardrobeItem(owner_id=7, title="Velvet blazer")
        db.add(other_item)
        db.flush()
        common = {"renter_id": 21, "owner_id": 7, "start_date": day(10), "end_date": day(15), "version": 1}
        db.add_all(
            [
                Order(
                    item_id=item.id,
                    type=OrderType.RENT,
                    status=OrderStatus.PAID,
                    deleted_at=datetime.now(timezone.utc),
                    **common,
                ),
                Order(item_id=other_item.id, type=OrderType.RENT, status=OrderStatus.PAID, **common),
                Order(item_id=item.id, type=OrderType.BUY, status=OrderStatus.PAID, **common),
            ]
        )
        db.commit()

        ConflictDetector().check(db, item.id, day(10), day(15))


def test_detector_can_exclude_the_order_under_review(session_factory, item):
    with session_factory() as db:
        own = Order(
            item_id=item.id,
            renter_id=21,
            owner_id=7,
            type=OrderType.RENT,
            status=OrderStatus.APPROVED,
            start_date=day(10),
            end_date=day(15),
            version=1,
        )
        db.add(own)
        db.commit()

        with pytest.raises(DateConflict):
            ConflictDetector().check(db, item.id, day(10), day(15))
        ConflictDetector().check(db, item.id, day(10), day(15), exclude_order_id=own.id)


def test_start_after_end_is_rejected(order_service, rent_request):
    with pytest.raises(InvalidDateRange):
        order_service.create_order(rent_request(day(20), day(10)), requester_id=21)
    assert order_service.list_orders(21) == []


def test_single_day_rental_is_valid(order_service, rent_request, advance):
    first = order_service.create_order(rent_request(day(10), day(10)), requester_id=21)
    advance(first.id, OrderStatus.APPROVED)

    with pytest.raises(DateConflict):
        order_service.create_order(rent_request(day(10), day(10)), requester_id=22)
