"""Races between concurrent workers sharing only the database."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

from sqlalchemy import func, select

from closetshare.common.errors import DateConflict, VersionConflict
from closetshare.common.state_machine import OrderStatus
from closetshare.services.orders.models import Order


def run_together(*calls):
    """Release all calls at once; return (results, errors) in call order."""

    barrier = threading.Barrier(len(calls))

    def wrapped(call):
        barrier.wait(timeout=10)
        return call()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(wrapped, call) for call in calls]
        outcomes = [(f.exception(timeout=60), f) for f in futures]
    results = [f.result() for exc, f in outcomes if exc is None]
    errors = [exc for exc, _ in outcomes if exc is not None]
    return results, errors


def test_overlapping_approvals_exactly_one_wins(order_service, rent_request, session_factory):
    """Both requests passed creation; only one may take the calendar days."""

    first = order_service.create_order(rent_request(date(2026, 6, 10), date(2026, 6, 15)), requester_id=21)
    second = order_service.create_order(rent_request(date(2026, 6, 10), date(2026, 6, 15)), requester_id=22)

    results, errors = run_together(
        lambda: order_service.update_order_status(first.id, OrderStatus.APPROVED, actor_id=7),
        lambda: order_service.update_order_status(second.id, OrderStatus.APPROVED, actor_id=7),
    )

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], DateConflict)
    assert errors[0].conflicting_order_id == results[0].id

    with session_factory() as db:
        approved = db.execute(
            select(func.count()).select_from(Order).where(Order.status == OrderStatus.APPROVED)
        ).scalar_one()
    assert approved == 1


def test_same_version_updates_exactly_one_wins(order_service, rent_request, session_factory):
    order = order_service.create_order(rent_request(date(2026, 6, 10), date(2026, 6, 15)), requester_id=21)

    results, errors = run_together(
        lambda: order_service.update_order_status(order.id, OrderStatus.APPROVED, actor_id=7, expected_version=0),
        lambda: order_service.update_order_status(order.id, OrderStatus.CANCELLED, actor_id=21, expected_version=0),
    )

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], VersionConflict)
    assert (errors[0].expected, errors[0].actual) == (0, 1)

    with session_factory() as db:
        stored = db.get(Order, order.id)
    assert stored.version == 1
    assert stored.status == results[0].status


def test_retried_creation_collapses_to_one_order(order_service, rent_request, session_factory):
    req = rent_request(date(2026, 6, 10), date(2026, 6, 15), idempotency_key="retry-4411")

    results, errors = run_together(
        lambda: order_service.create_order(req, requester_id=21),
        lambda: order_service.create_order(req, requester_id=21),
    )

    assert errors == []
    assert results[0].id == results[1].id
    with session_factory() as db:
        assert db.execute(select(func.count()).select_from(Order)).scalar_one() == 1


def test_creation_against_an_approval_in_flight(order_service, rent_request, session_factory):
    """A create and an approval for the same days serialize; the calendar never double-books."""

    pending = order_service.create_order(rent_request(date(2026, 6, 10), date(2026, 6, 15)), requester_id=21)
    results, errors = run_together(
        lambda: order_service.update_order_status(pending.id, OrderStatus.APPROVED, actor_id=7),
        lambda: order_service.create_order(rent_request(date(2026, 6, 12), date(2026, 6, 20)), requester_id=22),
    )

    # The approval always succeeds; the create either ran first (and is just REQUESTED) or hit the booking.
    approved = [r for r in results if r.id == pending.id]
    assert len(approved) == 1 and approved[0].status == OrderStatus.APPROVED
    assert all(isinstance(exc, DateConflict) for exc in errors)
    with session_factory() as db:
        occupying = db.execute(
            select(func.count()).select_from(Order).where(Order.status == OrderStatus.APPROVED)
        ).scalar_one()
    assert occupying == 1
