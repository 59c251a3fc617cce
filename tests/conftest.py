"""Shared fixtures: a throwaway SQLite file database per test plus seeded items."""

from datetime import date

import pytest

from closetshare.common.db import Base, make_engine, make_session_factory
from closetshare.services.orders.models import OrderType, WardrobeItem
from closetshare.services.orders.schemas import OrderCreateRequest
from closetshare.services.orders.service import OrderService
from closetshare.services.payments.service import PaymentOrderService


OWNER_ID = 7
RENTER_ID = 21


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'marketplace.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def item(session_factory) -> WardrobeItem:
    with session_factory() as db:
        item = WardrobeItem(owner_id=OWNER_ID, title="Silk lehenga")
        db.add(item)
        db.commit()
        return item


@pytest.fixture
def order_service(session_factory) -> OrderService:
    return OrderService(session_factory)


@pytest.fixture
def payment_service(session_factory) -> PaymentOrderService:
    return PaymentOrderService(session_factory)


@pytest.fixture
def rent_request(item):
    """Factory for RENT requests against the seeded item."""

    def build(start: date, end: date, **overrides) -> OrderCreateRequest:
        fields = {
            "renter_id": RENTER_ID,
            "owner_id": OWNER_ID,
            "item_id": item.id,
            "type": OrderType.RENT,
            "start_date": start,
            "end_date": end,
        }
        fields.update(overrides)
        return OrderCreateRequest(**fields)

    return build


@pytest.fixture
def advance(order_service):
    """Walk an order through the given statuses and return the final row."""

    def walk(order_id: int, *statuses):
        order = None
        for status in statuses:
            order = order_service.update_order_status(order_id, status, actor_id=OWNER_ID)
        return order

    return walk
