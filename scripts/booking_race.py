"""Concurrent approval generator for one item's calendar.

Creates N overlapping rental requests for a fresh item, approves them all at
once from a thread pool and prints how many won. A correct store reports
exactly one approval and N-1 date conflicts.
"""

import argparse
import statistics
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

from closetshare.common.config import settings
from closetshare.common.db import Base, make_engine, make_session_factory
from closetshare.common.errors import DateConflict, VersionConflict
from closetshare.common.logging import configure_logging
from closetshare.common.state_machine import OrderStatus
from closetshare.common.tracing import setup_tracing
from closetshare.services.orders.models import OrderType, WardrobeItem
from closetshare.services.orders.schemas import OrderCreateRequest
from closetshare.services.orders.service import OrderService


def run(total: int, concurrency: int, database_dsn: str) -> None:
    engine = make_engine(database_dsn)
    Base.metadata.create_all(engine)
    session_factory = make_session_factory(engine)
    service = OrderService(session_factory)

    with session_factory() as db:
        item = WardrobeItem(owner_id=1, title="race-test gown")
        db.add(item)
        db.commit()

    start = date.today() + timedelta(days=30)
    order_ids = [
        service.create_order(
            OrderCreateRequest(
                renter_id=100 + i,
                owner_id=1,
                item_id=item.id,
                type=OrderType.RENT,
                start_date=start,
                end_date=start + timedelta(days=3),
            ),
            requester_id=100 + i,
        ).id
        for i in range(total)
    ]

    def approve(order_id: int) -> tuple[str, float]:
        started = time.perf_counter()
        try:
            service.update_order_status(order_id, OrderStatus.APPROVED, actor_id=1)
            outcome = "approved"
        except DateConflict:
            outcome = "date_conflict"
        except VersionConflict:
            outcome = "version_conflict"
        return outcome, (time.perf_counter() - started) * 1000

    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        results = list(pool.map(approve, order_ids))

    outcomes = [outcome for outcome, _ in results]
    lats = [latency for _, latency in results]
    print(f"item_id={item.id}")
    print(f"total={total}")
    print(f"approved={outcomes.count('approved')}")
    print(f"date_conflicts={outcomes.count('date_conflict')}")
    print(f"version_conflicts={outcomes.count('version_conflict')}")
    print(f"avg_ms={statistics.mean(lats):.2f}")
    print(f"max_ms={max(lats):.2f}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--total", type=int, default=20)
    parser.add_argument("--concurrency", type=int, default=10)
    parser.add_argument("--database-dsn", default=settings.database_dsn)
    parser.add_argument("--trace", action="store_true", help="export spans to the configured OTLP endpoint")
    args = parser.parse_args()
    configure_logging()
    if args.trace:
        setup_tracing(settings.service_name)
    run(args.total, args.concurrency, args.database_dsn)
