"""Order lifecycle coordination.

Every order creation and status change enters here. Each call re-reads the
order, runs the version guard, the state machine and (for rentals) the
calendar check, then writes data, version and audit row in one unit of work.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from closetshare.common.db import unit_of_work
from closetshare.common.errors import ItemNotFound, OrderNotFound
from closetshare.common.instrumentation import observed_operation
from closetshare.common.logging import logger
from closetshare.common.metrics import (
    order_created_total,
    order_idempotent_replays_total,
    order_transitions_total,
)
from closetshare.common.state_machine import OrderStatus, validate_transition
from closetshare.services.orders.audit import (
    AuditSink,
    ItemCatalog,
    SqlAuditSink,
    SqlItemCatalog,
    load_audit_trail,
)
from closetshare.services.orders.booking import OCCUPYING_STATUSES, ConflictDetector
from closetshare.services.orders.models import AuditLog, Order, OrderType, order_snapshot
from closetshare.services.orders.schemas import OrderCreateRequest
from closetshare.services.orders.versioning import apply_status_change, check_version


ORDER_ROLES = ("renter", "owner")


def lock_live_order(db: Session, order_id: int) -> Order:
    """Load a non-deleted order with a row lock held until the unit ends."""

    order = db.execute(
        select(Order).where(Order.id == order_id, Order.deleted_at.is_(None)).with_for_update()
    ).scalar_one_or_none()
    if order is None:
        raise OrderNotFound(order_id)
    return order


class OrderService:
    """Single entry point for order creation and status transitions."""

    def __init__(
        self,
        session_factory,
        catalog: ItemCatalog | None = None,
        audit: AuditSink | None = None,
        conflicts: ConflictDetector | None = None,
        service_name: str = "marketplace",
    ) -> None:
        self.session_factory = session_factory
        self.catalog = catalog or SqlItemCatalog()
        self.audit = audit or SqlAuditSink()
        self.conflicts = conflicts or ConflictDetector()
        self.service_name = service_name

    def _live_order_by_key(self, db: Session, idempotency_key: str) -> Order | None:
        return db.execute(
            select(Order).where(Order.idempotency_key == idempotency_key, Order.deleted_at.is_(None))
        ).scalar_one_or_none()

    def create_order(self, req: OrderCreateRequest, requester_id: int) -> Order:
        """Create one REQUESTED order, or return the live order already holding the idempotency key."""

        with observed_operation(self.service_name, "create_order", actor_id=requester_id):
            try:
                order, created = self._create_once(req, requester_id)
            except IntegrityError:
                # Lost the unique-index race to a concurrent retry of the same request.
                if req.idempotency_key is None:
                    raise
                with self.session_factory() as db:
                    order = self._live_order_by_key(db, req.idempotency_key)
                if order is None:
                    raise
                created = False

            if created:
                order_created_total.labels(service=self.service_name, order_type=order.type.value).inc()
                logger.info(
                    "order_created order_id=%s item_id=%s type=%s requester_id=%s",
                    order.id,
                    order.item_id,
                    order.type.value,
                    requester_id,
                )
            else:
                order_idempotent_replays_total.labels(service=self.service_name).inc()
                logger.info(
                    "order_create_replayed order_id=%s idempotency_key=%s", order.id, req.idempotency_key
                )
            return order

    def _create_once(self, req: OrderCreateRequest, requester_id: int) -> tuple[Order, bool]:
        with unit_of_work(self.session_factory) as db:
            if req.idempotency_key is not None:
                existing = self._live_order_by_key(db, req.idempotency_key)
                if existing is not None:
                    return existing, False

            if self.catalog.find_active_item(db, req.item_id) is None:
                raise ItemNotFound(req.item_id)

            start_date = end_date = None
            if req.type == OrderType.RENT and (req.start_date is not None or req.end_date is not None):
                self.conflicts.check(db, req.item_id, req.start_date, req.end_date)
                start_date, end_date = req.start_date, req.end_date

            order = Order(
                renter_id=req.renter_id,
                owner_id=req.owner_id,
                item_id=req.item_id,
                type=req.type,
                status=OrderStatus.REQUESTED,
                version=0,
                start_date=start_date,
                end_date=end_date,
                idempotency_key=req.idempotency_key,
                has_active_dispute=False,
                dispute_count=0,
            )
            db.add(order)
            db.flush()
            self.audit.log(db, "ORDER", order.id, "CREATED", requester_id, None, order_snapshot(order))
            return order, True

    def update_order_status(
        self,
        order_id: int,
        new_status: OrderStatus | str,
        actor_id: int,
        expected_version: int | None = None,
    ) -> Order:
        """Move an order to `new_status`.

        The version check runs before the state-machine check: a stale caller
        learns to refetch rather than getting a transition error computed
        against data it no longer holds.
        """

        with observed_operation(self.service_name, "update_order_status", order_id, actor_id):
            with unit_of_work(self.session_factory) as db:
                order = lock_live_order(db, order_id)
                check_version(order.version, expected_version)
                validate_transition(order.status, new_status)
                target = OrderStatus(new_status)

                # An order starts holding calendar days once approved; re-check its window then.
                if (
                    order.type == OrderType.RENT
                    and order.start_date is not None
                    and order.end_date is not None
                    and target in OCCUPYING_STATUSES
                    and order.status not in OCCUPYING_STATUSES
                ):
                    self.conflicts.check(
                        db, order.item_id, order.start_date, order.end_date, exclude_order_id=order.id
                    )

                from_status = order.status
                from_version = order.version
                apply_status_change(db, order, target)
                self.audit.log(
                    db,
                    "ORDER",
                    order.id,
                    "STATUS_CHANGE",
                    actor_id,
                    {"status": from_status.value, "version": from_version},
                    {"status": target.value, "version": order.version},
                )

            order_transitions_total.labels(
                service=self.service_name,
                from_status=from_status.value,
                to_status=target.value,
            ).inc()
            logger.info(
                "order_status_changed order_id=%s from=%s to=%s version=%s",
                order.id,
                from_status.value,
                target.value,
                order.version,
            )
            return order

    def get_order(self, order_id: int) -> Order:
        with self.session_factory() as db:
            order = db.execute(
                select(Order).where(Order.id == order_id, Order.deleted_at.is_(None))
            ).scalar_one_or_none()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def list_orders(self, user_id: int, role: str = "renter") -> list[Order]:
        """Live orders where `user_id` is the renter (default) or the owner, newest first."""

        if role not in ORDER_ROLES:
            raise ValueError(f"unknown order role: {role}")
        party = Order.owner_id if role == "owner" else Order.renter_id
        with self.session_factory() as db:
            return list(
                db.execute(
                    select(Order)
                    .where(party == user_id, Order.deleted_at.is_(None))
                    .order_by(Order.id.desc())
                ).scalars()
            )

    def audit_trail(self, entity_type: str, entity_id: int) -> list[AuditLog]:
        with self.session_factory() as db:
            return load_audit_trail(db, entity_type, entity_id)
