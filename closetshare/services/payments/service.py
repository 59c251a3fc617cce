"""Payment-driven order transitions.

Payment-provider callbacks land here. Each flow changes the payment row, the
order row (validated by the same order state machine as every other caller)
and the audit trail inside one unit of work, so PAID never exists without
CAPTURED and a payment-failure cancellation never exists without FAILED.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from closetshare.common.config import settings
from closetshare.common.db import unit_of_work
from closetshare.common.errors import InvalidPaymentAmount, InvalidRefundAmount, PaymentNotFound
from closetshare.common.instrumentation import observed_operation
from closetshare.common.logging import logger
from closetshare.common.metrics import order_transitions_total, payment_outcomes_total
from closetshare.common.state_machine import (
    OrderStatus,
    PaymentStatus,
    validate_payment_transition,
    validate_transition,
)
from closetshare.services.orders.audit import AuditSink, SqlAuditSink
from closetshare.services.orders.models import Order, Payment, utcnow
from closetshare.services.orders.schemas import PaymentOrderOutcome
from closetshare.services.orders.service import lock_live_order
from closetshare.services.orders.versioning import apply_status_change


class PaymentOrderService:
    """Sole writer of payment rows; keeps them consistent with their orders."""

    def __init__(self, session_factory, audit: AuditSink | None = None, service_name: str = "marketplace") -> None:
        self.session_factory = session_factory
        self.audit = audit or SqlAuditSink()
        self.service_name = service_name

    def _lock_payment(self, db: Session, payment_id: int, order_id: int | None = None) -> Payment:
        payment = db.execute(select(Payment).where(Payment.id == payment_id).with_for_update()).scalar_one_or_none()
        if payment is None or (order_id is not None and payment.order_id != order_id):
            raise PaymentNotFound(payment_id, order_id)
        return payment

    def _move_order(self, db: Session, order: Order, target: OrderStatus) -> OrderStatus:
        from_status = order.status
        apply_status_change(db, order, target)
        return from_status

    def _record_transition(self, from_status: OrderStatus, to_status: OrderStatus) -> None:
        order_transitions_total.labels(
            service=self.service_name,
            from_status=from_status.value,
            to_status=to_status.value,
        ).inc()

    def create_payment(
        self,
        order_id: int,
        amount_cents: int,
        currency: str | None = None,
        actor_id: int | None = None,
    ) -> Payment:
        """Open a PENDING payment for a live order."""

        with observed_operation(self.service_name, "create_payment", order_id, actor_id):
            if amount_cents <= 0:
                raise InvalidPaymentAmount(amount_cents)
            with unit_of_work(self.session_factory) as db:
                lock_live_order(db, order_id)
                payment = Payment(
                    order_id=order_id,
                    status=PaymentStatus.PENDING,
                    amount_cents=amount_cents,
                    refunded_total_cents=0,
                    currency=(currency or settings.default_currency).upper(),
                )
                db.add(payment)
                db.flush()
                self.audit.log(
                    db,
                    "PAYMENT",
                    payment.id,
                    "CREATED",
                    actor_id,
                    None,
                    {"order_id": order_id, "amount_cents": amount_cents, "currency": payment.currency},
                )
            logger.info("payment_created payment_id=%s order_id=%s amount_cents=%s", payment.id, order_id, amount_cents)
            return payment

    def authorize_payment(
        self,
        payment_id: int,
        gateway_order_id: str,
        gateway_payment_id: str,
        actor_id: int | None = None,
    ) -> Payment:
        """Record the gateway's authorization of a PENDING payment."""

        with observed_operation(self.service_name, "authorize_payment", actor_id=actor_id):
            with unit_of_work(self.session_factory) as db:
                payment = self._lock_payment(db, payment_id)
                validate_payment_transition(payment.status, PaymentStatus.AUTHORIZED)
                old_status = payment.status
                payment.status = PaymentStatus.AUTHORIZED
                payment.gateway_order_id = gateway_order_id
                payment.gateway_payment_id = gateway_payment_id
                payment.authorized_at = utcnow()
                self.audit.log(
                    db,
                    "PAYMENT",
                    payment.id,
                    "AUTHORIZED",
                    actor_id,
                    {"payment_status": old_status.value},
                    {"payment_status": PaymentStatus.AUTHORIZED.value, "gateway_order_id": gateway_order_id},
                )
            payment_outcomes_total.labels(service=self.service_name, outcome="authorized").inc()
            return payment

    def get_by_gateway_order_id(self, gateway_order_id: str) -> Payment | None:
        with self.session_factory() as db:
            return db.execute(
                select(Payment).where(Payment.gateway_order_id == gateway_order_id)
            ).scalar_one_or_none()

    def capture_payment_and_update_order(self, payment_id: int, order_id: int, actor_id: int) -> PaymentOrderOutcome:
        """Capture the payment and move the order to PAID together."""

        with observed_operation(self.service_name, "capture_payment", order_id, actor_id):
            with unit_of_work(self.session_factory) as db:
                order = lock_live_order(db, order_id)
                validate_transition(order.status, OrderStatus.PAID)
                payment = self._lock_payment(db, payment_id, order_id)
                validate_payment_transition(payment.status, PaymentStatus.CAPTURED)

                old_payment_status = payment.status
                payment.status = PaymentStatus.CAPTURED
                payment.captured_at = utcnow()
                old_order_status = self._move_order(db, order, OrderStatus.PAID)
                self.audit.log(
                    db,
                    "ORDER_PAYMENT",
                    order.id,
                    "PAYMENT_CAPTURED_ORDER_UPDATED",
                    actor_id,
                    {
                        "payment_id": payment.id,
                        "order_status": old_order_status.value,
                        "payment_status": old_payment_status.value,
                    },
                    {
                        "payment_id": payment.id,
                        "order_status": OrderStatus.PAID.value,
                        "payment_status": PaymentStatus.CAPTURED.value,
                        "version": order.version,
                    },
                )

            self._record_transition(old_order_status, OrderStatus.PAID)
            payment_outcomes_total.labels(service=self.service_name, outcome="captured").inc()
            logger.info("payment_captured payment_id=%s order_id=%s version=%s", payment.id, order.id, order.version)
            return PaymentOrderOutcome(payment=payment, order=order)

    def handle_payment_failure(
        self,
        payment_id: int,
        order_id: int,
        actor_id: int,
        reason: str | None = None,
    ) -> PaymentOrderOutcome:
        """Mark the payment FAILED and cancel the order together."""

        with observed_operation(self.service_name, "payment_failure", order_id, actor_id):
            with unit_of_work(self.session_factory) as db:
                order = lock_live_order(db, order_id)
                validate_transition(order.status, OrderStatus.CANCELLED)
                payment = self._lock_payment(db, payment_id, order_id)
                validate_payment_transition(payment.status, PaymentStatus.FAILED)

                old_payment_status = payment.status
                payment.status = PaymentStatus.FAILED
                payment.failed_at = utcnow()
                old_order_status = self._move_order(db, order, OrderStatus.CANCELLED)
                self.audit.log(
                    db,
                    "ORDER_PAYMENT",
                    order.id,
                    "PAYMENT_FAILED_ORDER_CANCELLED",
                    actor_id,
                    {
                        "payment_id": payment.id,
                        "order_status": old_order_status.value,
                        "payment_status": old_payment_status.value,
                    },
                    {
                        "payment_id": payment.id,
                        "order_status": OrderStatus.CANCELLED.value,
                        "payment_status": PaymentStatus.FAILED.value,
                        "reason": reason,
                    },
                )

            self._record_transition(old_order_status, OrderStatus.CANCELLED)
            payment_outcomes_total.labels(service=self.service_name, outcome="failed").inc()
            logger.info("payment_failed payment_id=%s order_id=%s reason=%s", payment.id, order.id, reason)
            return PaymentOrderOutcome(payment=payment, order=order)

    def refund_payment_and_update_order(
        self,
        payment_id: int,
        order_id: int,
        actor_id: int,
        refund_amount_cents: int | None = None,
    ) -> PaymentOrderOutcome:
        """Refund all or part of the unrefunded balance of a captured payment.

        `refund_amount_cents=None` refunds whatever is left. Refunds add up in
        `refunded_total_cents`, which never exceeds `amount_cents`. Only the
        refund that exhausts the balance cancels the order; a partial refund
        leaves it as is and the outcome carries `order=None`.
        """

        with observed_operation(self.service_name, "refund_payment", order_id, actor_id):
            with unit_of_work(self.session_factory) as db:
                order = lock_live_order(db, order_id)
                payment = self._lock_payment(db, payment_id, order_id)
                already_refunded = payment.refunded_total_cents or 0
                refundable = payment.amount_cents - already_refunded
                if refund_amount_cents is not None and not 0 < refund_amount_cents <= refundable:
                    raise InvalidRefundAmount(refund_amount_cents, refundable)

                refunded = refundable if refund_amount_cents is None else refund_amount_cents
                is_partial = already_refunded + refunded < payment.amount_cents
                target = PaymentStatus.PARTIALLY_REFUNDED if is_partial else PaymentStatus.REFUNDED
                validate_payment_transition(payment.status, target)
                if not is_partial:
                    validate_transition(order.status, OrderStatus.CANCELLED)

                old_payment_status = payment.status
                old_order_status = order.status
                payment.status = target
                payment.refund_amount_cents = refunded
                payment.refunded_total_cents = already_refunded + refunded
                if payment.refunded_at is None:
                    payment.refunded_at = utcnow()
                updated_order = None
                if not is_partial:
                    self._move_order(db, order, OrderStatus.CANCELLED)
                    updated_order = order

                self.audit.log(
                    db,
                    "ORDER_PAYMENT",
                    order.id,
                    "PARTIAL_REFUND" if is_partial else "FULL_REFUND",
                    actor_id,
                    {
                        "payment_id": payment.id,
                        "amount_cents": payment.amount_cents,
                        "payment_status": old_payment_status.value,
                        "order_status": old_order_status.value,
                    },
                    {
                        "refund_amount_cents": refunded,
                        "refunded_total_cents": payment.refunded_total_cents,
                        "payment_status": target.value,
                        "order_status": order.status.value,
                    },
                )

            if updated_order is not None:
                self._record_transition(old_order_status, OrderStatus.CANCELLED)
            payment_outcomes_total.labels(
                service=self.service_name,
                outcome="partially_refunded" if is_partial else "refunded",
            ).inc()
            logger.info(
                "payment_refunded payment_id=%s order_id=%s refund_amount_cents=%s partial=%s",
                payment.id,
                order.id,
                refunded,
                is_partial,
            )
            return PaymentOrderOutcome(payment=payment, order=updated_order)
