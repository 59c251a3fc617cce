"""Order and payment state machines enforced by the coordinators.

The tables are plain module-level data: no I/O, no hidden state, safe to use
from any number of threads.
"""

from enum import Enum

from closetshare.common.errors import InvalidPaymentTransition, InvalidTransition


class OrderStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    PAID = "PAID"
    DISPATCHED = "DISPATCHED"
    DELIVERED = "DELIVERED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURNED = "RETURNED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    CAPTURED = "CAPTURED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


ALLOWED_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.REQUESTED: (OrderStatus.APPROVED, OrderStatus.CANCELLED),
    OrderStatus.APPROVED: (OrderStatus.PAID, OrderStatus.CANCELLED),
    OrderStatus.PAID: (OrderStatus.DISPATCHED, OrderStatus.CANCELLED),
    OrderStatus.DISPATCHED: (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
    OrderStatus.DELIVERED: (OrderStatus.RETURN_REQUESTED, OrderStatus.COMPLETED),
    OrderStatus.RETURN_REQUESTED: (OrderStatus.RETURNED,),
    OrderStatus.RETURNED: (OrderStatus.COMPLETED,),
    OrderStatus.COMPLETED: (),
    OrderStatus.CANCELLED: (),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, tuple[PaymentStatus, ...]] = {
    PaymentStatus.PENDING: (PaymentStatus.AUTHORIZED, PaymentStatus.FAILED),
    PaymentStatus.AUTHORIZED: (PaymentStatus.CAPTURED, PaymentStatus.FAILED),
    PaymentStatus.CAPTURED: (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED),
    PaymentStatus.PARTIALLY_REFUNDED: (PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED),
    PaymentStatus.FAILED: (),
    PaymentStatus.REFUNDED: (),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)


def _as_order_status(value) -> OrderStatus | None:
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def valid_next_states(current) -> list[OrderStatus]:
    """Return allowed targets for `current`; empty for terminal or unknown states."""

    status = _as_order_status(current)
    if status is None:
        return []
    return list(ALLOWED_TRANSITIONS[status])


def can_transition(current, new) -> bool:
    return _as_order_status(new) in valid_next_states(current)


def validate_transition(current, new) -> None:
    """Raise `InvalidTransition` when the order state machine forbids `current -> new`."""

    if not can_transition(current, new):
        raise InvalidTransition(
            _label(current),
            _label(new),
            [status.value for status in valid_next_states(current)],
        )


def validate_payment_transition(current, new) -> None:
    """Raise `InvalidPaymentTransition` when the payment table forbids `current -> new`."""

    try:
        allowed = PAYMENT_TRANSITIONS[PaymentStatus(current)]
    except ValueError:
        allowed = ()
    if new not in allowed:
        raise InvalidPaymentTransition(_label(current), _label(new), [status.value for status in allowed])


def _label(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)
