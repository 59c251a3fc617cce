"""Unit tests for the order and payment state-machine tables."""

import pytest

from closetshare.common.errors import InvalidPaymentTransition, InvalidTransition
from closetshare.common.state_machine import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    OrderStatus,
    PaymentStatus,
    can_transition,
    valid_next_states,
    validate_payment_transition,
    validate_transition,
)


EXPECTED_ROWS = {
    OrderStatus.REQUESTED: [OrderStatus.APPROVED, OrderStatus.CANCELLED],
    OrderStatus.APPROVED: [OrderStatus.PAID, OrderStatus.CANCELLED],
    OrderStatus.PAID: [OrderStatus.DISPATCHED, OrderStatus.CANCELLED],
    OrderStatus.DISPATCHED: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
    OrderStatus.DELIVERED: [OrderStatus.RETURN_REQUESTED, OrderStatus.COMPLETED],
    OrderStatus.RETURN_REQUESTED: [OrderStatus.RETURNED],
    OrderStatus.RETURNED: [OrderStatus.COMPLETED],
    OrderStatus.COMPLETED: [],
    OrderStatus.CANCELLED: [],
}


@pytest.mark.parametrize("status", list(OrderStatus))
def test_valid_next_states_matches_table(status):
    """Every state exposes exactly its row of the transition table."""

    assert valid_next_states(status) == EXPECTED_ROWS[status]


@pytest.mark.parametrize("status", list(OrderStatus))
def test_no_self_loops(status):
    assert can_transition(status, status) is False


def test_every_status_has_a_row():
    assert set(ALLOWED_TRANSITIONS) == set(OrderStatus)
    assert TERMINAL_STATUSES == {OrderStatus.COMPLETED, OrderStatus.CANCELLED}


def test_valid_transition():
    """Sanity check: a legal transition should pass."""

    validate_transition(OrderStatus.REQUESTED, OrderStatus.APPROVED)
    validate_transition("DELIVERED", "RETURN_REQUESTED")


def test_invalid_transition_lists_allowed_targets():
    """Illegal transition must raise with the full allowed list for the source state."""

    with pytest.raises(InvalidTransition) as exc_info:
        validate_transition(OrderStatus.DELIVERED, OrderStatus.PAID)

    err = exc_info.value
    assert err.from_status == "DELIVERED"
    assert err.to_status == "PAID"
    assert err.allowed == ["RETURN_REQUESTED", "COMPLETED"]
    assert err.status_code == 400
    assert "RETURN_REQUESTED, COMPLETED" in str(err)


def test_invalid_transition_is_a_value_error():
    with pytest.raises(ValueError):
        validate_transition(OrderStatus.COMPLETED, OrderStatus.REQUESTED)


def test_unknown_states_have_no_exits():
    assert can_transition("LOST_IN_MAIL", OrderStatus.CANCELLED) is False
    assert can_transition(OrderStatus.REQUESTED, "TELEPORTED") is False
    assert valid_next_states("LOST_IN_MAIL") == []

    with pytest.raises(InvalidTransition) as exc_info:
        validate_transition("LOST_IN_MAIL", OrderStatus.CANCELLED)
    assert exc_info.value.allowed == []


def test_payment_table():
    validate_payment_transition(PaymentStatus.AUTHORIZED, PaymentStatus.CAPTURED)
    validate_payment_transition(PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED)

    with pytest.raises(InvalidPaymentTransition) as exc_info:
        validate_payment_transition(PaymentStatus.FAILED, PaymentStatus.CAPTURED)
    assert exc_info.value.allowed == []
    assert isinstance(exc_info.value, InvalidTransition)

    with pytest.raises(InvalidPaymentTransition):
        validate_payment_transition(PaymentStatus.PENDING, PaymentStatus.CAPTURED)
