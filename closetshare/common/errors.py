"""Expected, caller-recoverable failures raised by the order core.

`status_code` is only a hint for whatever adapter maps these onto a transport:
409 for conflicts, 404 for missing rows, 400 for rejected input.
"""


class MarketplaceError(Exception):
    """Base class for every error the coordinators raise on purpose."""

    status_code = 400
    code = "marketplace_error"


class ItemNotFound(MarketplaceError):
    status_code = 404
    code = "item_not_found"

    def __init__(self, item_id: int) -> None:
        self.item_id = item_id
        super().__init__(f"item {item_id} not found or no longer available")


class OrderNotFound(MarketplaceError):
    status_code = 404
    code = "order_not_found"

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"order {order_id} not found")


class PaymentNotFound(MarketplaceError):
    status_code = 404
    code = "payment_not_found"

    def __init__(self, payment_id: int, order_id: int | None = None) -> None:
        self.payment_id = payment_id
        self.order_id = order_id
        if order_id is None:
            super().__init__(f"payment {payment_id} not found")
        else:
            super().__init__(f"payment {payment_id} not found for order {order_id}")


class DateConflict(MarketplaceError):
    """Requested rental window overlaps a booking that occupies the calendar."""

    status_code = 409
    code = "date_conflict"

    def __init__(self, conflicting_order_id: int) -> None:
        self.conflicting_order_id = conflicting_order_id
        super().__init__(
            f"item is already booked for the selected dates. Conflicting order ID: {conflicting_order_id}"
        )


class VersionConflict(MarketplaceError):
    """Caller acted on a stale copy of the order; refetch and retry."""

    status_code = 409
    code = "version_conflict"

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"order was modified by another process. Expected version {expected}, got {actual}. "
            "Please refresh and try again."
        )


class InvalidDateRange(MarketplaceError, ValueError):
    code = "invalid_date_range"

    def __init__(self, start_date, end_date) -> None:
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(f"invalid rental window: start={start_date} end={end_date}")


class InvalidTransition(MarketplaceError, ValueError):
    """Illegal state change; carries the allowed targets so callers can explain it."""

    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, allowed: list[str]) -> None:
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = allowed
        super().__init__(
            f"Invalid state transition: {from_status} -> {to_status}. "
            f"Allowed transitions from {from_status}: {', '.join(allowed) or 'none'}"
        )


class InvalidPaymentTransition(InvalidTransition):
    code = "invalid_payment_transition"


class InvalidRefundAmount(MarketplaceError, ValueError):
    code = "invalid_refund_amount"

    def __init__(self, refund_amount_cents: int, amount_cents: int) -> None:
        self.refund_amount_cents = refund_amount_cents
        self.amount_cents = amount_cents
        super().__init__(
            f"refund amount {refund_amount_cents} must be positive and at most the refundable balance {amount_cents}"
        )


class InvalidPaymentAmount(MarketplaceError, ValueError):
    code = "invalid_payment_amount"

    def __init__(self, amount_cents: int) -> None:
        self.amount_cents = amount_cents
        super().__init__(f"payment amount {amount_cents} must be positive")
