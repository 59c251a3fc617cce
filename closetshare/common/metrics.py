"""Prometheus metric definitions for the order and payment coordinators."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


order_created_total = Counter("order_created_total", "Orders created", ["service", "order_type"])
order_idempotent_replays_total = Counter(
    "order_idempotent_replays_total",
    "Create requests answered with an existing order for the same idempotency key",
    ["service"],
)
order_transitions_total = Counter(
    "order_transitions_total",
    "Committed order status transitions",
    ["service", "from_status", "to_status"],
)
order_rejections_total = Counter(
    "order_rejections_total",
    "Order operations rejected before commit",
    ["service", "reason"],
)
payment_outcomes_total = Counter(
    "payment_outcomes_total",
    "Committed payment-driven order outcomes",
    ["service", "outcome"],
)
order_operation_seconds = Histogram(
    "order_operation_seconds",
    "Wall time of one coordinator operation including its unit of work",
    ["service", "operation"],
)


def metrics_payload() -> tuple[bytes, str]:
    """Return all registered metrics in text exposition format plus its content type."""

    return generate_latest(), CONTENT_TYPE_LATEST
