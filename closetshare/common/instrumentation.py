"""Per-operation timing, tracing, log context and rejection accounting."""

from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry.trace import Span

from closetshare.common.errors import MarketplaceError
from closetshare.common.logging import logger, order_context, trace_id_ctx
from closetshare.common.metrics import order_operation_seconds, order_rejections_total
from closetshare.common.tracing import tracer


@contextmanager
def observed_operation(
    service_name: str,
    operation: str,
    order_id: int | None = None,
    actor_id: int | None = None,
) -> Iterator[Span]:
    """Wrap one coordinator call.

    A trace id already bound by the caller is kept; otherwise the span's trace
    id is bound for the duration of the call. Expected failures
    (`MarketplaceError`) are counted and logged at WARNING, then re-raised
    unchanged; the caller decides what to do with them.
    """

    with (
        tracer.start_as_current_span(f"{service_name}.{operation}") as span,
        order_context(order_id, actor_id),
        order_operation_seconds.labels(service=service_name, operation=operation).time(),
    ):
        span_context = span.get_span_context()
        trace_token = None
        if not trace_id_ctx.get() and span_context.is_valid:
            trace_token = trace_id_ctx.set(format(span_context.trace_id, "032x"))
        if order_id is not None:
            span.set_attribute("order.id", order_id)
        try:
            yield span
        except MarketplaceError as exc:
            order_rejections_total.labels(service=service_name, reason=exc.code).inc()
            logger.warning("operation_rejected operation=%s reason=%s detail=%s", operation, exc.code, exc)
            raise
        finally:
            if trace_token is not None:
                trace_id_ctx.reset(trace_token)
