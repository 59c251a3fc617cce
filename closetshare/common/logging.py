"""Structured JSON logging with request and order context fields."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from closetshare.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
order_id_ctx: ContextVar[str] = ContextVar("order_id", default="")
actor_id_ctx: ContextVar[str] = ContextVar("actor_id", default="")


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.order_id = order_id_ctx.get()
        record.actor_id = actor_id_ctx.get()
        return True


def configure_logging() -> None:
    """Configure root logger once per process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(order_id)s %(actor_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)


@contextmanager
def order_context(order_id=None, actor_id=None) -> Iterator[None]:
    """Bind order/actor ids to log records emitted inside the block."""

    order_token = order_id_ctx.set("" if order_id is None else str(order_id))
    actor_token = actor_id_ctx.set("" if actor_id is None else str(actor_id))
    try:
        yield
    finally:
        order_id_ctx.reset(order_token)
        actor_id_ctx.reset(actor_token)


logger = logging.getLogger("closetshare")
