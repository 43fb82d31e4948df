"""
Log setup and per-pass trace correlation.
"""
import logging
import uuid
from typing import Any, MutableMapping, Tuple

from engula_operator.config import settings

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def configure_logging(level: str = settings.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_trace_id() -> str:
    """A fresh trace identifier for one reconciliation pass."""
    return uuid.uuid4().hex


RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class TraceLogger(logging.LoggerAdapter):
    """
    Prefixes every message with the pass's trace id and keeps the context in `extra`.

    Context keys that collide with LogRecord attributes (``name``, ``msg``...)
    are stored with a ``resource_`` prefix, so ``{"name": "j1"}`` lands on the
    record as ``resource_name``.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        trace_id = self.extra.get("trace_id", "-")
        extra = kwargs.setdefault("extra", {})
        for key, value in self.extra.items():
            extra.setdefault(f"resource_{key}" if key in RESERVED_ATTRS else key, value)
        return f"[{trace_id}] {msg}", kwargs
