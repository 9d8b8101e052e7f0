"""Structured logging configuration for pgcrate.

Provides JSON and text formatters, a cluster-context filter that stamps
the instance and cluster being worked on onto every log record, and a
one-call ``configure_logging`` function driven by config settings.

Context is taken from the ``extra`` of the logging call when present,
otherwise from the innermost :func:`cluster_context` block::

    with cluster_context(instance="default", cluster="main"):
        crate.hba_conf("main")
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from pgcrate.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # context attributes, handled explicitly
        "instance",
        "cluster",
    }
)

_instance_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "pgcrate_instance", default=None
)
_cluster_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "pgcrate_cluster", default=None
)

# Record attribute -> context variable supplying its default.
_CONTEXT_VARS: dict[str, contextvars.ContextVar[str | None]] = {
    "instance": _instance_var,
    "cluster": _cluster_var,
}


@contextlib.contextmanager
def cluster_context(*, instance: str | None = None, cluster: str | None = None) -> Iterator[None]:
    """Attribute log records emitted inside the block to *instance*/*cluster*."""
    instance_token = _instance_var.set(instance)
    cluster_token = _cluster_var.set(cluster)
    try:
        yield
    finally:
        _cluster_var.reset(cluster_token)
        _instance_var.reset(instance_token)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        for attr in _CONTEXT_VARS:
            value = getattr(record, attr, None)
            if value is not None:
                data[attr] = value

        # Caller-supplied extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(instance)s/%(cluster)s] %(name)s: %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class ClusterContextFilter(logging.Filter):
    """Guarantee ``instance`` and ``cluster`` attributes on every record.

    Values passed through ``extra`` win; otherwise the active
    :func:`cluster_context` is used, falling back to ``"-"``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for attr, var in _CONTEXT_VARS.items():
            if getattr(record, attr, None) is None:
                setattr(record, attr, var.get() or "-")
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``pgcrate`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output on
    stderr, so stdout stays free for rendered files and plans.

    Returns the root ``pgcrate`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("pgcrate")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ClusterContextFilter())
    root.addHandler(console)

    # psycopg logs connection attempts at INFO
    logging.getLogger("psycopg").setLevel(logging.WARNING)

    return root
