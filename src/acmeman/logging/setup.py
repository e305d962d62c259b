"""Structured logging configuration for ACME Manager.

Orchestration code logs with ``extra={"order_identity": ..., "domain":
..., "attempt": ...}``.  The :class:`OrchestrationContextFilter` makes
sure every record carries those context keys, so the text format can
reference them unconditionally, and :class:`StructuredFormatter` emits
one JSON object per record with every extra key included.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acmeman.config.settings import LoggingSettings

# Context keys and their placeholder value when the caller gave none.
_CONTEXT_DEFAULTS: dict[str, str | None] = {
    "order_identity": "-",
    "domain": "-",
    "request_id": "-",
    "method": None,
    "path": None,
}

# Keys present on every LogRecord; anything else came from ``extra``.
_RECORD_KEYS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__,
) | {"message", "asctime"}

_NOISY_LOGGERS = ("werkzeug", "gunicorn", "gunicorn.access", "gunicorn.error", "acme.client")


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Context keys still holding their placeholder are left out.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }
        for key, value in vars(record).items():
            if key in _RECORD_KEYS or key.startswith("_"):
                continue
            if key in _CONTEXT_DEFAULTS and value == _CONTEXT_DEFAULTS[key]:
                continue
            entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(order_identity)s] %(domain)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class OrchestrationContextFilter(logging.Filter):
    """Fill missing context keys; inside a Flask request, add request details."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for key, default in _CONTEXT_DEFAULTS.items():
            if not hasattr(record, key):
                setattr(record, key, default)

        from flask import g, has_request_context, request

        if has_request_context():
            record.request_id = g.get("request_id", record.request_id)  # type: ignore[attr-defined]
            record.method = request.method  # type: ignore[attr-defined]
            record.path = request.path  # type: ignore[attr-defined]
        return True


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Install a single stderr handler on the ``acmeman`` logger.

    Safe to call more than once; earlier handlers (including the CLI's
    bootstrap configuration) are replaced.
    """
    logger = logging.getLogger("acmeman")
    logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        StructuredFormatter() if settings.format == "json" else TextFormatter(),
    )
    handler.addFilter(OrchestrationContextFilter())
    logger.handlers[:] = [handler]

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logger
