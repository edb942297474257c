# src/logging/logger.py - v1
"""Build log formatters and the ``bookpress`` logger setup.

Every record carries the current build context (build id, stage and the
document/format pair being executed) read from context variables.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from bookpress.logging.context import LogContext, get_context

ROOT_LOGGER = "bookpress"


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; context fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(get_context().as_dict())
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Terminal lines: ``time [LEVEL] logger [doc:format] (stage) - message``."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = [
            _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
        ]
        prefix.extend(_context_labels(get_context()))
        line = f"{' '.join(prefix)} - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _context_labels(ctx: LogContext) -> list[str]:
    labels = []
    if ctx.document:
        labels.append(f"[{ctx.document}:{ctx.format}]" if ctx.format else f"[{ctx.document}]")
    if ctx.stage:
        labels.append(f"({ctx.stage})")
    return labels


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 5,
) -> None:
    """Route ``bookpress.*`` loggers to stderr and, optionally, a rotating file.

    Calling it again replaces the handlers installed by the previous call.
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from bookpress.logging.handlers import create_rotating_handler

        handlers.append(
            create_rotating_handler(log_file, rotation=rotation, retention=retention)
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
