# src/logging/context.py - v1
"""Contextual logging support: attach build_id, document, format to log records.

Values live in context variables, so each asyncio task executing a
(document, format) pair sees its own values.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_build_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "build_id", default=None
)
_document: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "document", default=None
)
_format: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "format", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    build_id: str | None = None
    document: str | None = None
    format: str | None = None
    stage: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        build_id=_build_id.get(),
        document=_document.get(),
        format=_format.get(),
        stage=_stage.get(),
    )


def set_build_context(build_id: str, stage: str | None = None) -> None:
    """Set build-level context (called once per build invocation)."""
    _build_id.set(build_id)
    _stage.set(stage)


def set_stage(stage: str | None) -> None:
    _stage.set(stage)


def set_execution_context(document: str | None, format_name: str | None) -> None:
    """Set pair-level context (called inside each execution task)."""
    _document.set(document)
    _format.set(format_name)


def clear_context() -> None:
    """Reset all context variables."""
    _build_id.set(None)
    _document.set(None)
    _format.set(None)
    _stage.set(None)
