# src/book/models.py - v1
"""Build-scoped state and the report a build returns."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from bookpress.core.models import Document, ExecutedDocument, RenderedFile

FormatState = Literal["collecting", "finalizing", "done", "failed"]
BuildStatus = Literal["done", "failed", "cancelled"]


class BuildStats(BaseModel):
    """Counters for one build."""

    documents: int = 0
    formats: int = 0
    executed: int = 0
    cache_hits: int = 0
    stale_hits: int = 0
    corrupted: int = 0
    store_failures: int = 0
    rendered: int = 0
    cleaned: int = 0
    duration_seconds: float = 0.0


class BuildReport(BaseModel):
    """Outcome of a build.

    Files rendered before a failure are reported alongside the error.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    build_id: str
    status: BuildStatus
    files: list[RenderedFile] = Field(default_factory=list)
    format_states: dict[str, FormatState] = Field(default_factory=dict)
    stats: BuildStats = Field(default_factory=BuildStats)
    errors: list[Exception] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == "done"

    @property
    def error(self) -> Exception | None:
        return self.errors[0] if self.errors else None

    def raise_for_error(self) -> None:
        """Re-raise the first captured error, if any."""
        if self.errors:
            raise self.errors[0]


@dataclass
class BuildContext:
    """Per-build accumulation of execution results.

    One instance per build; results are bucketed by format and keyed by
    document path, so arrival order carries no meaning.
    """

    build_id: str
    results: dict[str, dict[str, ExecutedDocument]] = field(default_factory=dict)
    states: dict[str, FormatState] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)

    def start(self, format_names: list[str]) -> None:
        for name in format_names:
            self.results.setdefault(name, {})
            self.states[name] = "collecting"

    async def record(
        self, format_name: str, document: Document, executed: ExecutedDocument
    ) -> None:
        async with self.lock:
            self.results.setdefault(format_name, {})[document.path] = executed

    def bucket(self, format_name: str) -> dict[str, ExecutedDocument]:
        return self.results.get(format_name, {})

    def accumulated(self) -> list[ExecutedDocument]:
        """Every recorded result across formats."""
        return [item for bucket in self.results.values() for item in bucket.values()]

    def transition(self, format_name: str, state: FormatState) -> None:
        self.states[format_name] = state

    def fail_in_progress(self) -> None:
        for name, state in self.states.items():
            if state in ("collecting", "finalizing"):
                self.states[name] = "failed"

    def discard(self) -> None:
        self.results.clear()

    def summary(self) -> dict[str, Any]:
        return {name: len(bucket) for name, bucket in self.results.items()}
