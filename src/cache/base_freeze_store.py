# src/cache/base_freeze_store.py - v1
"""Abstract freeze store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookpress.cache.models import (
    Fingerprint,
    FreezeEntry,
    FreezeLookupResult,
    FreezePolicy,
)
from bookpress.core.models import ExecutionResult


class BaseFreezeStore(ABC):
    """Unified interface for freeze (incremental execution) storage."""

    @abstractmethod
    async def lookup(
        self, fingerprint: Fingerprint, policy: FreezePolicy
    ) -> FreezeLookupResult:
        """Return a reusable entry for the fingerprint's slot, if policy allows.

        ``never`` always misses. ``auto`` hits only on an exact fingerprint
        match. ``always`` hits on any complete stored entry for the same
        (document, format), even when the fingerprint has drifted: it is a
        reproducibility escape hatch for environments that cannot or
        should not re-execute.
        """

    @abstractmethod
    async def store(
        self, fingerprint: Fingerprint, result: ExecutionResult
    ) -> FreezeEntry:
        """Persist a result and its resources. Readers never see a partial entry."""

    @abstractmethod
    async def invalidate(self, document: str, format_name: str) -> bool:
        """Remove the entry for a slot. Returns True if one existed."""

    @abstractmethod
    async def list_entries(self) -> list[FreezeEntry]:
        """List all readable entries."""

    @abstractmethod
    async def clear(self, document: str | None = None) -> int:
        """Remove every entry, or every format of one document. Returns count."""
