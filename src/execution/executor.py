# src/execution/executor.py - v1
"""Freeze-aware execution of (document, format) pairs.

One executor belongs to one build. Concurrent or repeated requests for
the same pair share a single task, so a pair is executed at most once
per build.

Flow per pair:
  1. Fingerprint the source (I/O errors propagate unchanged)
  2. Look the fingerprint up in the freeze store under the pair's policy
  3. Hit  -> reuse the frozen result
     Miss -> run the adapter, then freeze the result unless policy is never
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from bookpress.cache.base_freeze_store import BaseFreezeStore
from bookpress.cache.fingerprint import DEFAULT_EXCLUDED_OPTIONS, compute_fingerprint
from bookpress.cache.models import FreezePolicy
from bookpress.core.errors import ExecutionFailure
from bookpress.core.models import Document, ExecutedDocument, TargetFormat
from bookpress.execution.base_adapter import BaseExecutionAdapter
from bookpress.logging.context import set_execution_context

logger = logging.getLogger(__name__)


@dataclass
class ExecutionStats:
    """Counters for one build's executions."""

    cache_hits: int = 0
    stale_hits: int = 0
    cache_misses: int = 0
    corrupted: int = 0
    executed: int = 0
    store_failures: int = 0


class FreezeExecutor:
    """Execute documents through the freezer.

    Args:
        adapter: Execution engine invoked on a miss.
        freeze_store: Freeze store shared across builds.
        project_dir: Project root used to read sources.
        policy: Freeze policy applied when a call does not pass one.
        exclude_options: Format options left out of fingerprints.
    """

    def __init__(
        self,
        adapter: BaseExecutionAdapter,
        freeze_store: BaseFreezeStore,
        project_dir: Path,
        policy: FreezePolicy = "auto",
        exclude_options: Iterable[str] = DEFAULT_EXCLUDED_OPTIONS,
    ) -> None:
        self._adapter = adapter
        self._store = freeze_store
        self._project_dir = Path(project_dir)
        self._policy = policy
        self._exclude_options = frozenset(exclude_options)
        self._inflight: dict[tuple[str, str], asyncio.Task[ExecutedDocument]] = {}
        self.stats = ExecutionStats()

    @property
    def adapter(self) -> BaseExecutionAdapter:
        return self._adapter

    @property
    def policy(self) -> FreezePolicy:
        return self._policy

    async def execute(
        self,
        document: Document,
        target_format: TargetFormat,
        policy: FreezePolicy | None = None,
    ) -> ExecutedDocument:
        """Return the execution for a pair, starting it if needed.

        Cancelling one caller does not cancel the shared task; use
        ``cancel_all()`` for that.
        """
        key = (document.path, target_format.name)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(
                self._execute(document, target_format, policy or self._policy)
            )
            self._inflight[key] = task
        return await asyncio.shield(task)

    def cancel_all(self) -> int:
        """Cancel every unfinished execution. Returns how many were cancelled."""
        cancelled = 0
        for task in self._inflight.values():
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    async def _execute(
        self,
        document: Document,
        target_format: TargetFormat,
        policy: FreezePolicy,
    ) -> ExecutedDocument:
        set_execution_context(document.path, target_format.name)

        fingerprint = compute_fingerprint(
            document,
            target_format,
            self._project_dir,
            engine=self._adapter.engine_id,
            exclude_options=self._exclude_options,
            resources=self._adapter.resource_inputs(document),
        )

        if policy == "never":
            await self._store.invalidate(document.path, target_format.name)

        lookup = await self._store.lookup(fingerprint, policy)
        if lookup.corrupted:
            self.stats.corrupted += 1
        if lookup.hit and lookup.result is not None:
            self.stats.cache_hits += 1
            if lookup.stale:
                self.stats.stale_hits += 1
            logger.info("Using frozen execution for %s", document.path)
            return ExecutedDocument(
                document=document,
                format=target_format,
                result=lookup.result,
                fingerprint=fingerprint,
                from_cache=True,
            )

        self.stats.cache_misses += 1
        logger.info("Executing %s (%s)", document.path, target_format.name)
        try:
            result = await self._adapter.execute(document, target_format)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Execution failed for %s: %s", document.path, e)
            raise ExecutionFailure(document.path, target_format.name, e) from e
        self.stats.executed += 1

        if policy != "never":
            try:
                await self._store.store(fingerprint, result)
            except Exception as e:
                self.stats.store_failures += 1
                logger.warning(
                    "Could not freeze %s (%s): %s",
                    document.path, target_format.name, e,
                )

        return ExecutedDocument(
            document=document,
            format=target_format,
            result=result,
            fingerprint=fingerprint,
            from_cache=False,
        )
