# src/book/cleanup.py - v1
"""Cleanup coordinator: reclaim per-document intermediates.

Intermediates are the ``{stem}_files/`` working directories executions
leave next to their sources. The freezer is never touched here: a
failed build must not cost unrelated documents their frozen results.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable

from bookpress.core.models import Document, ExecutedDocument
from bookpress.execution.base_adapter import BaseExecutionAdapter
from bookpress.storage import layout

logger = logging.getLogger(__name__)


class CleanupCoordinator:
    """Remove intermediate working directories after a build.

    Args:
        project_dir: Project root.
        adapter: Execution engine, consulted for per-document retention.
        keep_intermediates: Global override that retains everything.
        freeze_dir: Freezer directory name, guarded against removal.
    """

    def __init__(
        self,
        project_dir: Path,
        adapter: BaseExecutionAdapter | None = None,
        keep_intermediates: bool = False,
        freeze_dir: str = layout.FREEZE_DIR,
    ) -> None:
        self._project_dir = Path(project_dir)
        self._adapter = adapter
        self._keep = keep_intermediates
        self._freeze_root = layout.freeze_root(self._project_dir, freeze_dir)

    @property
    def keep_intermediates(self) -> bool:
        return self._keep

    def intermediates_for(self, document: Document) -> Path | None:
        """Working directory of a document, if one exists on disk."""
        path = layout.intermediates_dir(self._project_dir, document.path)
        return path if path.is_dir() else None

    def after_success(
        self,
        executed: Iterable[ExecutedDocument],
        final_output: Path | None = None,
    ) -> list[Path]:
        """Remove intermediates once the final artifact exists.

        A directory the final output lives in (or that holds it) is kept.
        """
        output = self._absolute(final_output) if final_output is not None else None
        removed: list[Path] = []
        for document in self._documents(executed):
            path = self._removable(document)
            if path is None:
                continue
            if output is not None and (output == path or path in output.parents):
                logger.debug("Keeping %s: final output references it", path)
                continue
            self._remove(path)
            removed.append(path)
        return removed

    def after_failure(self, executed: Iterable[ExecutedDocument]) -> list[Path]:
        """Unwind intermediates of every result accumulated by a failed build."""
        removed: list[Path] = []
        for document in self._documents(executed):
            path = self._removable(document)
            if path is None:
                continue
            self._remove(path)
            removed.append(path)
        return removed

    def _removable(self, document: Document) -> Path | None:
        if self._keep:
            return None
        if self._adapter is not None and self._adapter.keep_intermediates(document):
            return None
        path = self.intermediates_for(document)
        if path is None:
            return None
        if path == self._freeze_root or self._freeze_root in path.parents:
            return None
        return path

    def _remove(self, path: Path) -> None:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed intermediates %s", path)

    def _absolute(self, path: Path) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self._project_dir / path

    @staticmethod
    def _documents(executed: Iterable[ExecutedDocument]) -> list[Document]:
        documents: list[Document] = []
        for item in executed:
            for document in item.sources or [item.document]:
                if document not in documents:
                    documents.append(document)
        return documents
