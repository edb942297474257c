# src/execution/base_adapter.py - v1
"""Execution adapter interface.

An adapter turns a source document into rendered markdown plus side
artifacts for one target format. Two calls with identical fingerprint
inputs must be interchangeable: the freezer relies on it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from bookpress.core.models import Document, ExecutionResult, TargetFormat


class BaseExecutionAdapter(ABC):
    """Base class for document execution engines."""

    name: str = "base"
    version: str = "0"

    @property
    def engine_id(self) -> str:
        """Identity folded into fingerprints so switching engines invalidates."""
        return f"{self.name}@{self.version}"

    @abstractmethod
    async def execute(
        self, document: Document, target_format: TargetFormat
    ) -> ExecutionResult:
        """Execute a document for a format.

        Raises:
            Exception: Any failure; callers wrap it as ExecutionFailure.
        """

    def keep_intermediates(self, document: Document) -> bool:
        """Whether this engine wants the document's working files retained."""
        return False

    def resource_inputs(self, document: Document) -> list[Path]:
        """Project-relative files or directories read besides the source.

        Their content is folded into the fingerprint.
        """
        return []
