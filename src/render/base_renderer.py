# src/render/base_renderer.py - v1
"""Renderer interface: finalized markdown + resources in, final artifact out."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

import yaml

from bookpress.core.models import ExecutedDocument, RenderedFile


class BaseRenderer(ABC):
    """Unified interface for output renderers."""

    @abstractmethod
    async def render_one(self, executed: ExecutedDocument) -> RenderedFile:
        """Render a single document (per-document formats)."""

    @abstractmethod
    async def render_merged(self, executed: ExecutedDocument) -> RenderedFile:
        """Render a merged book document (single-file formats)."""


def compose_markdown(executed: ExecutedDocument) -> str:
    """Build the final markdown handed to a renderer.

    Format metadata becomes a YAML front matter block and preserved
    blocks are swapped back in for their tokens.
    """
    body = executed.result.markdown.value
    for token, content in executed.result.preserve.items():
        body = body.replace(token, content)

    metadata = dict(executed.format.metadata)
    if not metadata:
        return body
    header = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True)
    return f"---\n{header}---\n\n{body.lstrip()}"


def relative_output(project_dir: Path, target: Path) -> Path:
    """Path of a rendered file relative to the project root when possible."""
    try:
        return target.relative_to(project_dir)
    except ValueError:
        return target
