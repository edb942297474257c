# src/render/markdown_renderer.py - v1
"""Markdown renderer: writes composed markdown into the output directory.

Per-document renders land next to their source path under ``_book/``;
merged books are written as one file named after the book. Supporting
resources are copied alongside so relative links keep working.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from bookpress.core.models import ExecutedDocument, RenderedFile
from bookpress.render.base_renderer import BaseRenderer, compose_markdown, relative_output
from bookpress.storage import layout

logger = logging.getLogger(__name__)


class MarkdownRenderer(BaseRenderer):
    """Write ``.md`` artifacts without further conversion."""

    def __init__(self, project_dir: Path, output_dir: str = layout.OUTPUT_DIR) -> None:
        self._project_dir = Path(project_dir)
        self._output_dir = output_dir

    async def render_one(self, executed: ExecutedDocument) -> RenderedFile:
        target = layout.document_output_path(
            self._project_dir,
            executed.document.path,
            executed.format.extension,
            self._output_dir,
        )
        self._write(executed, target)
        return RenderedFile(
            format=executed.format.name,
            file=relative_output(self._project_dir, target),
            sources=[executed.document.path],
        )

    async def render_merged(self, executed: ExecutedDocument) -> RenderedFile:
        output_file = executed.output_file or f"{executed.document.stem}.{executed.format.extension}"
        target = layout.output_root(self._project_dir, self._output_dir) / output_file
        self._write(executed, target)
        return RenderedFile(
            format=executed.format.name,
            file=relative_output(self._project_dir, target),
            sources=[doc.path for doc in executed.sources],
            merged=True,
        )

    def _write(self, executed: ExecutedDocument, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(compose_markdown(executed), encoding="utf-8")
        self._copy_supporting(executed)
        logger.info("Wrote %s", target)

    def _copy_supporting(self, executed: ExecutedDocument) -> None:
        out_root = layout.output_root(self._project_dir, self._output_dir)
        for path in executed.result.supporting:
            try:
                rel = layout.relative_to_project(self._project_dir, path)
            except ValueError:
                logger.debug("Not copying %s: outside the project", path)
                continue
            source = self._project_dir / rel
            if not source.exists():
                continue
            dest = out_root / rel
            dest.parent.mkdir(parents=True, exist_ok=True)
            if source.is_dir():
                shutil.copytree(source, dest, dirs_exist_ok=True)
            else:
                shutil.copy2(source, dest)
