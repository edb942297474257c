# src/render/pandoc_renderer.py - v1
"""Pandoc renderer: converts composed markdown with the ``pandoc`` executable.

The composed markdown is written to a temporary file in the project root
so relative resource paths resolve, then removed after the run.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from bookpress.core.models import ExecutedDocument, RenderedFile
from bookpress.render.base_renderer import BaseRenderer, compose_markdown, relative_output
from bookpress.storage import layout

logger = logging.getLogger(__name__)

_STDERR_LINES = 20


class PandocError(RuntimeError):
    """Raised when pandoc is missing or exits non-zero."""


class PandocRenderer(BaseRenderer):
    """Render markdown to any pandoc writer (pdf, epub, docx, html, ...)."""

    def __init__(
        self,
        project_dir: Path,
        output_dir: str = layout.OUTPUT_DIR,
        pandoc: str = "pandoc",
        extra_args: list[str] | None = None,
    ) -> None:
        self._project_dir = Path(project_dir)
        self._output_dir = output_dir
        self._pandoc = pandoc
        self._extra_args = list(extra_args or [])

    async def render_one(self, executed: ExecutedDocument) -> RenderedFile:
        target = layout.document_output_path(
            self._project_dir,
            executed.document.path,
            executed.format.extension,
            self._output_dir,
        )
        await asyncio.to_thread(self._run, executed, target)
        return RenderedFile(
            format=executed.format.name,
            file=relative_output(self._project_dir, target),
            sources=[executed.document.path],
        )

    async def render_merged(self, executed: ExecutedDocument) -> RenderedFile:
        output_file = executed.output_file or f"{executed.document.stem}.{executed.format.extension}"
        target = layout.output_root(self._project_dir, self._output_dir) / output_file
        await asyncio.to_thread(self._run, executed, target)
        return RenderedFile(
            format=executed.format.name,
            file=relative_output(self._project_dir, target),
            sources=[doc.path for doc in executed.sources],
            merged=True,
        )

    def build_command(self, executed: ExecutedDocument, source: Path, target: Path) -> list[str]:
        """Assemble the pandoc command line."""
        fmt = executed.format
        cmd = [
            self._pandoc,
            str(source),
            "--from", "markdown",
            "--to", str(fmt.option("pandoc-to", fmt.name)),
            "--output", str(target),
            "--resource-path", str(self._project_dir),
        ]
        if fmt.option("toc", False) and fmt.metadata.get("toc", True):
            cmd.append("--toc")
        if executed.output_file is not None:
            cmd.append("--top-level-division=chapter")
        for lua_filter in executed.result.filters:
            cmd.extend(["--lua-filter", str(self._project_dir / lua_filter)])
        cmd.extend(str(arg) for arg in fmt.option("pandoc-args", []))
        cmd.extend(self._extra_args)
        return cmd

    def _run(self, executed: ExecutedDocument, target: Path) -> None:
        if not shutil.which(self._pandoc):
            raise PandocError(f"{self._pandoc} not found on PATH")

        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            suffix=".md",
            prefix=".bookpress-",
            dir=self._project_dir,
            delete=False,
            encoding="utf-8",
        ) as handle:
            handle.write(compose_markdown(executed))
            source = Path(handle.name)

        try:
            cmd = self.build_command(executed, source, target)
            logger.debug("Running %s", " ".join(cmd))
            result = subprocess.run(
                cmd, capture_output=True, text=True, cwd=self._project_dir
            )
        finally:
            source.unlink(missing_ok=True)

        if result.returncode != 0:
            stderr = "\n".join(result.stderr.strip().splitlines()[:_STDERR_LINES])
            raise PandocError(f"pandoc failed (exit {result.returncode}): {stderr}")
        logger.info("Wrote %s", target)
