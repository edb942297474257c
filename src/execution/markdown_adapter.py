# src/execution/markdown_adapter.py - v1
"""Pass-through adapter for plain markdown sources (.md, .qmd without code).

No code runs. The adapter strips YAML front matter, protects raw HTML
blocks behind preserve tokens, reports an existing ``{stem}_files/``
directory as supporting resources and declares front-matter filters.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Any

import yaml

from bookpress.core.mapped_text import MappedText
from bookpress.core.models import Dependency, Document, ExecutionResult, TargetFormat
from bookpress.execution.base_adapter import BaseExecutionAdapter
from bookpress.storage import layout

logger = logging.getLogger(__name__)

_FRONT_MATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_RAW_HTML_BLOCK = re.compile(r"^```\{=html\}[ \t]*\n.*?\n```[ \t]*$", re.DOTALL | re.MULTILINE)

PRESERVE_PREFIX = "bookpress-preserve-"


class MarkdownAdapter(BaseExecutionAdapter):
    """Execute markdown by reading it.

    ``{stem}_files/`` directories are authored alongside the sources, so
    they are retained after a build unless ``keep_files`` is False, and
    their content is part of the document's fingerprint.
    """

    name = "markdown"
    version = "1"

    def __init__(self, project_dir: Path, keep_files: bool = True) -> None:
        self._project_dir = Path(project_dir)
        self._keep_files = keep_files

    async def execute(
        self, document: Document, target_format: TargetFormat
    ) -> ExecutionResult:
        text = document.input_path(self._project_dir).read_text(encoding="utf-8")
        front_matter, body_offset = split_front_matter(text)

        markdown, preserve = _protect_raw_blocks(document, text, body_offset)

        supporting: list[str] = []
        files_dir = layout.intermediates_dir(self._project_dir, document.path)
        if files_dir.is_dir():
            supporting.append(layout.relative_to_project(self._project_dir, files_dir))

        filters = [str(f) for f in _as_list(front_matter.get("filters"))]
        dependencies = [
            Dependency(**dep) if isinstance(dep, dict) else Dependency(name=str(dep))
            for dep in _as_list(front_matter.get("dependencies"))
        ]

        logger.debug(
            "Read %s: %d chars, %d preserved block(s)",
            document.path, len(markdown), len(preserve),
        )
        return ExecutionResult(
            markdown=markdown,
            supporting=supporting,
            filters=filters,
            dependencies=dependencies,
            preserve=preserve,
        )

    def keep_intermediates(self, document: Document) -> bool:
        return self._keep_files

    def resource_inputs(self, document: Document) -> list[Path]:
        files_dir = layout.intermediates_dir(self._project_dir, document.path)
        if not files_dir.is_dir():
            return []
        return [files_dir.relative_to(self._project_dir)]


def split_front_matter(text: str) -> tuple[dict[str, Any], int]:
    """Return (front matter mapping, offset of the body).

    Malformed YAML is reported as a ``yaml.YAMLError``.
    """
    match = _FRONT_MATTER.match(text)
    if not match:
        return {}, 0
    data = yaml.safe_load(match.group(1)) or {}
    if not isinstance(data, dict):
        data = {}
    return data, match.end()


def _protect_raw_blocks(
    document: Document, text: str, start: int
) -> tuple[MappedText, dict[str, str]]:
    """Swap raw HTML blocks for tokens, keeping source mapping elsewhere."""
    markdown = MappedText()
    preserve: dict[str, str] = {}
    pos = start
    for index, match in enumerate(_RAW_HTML_BLOCK.finditer(text, start)):
        markdown = markdown.concat(
            MappedText.from_source(text[pos : match.start()], document.path, pos)
        )
        token = _preserve_token(document, index, match.group(0))
        preserve[token] = match.group(0)
        markdown = markdown.concat(token)
        pos = match.end()
    return markdown.concat(MappedText.from_source(text[pos:], document.path, pos)), preserve


def _preserve_token(document: Document, index: int, content: str) -> str:
    digest = hashlib.sha256(
        f"{document.path}:{index}:{content}".encode("utf-8")
    ).hexdigest()
    return f"{PRESERVE_PREFIX}{digest[:16]}"


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
