# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides a fake execution adapter that counts calls, a recording
renderer and a small sample book project on disk.
No external dependencies: pandoc is never invoked.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from bookpress.cache.freeze_store import FileFreezeStore
from bookpress.core.mapped_text import MappedText
from bookpress.core.models import (
    Document,
    ExecutedDocument,
    ExecutionResult,
    MergedRenderer,
    PerDocumentRenderer,
    RenderedFile,
    TargetFormat,
)
from bookpress.execution.base_adapter import BaseExecutionAdapter
from bookpress.render.base_renderer import BaseRenderer
from bookpress.storage import layout


# === Fakes ===


class FakeAdapter(BaseExecutionAdapter):
    """Execution adapter that reads the source and records every call.

    Args:
        project_dir: Project root.
        fail: Document paths whose execution raises.
        delays: Per-document sleep (seconds) to force completion order.
        make_files: Write a ``{stem}_files/figure.txt`` intermediate.
    """

    name = "fake"
    version = "1"

    def __init__(
        self,
        project_dir: Path,
        fail: set[str] | None = None,
        delays: dict[str, float] | None = None,
        make_files: bool = False,
        keep: bool = False,
    ) -> None:
        self.project_dir = Path(project_dir)
        self.fail = set(fail or ())
        self.delays = dict(delays or {})
        self.make_files = make_files
        self.keep = keep
        self.calls: list[tuple[str, str]] = []
        self.completed: list[str] = []

    async def execute(self, document: Document, target_format: TargetFormat) -> ExecutionResult:
        self.calls.append((document.path, target_format.name))
        delay = self.delays.get(document.path, 0)
        if delay:
            await asyncio.sleep(delay)
        if document.path in self.fail:
            raise RuntimeError(f"kernel died in {document.path}")

        text = document.input_path(self.project_dir).read_text(encoding="utf-8")
        supporting: list[str] = []
        if self.make_files:
            files_dir = layout.intermediates_dir(self.project_dir, document.path)
            files_dir.mkdir(parents=True, exist_ok=True)
            (files_dir / "figure.txt").write_text(f"figure for {document.path}")
            supporting.append(layout.relative_to_project(self.project_dir, files_dir))

        self.completed.append(document.path)
        return ExecutionResult(
            markdown=MappedText.from_source(text, document.path),
            supporting=supporting,
            filters=[f"{document.stem}.lua", "common.lua"],
            preserve={f"token-{document.stem}": f"<div>{document.stem}</div>"},
        )

    def keep_intermediates(self, document: Document) -> bool:
        return self.keep

    @property
    def executed_documents(self) -> list[str]:
        return [path for path, _ in self.calls]


class RecordingRenderer(BaseRenderer):
    """Renderer that records what it was handed and writes nothing."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.one: list[ExecutedDocument] = []
        self.merged: list[ExecutedDocument] = []
        self.fail_on = set(fail_on or ())

    async def render_one(self, executed: ExecutedDocument) -> RenderedFile:
        if executed.format.name in self.fail_on:
            raise RuntimeError(f"renderer crashed on {executed.document.path}")
        self.one.append(executed)
        return RenderedFile(
            format=executed.format.name,
            file=Path("_book") / f"{executed.document.stem}.{executed.format.extension}",
            sources=[executed.document.path],
        )

    async def render_merged(self, executed: ExecutedDocument) -> RenderedFile:
        if executed.format.name in self.fail_on:
            raise RuntimeError("renderer crashed on merged book")
        self.merged.append(executed)
        return RenderedFile(
            format=executed.format.name,
            file=Path("_book") / (executed.output_file or "book"),
            sources=[doc.path for doc in executed.sources],
            merged=True,
        )


# === Helpers ===


def make_format(
    name: str,
    renderer: BaseRenderer,
    per_document: bool = False,
    extension: str = "",
    **options,
) -> TargetFormat:
    capability = PerDocumentRenderer(renderer) if per_document else MergedRenderer(renderer)
    return TargetFormat(name=name, capability=capability, extension=extension, options=options)


BOOK_YML = """\
book:
  title: Sample Book
  author: Jane Doe
  date: 2026-01-01
  chapters:
    - index.md
    - intro.md
  appendices:
    - apx-a.md
formats:
  html:
    per-document: true
    extension: md
  book:
    extension: md
"""

SOURCES = {
    "index.md": "# Welcome\n\nLanding page.\n",
    "intro.md": "# Introduction {#sec-intro}\n\nHello from the intro.\n",
    "apx-a.md": "# Extra Material\n\nAppendix body.\n",
}


def write_project(root: Path, book_yml: str = BOOK_YML, sources: dict[str, str] | None = None) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "_book.yml").write_text(book_yml, encoding="utf-8")
    for rel, text in (sources or SOURCES).items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


# === FIXTURES ===


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Sample book: index, intro, appendix marker, apx-a."""
    return write_project(tmp_path / "book")


@pytest.fixture
def fake_adapter(project_dir: Path) -> FakeAdapter:
    return FakeAdapter(project_dir)


@pytest.fixture
def recording_renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def freeze_store(project_dir: Path) -> FileFreezeStore:
    return FileFreezeStore(project_dir)


@pytest.fixture
def sample_result() -> ExecutionResult:
    return ExecutionResult(
        markdown=MappedText.from_source("# Title\n\nBody.\n", "intro.md"),
        supporting=[],
        filters=["a.lua"],
        preserve={"tok": "<b>raw</b>"},
    )


@pytest.fixture
def format_factory():
    """Build TargetFormat values: ``format_factory("pdf", renderer)``."""
    return make_format


@pytest.fixture
def adapter_factory():
    """The FakeAdapter class, for tests that need custom failures/delays."""
    return FakeAdapter


@pytest.fixture
def renderer_factory():
    return RecordingRenderer


@pytest.fixture
def project_factory():
    """Write a project tree: ``project_factory(root, book_yml, sources)``."""
    return write_project
