# tests/unit/core/test_unit_models.py - v1
"""Tests for core/models.py and core/errors.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from bookpress.core.errors import (
    BookpressError,
    CacheCorruption,
    ExecutionFailure,
    MergeInvariantViolation,
    RenderFailure,
)
from bookpress.core.models import (
    Document,
    MergedRenderer,
    PerDocumentRenderer,
    TargetFormat,
)


class TestDocument:
    def test_from_relative_path(self):
        doc = Document.from_path("chapters/intro.md")
        assert doc.path == "chapters/intro.md"
        assert doc.stem == "intro"
        assert doc.parent == "chapters"

    def test_from_absolute_path(self, tmp_path: Path):
        doc = Document.from_path(tmp_path / "a" / "b.qmd", tmp_path)
        assert doc.path == "a/b.qmd"

    def test_top_level_parent_is_empty(self):
        assert Document(path="index.md").parent == ""

    def test_hashable_and_frozen(self):
        doc = Document(path="a.md")
        assert {doc, Document(path="a.md")} == {doc}
        with pytest.raises(Exception):
            doc.path = "b.md"


class TestTargetFormat:
    def test_extension_defaults_to_name(self, recording_renderer):
        fmt = TargetFormat(name="pdf", capability=MergedRenderer(recording_renderer))
        assert fmt.extension == "pdf"
        assert fmt.is_per_document is False

    def test_per_document_capability(self, recording_renderer):
        fmt = TargetFormat(name="html", capability=PerDocumentRenderer(recording_renderer))
        assert fmt.is_per_document is True
        assert fmt.capability.kind == "per_document"

    def test_mappings_are_read_only(self, recording_renderer):
        fmt = TargetFormat(
            name="html",
            capability=PerDocumentRenderer(recording_renderer),
            metadata={"title": "x"},
        )
        with pytest.raises(TypeError):
            fmt.metadata["title"] = "y"

    def test_with_metadata_returns_new_value(self, recording_renderer):
        nested = {"authors": ["a"]}
        fmt = TargetFormat(
            name="html",
            capability=PerDocumentRenderer(recording_renderer),
            metadata={"book": nested},
        )
        chapter = fmt.with_metadata(title="Intro")
        assert chapter.metadata["title"] == "Intro"
        assert "title" not in fmt.metadata
        nested["authors"].append("b")
        assert fmt.metadata["book"]["authors"] == ["a"]
        assert chapter.metadata["book"] is not fmt.metadata["book"]

    def test_with_options(self, recording_renderer):
        fmt = TargetFormat(name="pdf", capability=MergedRenderer(recording_renderer))
        changed = fmt.with_options(toc=True)
        assert changed.option("toc") is True
        assert fmt.option("toc") is None
        assert fmt.option("toc", False) is False


class TestErrors:
    def test_hierarchy(self):
        for cls in (CacheCorruption, ExecutionFailure, MergeInvariantViolation, RenderFailure):
            assert issubclass(cls, BookpressError)

    def test_execution_failure_message(self):
        err = ExecutionFailure("intro.md", "html", RuntimeError("boom"))
        assert "intro.md" in str(err)
        assert "boom" in str(err)
        assert isinstance(err.cause, RuntimeError)

    def test_merge_invariant_message(self):
        err = MergeInvariantViolation("apx.md", "pdf")
        assert "Executed file not found for book item: apx.md" in str(err)
