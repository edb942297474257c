# tests/unit/test_main.py - v1
"""Tests for main.py: CLI entry point."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from bookpress.book.models import BuildReport, BuildStats
from bookpress.core.models import RenderedFile
from bookpress.main import _build_parser, main


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_render_defaults(self):
        args = _build_parser().parse_args(["render"])
        assert args.command == "render"
        assert args.project == Path(".")
        assert args.files == []
        assert args.to is None
        assert args.freeze is None

    def test_render_options(self):
        args = _build_parser().parse_args(
            ["render", "book", "intro.md", "--to", "html,pdf", "--freeze", "never"]
        )
        assert args.project == Path("book")
        assert args.files == ["intro.md"]
        assert args.to == "html,pdf"
        assert args.freeze == "never"

    def test_invalid_freeze(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["render", "--freeze", "sometimes"])

    def test_freeze_clean(self):
        args = _build_parser().parse_args(["freeze", "clean", "book", "--document", "intro.md"])
        assert args.freeze_command == "clean"
        assert args.document == "intro.md"


# ---------------------------------------------------------------------------
# Command tests
# ---------------------------------------------------------------------------

class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_render_success(self, capsys):
        report = BuildReport(
            build_id="b1",
            status="done",
            files=[RenderedFile(format="html", file=Path("_book/index.md"))],
            stats=BuildStats(executed=1),
        )
        with patch("bookpress.api.facade.render_project", new=AsyncMock(return_value=report)) as render:
            assert main(["render", "book", "--to", "html", "--freeze", "auto"]) == 0
        render.assert_awaited_once()
        assert render.call_args.kwargs["formats"] == ["html"]
        assert render.call_args.kwargs["policy"] == "auto"
        assert "_book/index.md" in capsys.readouterr().out

    def test_render_failure_exit_code(self):
        report = BuildReport(build_id="b1", status="failed", errors=[RuntimeError("x")])
        with patch("bookpress.api.facade.render_project", new=AsyncMock(return_value=report)):
            assert main(["render", "book"]) == 1

    def test_fatal_error(self):
        with patch("bookpress.api.facade.render_project", new=AsyncMock(side_effect=ValueError("bad"))):
            assert main(["render", "book"]) == 1

    def test_freeze_list_and_clean(self, project_dir, capsys):
        assert main(["freeze", "list", str(project_dir)]) == 0
        assert "No frozen executions" in capsys.readouterr().out

        assert main(["render", str(project_dir), "--to", "html"]) == 0
        capsys.readouterr()
        assert main(["freeze", "list", str(project_dir)]) == 0
        listing = capsys.readouterr().out
        assert "intro.md [html]" in listing

        assert main(["freeze", "clean", str(project_dir), "--document", "intro.md"]) == 0
        assert "Removed 1" in capsys.readouterr().out
