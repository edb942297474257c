# tests/unit/api/test_unit_facade.py - v1
"""Tests for api.facade: wiring of settings, project and collaborators."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bookpress.api.facade import render_project
from bookpress.book.models import BuildReport
from bookpress.config.settings import Settings
from bookpress.core.models import Document
from bookpress.execution.markdown_adapter import MarkdownAdapter


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


@pytest.fixture
def orchestrator_cls():
    """Patch BookOrchestrator; ``run`` returns an empty done report."""
    with patch("bookpress.api.facade.BookOrchestrator") as cls:
        instance = MagicMock()
        instance.run = AsyncMock(return_value=BuildReport(build_id="b", status="done"))
        cls.return_value = instance
        yield cls


class TestWiring:
    @pytest.mark.asyncio
    async def test_returns_orchestrator_report(self, project_dir, orchestrator_cls):
        report = await render_project(project_dir, settings=_settings())
        assert report.build_id == "b"
        orchestrator_cls.return_value.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_documents_become_relative_documents(self, project_dir, orchestrator_cls):
        await render_project(
            project_dir,
            documents=[project_dir / "intro.md", "apx-a.md"],
            settings=_settings(),
        )
        formats, selected = orchestrator_cls.return_value.run.await_args.args
        assert [f.name for f in formats] == ["html", "book"]
        assert selected == [Document(path="intro.md"), Document(path="apx-a.md")]

    @pytest.mark.asyncio
    async def test_no_documents_means_whole_book(self, project_dir, orchestrator_cls):
        await render_project(project_dir, formats=["html"], settings=_settings())
        _, selected = orchestrator_cls.return_value.run.await_args.args
        assert selected is None

    @pytest.mark.asyncio
    async def test_settings_flow_into_collaborators(self, project_dir, orchestrator_cls):
        settings = _settings(max_concurrency=2, keep_intermediates=True, freeze_dir=".fz")
        await render_project(project_dir, settings=settings)
        args, kwargs = orchestrator_cls.call_args
        executor, cleanup = args[2], args[3]
        assert kwargs["max_concurrency"] == 2
        assert isinstance(executor.adapter, MarkdownAdapter)
        assert cleanup.keep_intermediates is True
        assert executor.policy == "auto"

    @pytest.mark.asyncio
    async def test_policy_precedence(self, project_dir, orchestrator_cls):
        (project_dir / "_book.yml").write_text(
            (project_dir / "_book.yml").read_text() + "freeze: always\n"
        )
        await render_project(project_dir, settings=_settings(freeze_policy="never"))
        assert orchestrator_cls.call_args.args[2].policy == "always"

        await render_project(
            project_dir, settings=_settings(freeze_policy="never"), policy="auto"
        )
        assert orchestrator_cls.call_args.args[2].policy == "auto"

    @pytest.mark.asyncio
    async def test_relative_project_path_resolved(
        self, project_dir, orchestrator_cls, monkeypatch
    ):
        monkeypatch.chdir(project_dir.parent)
        await render_project(Path(project_dir.name), settings=_settings())
        assert orchestrator_cls.call_args.args[0] == project_dir.resolve()
