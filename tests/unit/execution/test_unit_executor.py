# tests/unit/execution/test_unit_executor.py - v1
"""Tests for execution/executor.py: freeze-aware execution and dedup."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from bookpress.core.errors import ExecutionFailure
from bookpress.core.models import Document
from bookpress.execution.executor import FreezeExecutor


@pytest.fixture
def html(recording_renderer, format_factory):
    return format_factory("html", recording_renderer, per_document=True)


@pytest.fixture
def executor(fake_adapter, freeze_store, project_dir):
    return FreezeExecutor(fake_adapter, freeze_store, project_dir)


INTRO = Document(path="intro.md")


class TestFreezeExecutor:
    @pytest.mark.asyncio
    async def test_miss_executes_and_stores(self, executor, fake_adapter, freeze_store, html):
        executed = await executor.execute(INTRO, html)
        assert executed.from_cache is False
        assert fake_adapter.calls == [("intro.md", "html")]
        assert executor.stats.executed == 1
        assert len(await freeze_store.list_entries()) == 1

    @pytest.mark.asyncio
    async def test_second_build_hits(self, fake_adapter, freeze_store, project_dir, html):
        await FreezeExecutor(fake_adapter, freeze_store, project_dir).execute(INTRO, html)
        second = FreezeExecutor(fake_adapter, freeze_store, project_dir)
        executed = await second.execute(INTRO, html)
        assert executed.from_cache is True
        assert len(fake_adapter.calls) == 1
        assert second.stats.cache_hits == 1

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_execution(
        self, adapter_factory, freeze_store, project_dir, html
    ):
        adapter = adapter_factory(project_dir, delays={"intro.md": 0.05})
        executor = FreezeExecutor(adapter, freeze_store, project_dir)
        results = await asyncio.gather(
            executor.execute(INTRO, html),
            executor.execute(INTRO, html),
            executor.execute(Document(path="intro.md"), html),
        )
        assert len(adapter.calls) == 1
        assert results[0] is results[1] is results[2]

    @pytest.mark.asyncio
    async def test_never_reexecutes_and_does_not_store(
        self, fake_adapter, freeze_store, project_dir, html
    ):
        await FreezeExecutor(fake_adapter, freeze_store, project_dir).execute(INTRO, html)
        never = FreezeExecutor(fake_adapter, freeze_store, project_dir, policy="never")
        executed = await never.execute(INTRO, html)
        assert executed.from_cache is False
        assert len(fake_adapter.calls) == 2
        assert await freeze_store.list_entries() == []

    @pytest.mark.asyncio
    async def test_always_reuses_stale(self, fake_adapter, freeze_store, project_dir, html):
        await FreezeExecutor(fake_adapter, freeze_store, project_dir).execute(INTRO, html)
        (project_dir / "intro.md").write_text("# Rewritten\n")
        always = FreezeExecutor(fake_adapter, freeze_store, project_dir, policy="always")
        executed = await always.execute(INTRO, html)
        assert executed.from_cache is True
        assert "Introduction" in executed.result.markdown.value
        assert always.stats.stale_hits == 1

    @pytest.mark.asyncio
    async def test_always_first_run_executes_and_stores(
        self, fake_adapter, freeze_store, project_dir, html
    ):
        always = FreezeExecutor(fake_adapter, freeze_store, project_dir, policy="always")
        executed = await always.execute(INTRO, html)
        assert executed.from_cache is False
        assert len(await freeze_store.list_entries()) == 1

    @pytest.mark.asyncio
    async def test_per_call_policy_overrides_default(
        self, fake_adapter, freeze_store, project_dir, html
    ):
        await FreezeExecutor(fake_adapter, freeze_store, project_dir).execute(INTRO, html)
        executor = FreezeExecutor(fake_adapter, freeze_store, project_dir)
        await executor.execute(INTRO, html, policy="never")
        assert len(fake_adapter.calls) == 2

    @pytest.mark.asyncio
    async def test_adapter_error_wrapped(self, adapter_factory, freeze_store, project_dir, html):
        adapter = adapter_factory(project_dir, fail={"intro.md"})
        executor = FreezeExecutor(adapter, freeze_store, project_dir)
        with pytest.raises(ExecutionFailure) as exc_info:
            await executor.execute(INTRO, html)
        assert exc_info.value.document == "intro.md"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert await freeze_store.list_entries() == []

    @pytest.mark.asyncio
    async def test_unreadable_source_propagates(self, fake_adapter, freeze_store, project_dir, html):
        executor = FreezeExecutor(fake_adapter, freeze_store, project_dir)
        with pytest.raises(OSError):
            await executor.execute(Document(path="missing.md"), html)

    @pytest.mark.asyncio
    async def test_store_failure_is_not_fatal(self, fake_adapter, freeze_store, project_dir, html):
        freeze_store.store = AsyncMock(side_effect=OSError("read-only"))
        executor = FreezeExecutor(fake_adapter, freeze_store, project_dir)
        executed = await executor.execute(INTRO, html)
        assert executed.from_cache is False
        assert executor.stats.store_failures == 1

    @pytest.mark.asyncio
    async def test_any_store_error_is_not_fatal(self, fake_adapter, freeze_store, project_dir, html):
        freeze_store.store = AsyncMock(side_effect=ValueError("bad path"))
        executor = FreezeExecutor(fake_adapter, freeze_store, project_dir)
        executed = await executor.execute(INTRO, html)
        assert executed.result.markdown.value.startswith("# Introduction")
        assert executor.stats.store_failures == 1

    @pytest.mark.asyncio
    async def test_supporting_path_outside_project(
        self, adapter_factory, freeze_store, project_dir, html, tmp_path
    ):
        adapter = adapter_factory(project_dir)
        execute = adapter.execute

        async def with_outside_path(document, target_format):
            result = await execute(document, target_format)
            return result.model_copy(update={"supporting": [str(tmp_path)]})

        adapter.execute = with_outside_path
        executor = FreezeExecutor(adapter, freeze_store, project_dir)
        executed = await executor.execute(INTRO, html)
        assert executed.result.supporting == [str(tmp_path)]
        assert executor.stats.store_failures == 0
        [entry] = await freeze_store.list_entries()
        assert entry.files == []

    @pytest.mark.asyncio
    async def test_cancel_all(self, adapter_factory, freeze_store, project_dir, html):
        adapter = adapter_factory(project_dir, delays={"intro.md": 5})
        executor = FreezeExecutor(adapter, freeze_store, project_dir)
        pending = asyncio.ensure_future(executor.execute(INTRO, html))
        await asyncio.sleep(0.01)
        assert executor.cancel_all() == 1
        with pytest.raises(asyncio.CancelledError):
            await pending
