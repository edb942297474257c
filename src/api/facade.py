# src/api/facade.py - v1
"""Public API facade: single entry point for building a book.

Usage:
    from bookpress.api.facade import render_project
    report = await render_project(Path("my-book"), formats=["html"])
    report.raise_for_error()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Mapping

from bookpress.book.cleanup import CleanupCoordinator
from bookpress.book.orchestrator import BookOrchestrator
from bookpress.cache.freeze_store import FileFreezeStore
from bookpress.config.project import load_project
from bookpress.config.settings import ConfigurationError, Settings
from bookpress.core.models import Document
from bookpress.execution.executor import FreezeExecutor
from bookpress.execution.markdown_adapter import MarkdownAdapter
from bookpress.render.markdown_renderer import MarkdownRenderer
from bookpress.render.pandoc_renderer import PandocRenderer

if TYPE_CHECKING:
    from bookpress.book.models import BuildReport
    from bookpress.cache.base_freeze_store import BaseFreezeStore
    from bookpress.cache.models import FreezePolicy
    from bookpress.execution.base_adapter import BaseExecutionAdapter
    from bookpress.render.base_renderer import BaseRenderer

logger = logging.getLogger(__name__)


def default_renderers(project_dir: Path, settings: Settings) -> dict[str, BaseRenderer]:
    """Built-in renderers keyed by the name used in ``formats:``."""
    return {
        "markdown": MarkdownRenderer(project_dir, settings.output_dir),
        "pandoc": PandocRenderer(project_dir, settings.output_dir),
    }


async def render_project(
    project_dir: Path,
    formats: list[str] | None = None,
    documents: list[Path | str] | None = None,
    settings: Settings | None = None,
    adapter: BaseExecutionAdapter | None = None,
    renderers: Mapping[str, BaseRenderer] | None = None,
    freeze_store: BaseFreezeStore | None = None,
    policy: FreezePolicy | None = None,
) -> BuildReport:
    """Build a book project end to end.

    Steps:
      1. Load settings and ``_book.yml``
      2. Resolve target formats and the freeze policy
      3. Execute every (document, format) pair through the freezer
      4. Render per document or merged, then clean intermediates

    Args:
        project_dir: Project root containing ``_book.yml``.
        formats: Format names to build. None = every configured format.
        documents: Optional subset of documents (paths) to render.
        settings: Global settings. Loaded from .env if None.
        adapter: Execution engine. Defaults to the markdown adapter.
        renderers: Renderers by name. Defaults to markdown + pandoc.
        freeze_store: Freeze store. Defaults to the on-disk store.
        policy: Freeze policy overriding project and settings.

    Returns:
        BuildReport with rendered files, per-format states and stats.

    Raises:
        ConfigurationError: Invalid settings or project configuration.
    """
    project_dir = Path(project_dir).resolve()
    settings = settings or Settings()
    if not project_dir.is_dir():
        raise ConfigurationError(f"Project directory not found: {project_dir}")

    project = load_project(project_dir, settings)
    renderers = renderers or default_renderers(project_dir, settings)
    target_formats = project.target_formats(renderers, formats)
    freeze_policy = policy or project.freeze_policy(settings.freeze_policy)

    adapter = adapter or MarkdownAdapter(project_dir)
    freeze_store = freeze_store or FileFreezeStore(project_dir, settings.freeze_dir)
    executor = FreezeExecutor(
        adapter,
        freeze_store,
        project_dir,
        policy=freeze_policy,
        exclude_options=settings.fingerprint_exclude_options_list,
    )
    cleanup = CleanupCoordinator(
        project_dir,
        adapter=adapter,
        keep_intermediates=settings.keep_intermediates,
        freeze_dir=settings.freeze_dir,
    )
    orchestrator = BookOrchestrator(
        project_dir,
        project.book,
        executor,
        cleanup,
        max_concurrency=settings.max_concurrency,
    )

    selected = (
        [Document.from_path(d, project_dir) for d in documents] if documents else None
    )
    logger.info(
        "Rendering %s: formats=%s, freeze=%s",
        project_dir.name, ",".join(f.name for f in target_formats), freeze_policy,
    )
    return await orchestrator.run(target_formats, selected)
