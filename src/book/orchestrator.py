# src/book/orchestrator.py - v1
"""Book orchestrator: drive one build from execution to rendered files.

Per format the build moves through::

    collecting -> finalizing -> done | failed

Executions for every (document, format) pair run concurrently, bounded
by a semaphore. Results land in a build-scoped bucket per format;
finalization starts only after every pair has reached a terminal state.

Per-document formats render each result on its own, annotated with
chapter title and number. Other formats merge all results in book
order into one synthetic document and render once.

An orchestrator is single-use: create one per build.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path

from bookpress.book.chapters import (
    partition_markdown,
    with_book_title_metadata,
    with_chapter_title_metadata,
)
from bookpress.book.cleanup import CleanupCoordinator
from bookpress.book.items import (
    BookItem,
    book_documents,
    book_items,
    chapter_numbers,
    is_index_page,
)
from bookpress.book.merge import merge_executed_documents
from bookpress.book.models import BuildContext, BuildReport, BuildStats
from bookpress.config.project import BookConfig
from bookpress.core.errors import (
    BookpressError,
    BuildCancelled,
    RenderFailure,
)
from bookpress.core.models import (
    Dependency,
    Document,
    ExecutedDocument,
    MergedRenderer,
    RenderedFile,
    TargetFormat,
)
from bookpress.execution.executor import FreezeExecutor
from bookpress.logging.context import set_build_context, set_stage

logger = logging.getLogger(__name__)


class BookOrchestrator:
    """Build a book for a set of target formats.

    Args:
        project_dir: Project root.
        book: Book configuration (chapter order and title metadata).
        executor: Freeze-aware executor owned by this build.
        cleanup: Cleanup coordinator for intermediates.
        max_concurrency: Maximum concurrent executions.
        build_id: Identifier for logs and the report (generated if omitted).
    """

    def __init__(
        self,
        project_dir: Path,
        book: BookConfig,
        executor: FreezeExecutor,
        cleanup: CleanupCoordinator,
        max_concurrency: int = 4,
        build_id: str | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._project_dir = Path(project_dir)
        self._book = book
        self._executor = executor
        self._cleanup = cleanup
        self._max_concurrency = max_concurrency
        self._items: list[BookItem] = book_items(book)
        self._context = BuildContext(build_id=build_id or uuid.uuid4().hex[:12])
        self._tasks: list[asyncio.Future[None]] = []
        self._started = False
        self._start_time = time.monotonic()
        self._stats = BuildStats()
        self._deferred_cleanup: list[tuple[list[ExecutedDocument], Path]] = []

    @property
    def build_id(self) -> str:
        return self._context.build_id

    @property
    def items(self) -> list[BookItem]:
        return list(self._items)

    @property
    def context(self) -> BuildContext:
        return self._context

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    def needs_full_render(self, formats: list[TargetFormat]) -> bool:
        """A merged format needs every chapter, whatever was requested."""
        return any(isinstance(f.capability, MergedRenderer) for f in formats)

    def on_before_execute(self, target_format: TargetFormat) -> bool:
        """Whether dependencies can be resolved as soon as a document executes.

        Merged formats wait for the whole book: numbering and title
        metadata are only known once every chapter is collected.
        """
        return target_format.is_per_document

    async def on_executed(
        self,
        target_format: TargetFormat,
        document: Document,
        executed: ExecutedDocument,
    ) -> None:
        """Record a finished execution in the format's bucket."""
        if self.on_before_execute(target_format):
            executed = _resolve_dependencies(executed)
        await self._context.record(target_format.name, document, executed)
        logger.debug(
            "Collected %s for %s (%s)",
            document.path, target_format.name,
            "frozen" if executed.from_cache else "executed",
        )

    async def on_complete(
        self,
        formats: list[TargetFormat],
        had_error: bool,
        errors: list[Exception] | None = None,
    ) -> BuildReport:
        """Finalize every format, or unwind the build after an error."""
        set_stage("finalize")
        errors = list(errors or [])
        if had_error:
            self._context.fail_in_progress()
            cleaned = self._cleanup.after_failure(self._context.accumulated())
            self._context.discard()
            logger.error(
                "Build %s failed during execution: %d error(s), %d intermediate dir(s) removed",
                self.build_id, len(errors), len(cleaned),
            )
            return self._report("failed", [], errors, cleaned=len(cleaned))

        logger.info(
            "Finalizing build %s, collected documents per format: %s",
            self.build_id, self._context.summary(),
        )
        files: list[RenderedFile] = []
        for target_format in formats:
            self._context.transition(target_format.name, "finalizing")
            try:
                if target_format.is_per_document:
                    files.extend(await self._render_multi_file(target_format))
                else:
                    files.append(await self._render_single_file(target_format))
            except Exception as e:
                failure = e
                if not isinstance(e, BookpressError):
                    failure = RenderFailure(target_format.name, "book", e)
                    failure.__cause__ = e
                logger.error("Finalizing %s failed: %s", target_format.name, failure)
                errors.append(failure)
                self._context.fail_in_progress()
                cleaned = self._cleanup.after_failure(self._context.accumulated())
                self._context.discard()
                return self._report("failed", files, errors, cleaned=len(cleaned))
            self._context.transition(target_format.name, "done")

        cleaned = 0
        for executed, output in self._deferred_cleanup:
            cleaned += len(self._cleanup.after_success(executed, output))
        self._context.discard()
        return self._report("done", files, errors, cleaned=cleaned)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    async def run(
        self,
        formats: list[TargetFormat],
        documents: list[Document] | None = None,
    ) -> BuildReport:
        """Execute and render the book.

        Args:
            formats: Target formats to build.
            documents: Optional subset to render. Ignored (full build)
                when any format merges the whole book.
        """
        if self._started:
            raise RuntimeError("BookOrchestrator instances are single-use")
        self._started = True
        self._start_time = time.monotonic()

        set_build_context(self.build_id, stage="execute")
        targets = self._select_documents(formats, documents)
        self._context.start([f.name for f in formats])
        self._stats = BuildStats(documents=len(targets), formats=len(formats))
        logger.info(
            "Build %s: %d document(s) x %d format(s)",
            self.build_id, len(targets), len(formats),
        )

        semaphore = asyncio.Semaphore(self._max_concurrency)
        self._tasks = [
            asyncio.ensure_future(self._execute_pair(semaphore, f, doc))
            for f in formats
            for doc in targets
        ]
        outcomes = await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._context.cancelled.is_set():
            return self._unwind_cancelled()

        errors = [o for o in outcomes if isinstance(o, Exception)]
        cancelled = [o for o in outcomes if isinstance(o, asyncio.CancelledError)]
        if cancelled and not errors:
            errors.append(BuildCancelled(f"{len(cancelled)} execution(s) were cancelled"))
        return await self.on_complete(formats, bool(errors), errors)

    def cancel(self, cancel_inflight: bool = True) -> None:
        """Abort the build.

        No new executions start. In-flight executions are cancelled when
        ``cancel_inflight`` is True, otherwise they run to completion.
        Intermediates of whatever was accumulated are then cleaned up.
        """
        self._context.cancelled.set()
        if cancel_inflight:
            self._executor.cancel_all()
            for task in self._tasks:
                if not task.done():
                    task.cancel()
        logger.info("Build %s cancelled", self.build_id)

    async def _execute_pair(
        self,
        semaphore: asyncio.Semaphore,
        target_format: TargetFormat,
        document: Document,
    ) -> None:
        if self._context.cancelled.is_set():
            raise BuildCancelled(f"{document.path} ({target_format.name}) not started")
        async with semaphore:
            if self._context.cancelled.is_set():
                raise BuildCancelled(f"{document.path} ({target_format.name}) not started")
            executed = await self._executor.execute(document, target_format)
        await self.on_executed(target_format, document, executed)

    def _select_documents(
        self, formats: list[TargetFormat], documents: list[Document] | None
    ) -> list[Document]:
        all_documents = book_documents(self._items)
        if not documents:
            return all_documents
        if self.needs_full_render(formats):
            logger.info("Single-file format requested: rendering the full book")
            return all_documents
        requested = {d.path for d in documents}
        selected = [d for d in all_documents if d.path in requested]
        unknown = requested - {d.path for d in selected}
        if unknown:
            logger.warning("Not part of the book, skipped: %s", ", ".join(sorted(unknown)))
        return selected

    def _unwind_cancelled(self) -> BuildReport:
        self._context.fail_in_progress()
        cleaned = self._cleanup.after_failure(self._context.accumulated())
        self._context.discard()
        return self._report(
            "cancelled", [], [BuildCancelled(f"Build {self.build_id} was cancelled")],
            cleaned=len(cleaned),
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    async def _render_multi_file(self, target_format: TargetFormat) -> list[RenderedFile]:
        """Render one file per collected document, in book order."""
        renderer = target_format.capability.renderer
        bucket = self._context.bucket(target_format.name)
        index_file = self._book.index

        partitions = {
            path: partition_markdown(executed.result.markdown)
            for path, executed in bucket.items()
            if not is_index_page(path, index_file)
        }
        numbered = target_format.option("number-sections", True) is not False
        # documents outside this (partial) build keep their place in numbering
        unheaded = {p for p, part in partitions.items() if not part.heading_text}
        numbers = chapter_numbers(
            self._items,
            index_file,
            headed={d.path for d in book_documents(self._items)} - unheaded,
        )

        files: list[RenderedFile] = []
        for document in book_documents(self._items):
            executed = bucket.get(document.path)
            if executed is None:
                continue

            if is_index_page(document, index_file):
                page_format = with_book_title_metadata(target_format, self._book)
                page_format = page_format.with_metadata(toc=False)
                page = ExecutedDocument(
                    document=executed.document,
                    format=page_format,
                    result=executed.result,
                    fingerprint=executed.fingerprint,
                    from_cache=executed.from_cache,
                )
            else:
                partitioned = partitions[document.path]
                if partitioned.heading_text:
                    chapter = numbers.get(document.path) if numbered else None
                    page = ExecutedDocument(
                        document=executed.document,
                        format=with_chapter_title_metadata(
                            target_format, partitioned, chapter
                        ),
                        result=executed.result.model_copy(
                            update={"markdown": partitioned.markdown}
                        ),
                        fingerprint=executed.fingerprint,
                        from_cache=executed.from_cache,
                    )
                else:
                    page = executed

            try:
                rendered = await renderer.render_one(page)
            except BookpressError:
                raise
            except Exception as e:
                raise RenderFailure(target_format.name, document.path, e) from e
            files.append(rendered)
            self._deferred_cleanup.append(([executed], rendered.file))
        return files

    async def _render_single_file(self, target_format: TargetFormat) -> RenderedFile:
        """Merge the whole book for a format and render it once."""
        renderer = target_format.capability.renderer
        bucket = self._context.bucket(target_format.name)
        merged = merge_executed_documents(
            self._items, bucket, self._book, self._project_dir, target_format
        )
        try:
            rendered = await renderer.render_merged(merged)
        except BookpressError:
            raise
        except Exception as e:
            raise RenderFailure(target_format.name, merged.output_file or "", e) from e
        self._deferred_cleanup.append((list(bucket.values()), rendered.file))
        return rendered

    def _report(
        self,
        status: str,
        files: list[RenderedFile],
        errors: list[Exception],
        cleaned: int = 0,
    ) -> BuildReport:
        stats = self._stats
        exec_stats = self._executor.stats
        stats = stats.model_copy(
            update={
                "executed": exec_stats.executed,
                "cache_hits": exec_stats.cache_hits,
                "stale_hits": exec_stats.stale_hits,
                "corrupted": exec_stats.corrupted,
                "store_failures": exec_stats.store_failures,
                "rendered": len(files),
                "cleaned": cleaned,
                "duration_seconds": round(
                    time.monotonic() - self._start_time, 3
                ),
            }
        )
        logger.info(
            "Build %s %s: %d file(s), %d executed, %d frozen",
            self.build_id, status, len(files), stats.executed, stats.cache_hits,
        )
        return BuildReport(
            build_id=self.build_id,
            status=status,
            files=files,
            format_states=dict(self._context.states),
            stats=stats,
            errors=errors,
        )


def _resolve_dependencies(executed: ExecutedDocument) -> ExecutedDocument:
    """Drop repeated dependency declarations, keeping the first by name."""
    seen: set[str] = set()
    resolved: list[Dependency] = []
    for dependency in executed.result.dependencies:
        if dependency.name in seen:
            continue
        seen.add(dependency.name)
        resolved.append(dependency)
    if len(resolved) == len(executed.result.dependencies):
        return executed
    return ExecutedDocument(
        document=executed.document,
        format=executed.format,
        result=executed.result.model_copy(update={"dependencies": resolved}),
        fingerprint=executed.fingerprint,
        from_cache=executed.from_cache,
        output_file=executed.output_file,
        sources=list(executed.sources),
    )
