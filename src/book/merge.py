# src/book/merge.py - v1
"""Merge per-document execution results into one synthetic book document.

Used by formats that cannot be split (pdf, epub, docx). Chapter order
always comes from the book items, never from completion order.

Each chapter is preceded by a machine-recoverable marker carrying its
item type and resource directory, emitted both as inline and block raw
HTML so it survives whichever form the downstream renderer keeps.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

from bookpress.book.chapters import with_book_title_metadata
from bookpress.book.items import BookItem
from bookpress.config.project import BookConfig
from bookpress.core.errors import MergeInvariantViolation
from bookpress.core.mapped_text import MappedText
from bookpress.core.models import (
    Dependency,
    Document,
    ExecutedDocument,
    ExecutionResult,
    TargetFormat,
)
from bookpress.storage import layout

logger = logging.getLogger(__name__)

FILE_METADATA_TAG = "bookpress-file-metadata"
BOOK_PART_CLASS = "bookpress-book-part"
BOOK_APPENDIX_CLASS = "bookpress-book-appendix"

_METADATA_COMMENT = re.compile(rf"<!-- {FILE_METADATA_TAG}: ([A-Za-z0-9+/=]+) -->")


def book_item_metadata(item: BookItem, resource_dir: str | None = None) -> str:
    """Opaque marker announcing a book item inside merged markdown."""
    payload = json.dumps(
        {"bookItemType": item.type, "resourceDir": resource_dir or "."},
        separators=(",", ":"),
    )
    encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
    comment = f"<!-- {FILE_METADATA_TAG}: {encoded} -->"
    return f"\n\n`{comment}`{{=html}}\n\n```{{=html}}\n{comment}\n```\n\n"


def decode_file_metadata(markdown: str) -> list[dict[str, Any]]:
    """Recover the item markers from merged markdown, in order.

    Each marker is written twice; duplicates that follow each other are
    collapsed.
    """
    decoded: list[dict[str, Any]] = []
    previous: str | None = None
    for match in _METADATA_COMMENT.finditer(markdown):
        raw = match.group(1)
        if raw == previous:
            previous = None
            continue
        previous = raw
        decoded.append(json.loads(base64.b64decode(raw).decode("utf-8")))
    return decoded


def book_part_markdown(item: BookItem) -> str:
    """Markdown for a structural ``part``/``appendix`` item."""
    css_class = BOOK_APPENDIX_CLASS if item.type == "appendix" else BOOK_PART_CLASS
    fragment = f"{book_item_metadata(item)}# {item.text or ''}\n\n"
    return f"\n\n::: {{.{css_class}}}\n{fragment}\n:::\n\n"


def book_output_file(book: BookConfig, project_dir: Path, extension: str) -> str:
    """Merged output filename: book title, else the project directory name."""
    title = book.title or Path(project_dir).resolve().name
    return f"{title}.{extension}"


def merge_executed_documents(
    items: list[BookItem],
    executed: Mapping[str, ExecutedDocument],
    book: BookConfig,
    project_dir: Path,
    target_format: TargetFormat,
) -> ExecutedDocument:
    """Fold every chapter's result for one format into a synthetic document.

    Args:
        items: Book items in table-of-contents order.
        executed: Results for this format keyed by document path.
        book: Book configuration supplying title metadata.
        project_dir: Project root; resources are made relative to it.
        target_format: The single-file format being built.

    Raises:
        MergeInvariantViolation: A chapter item has no recorded result.
    """
    project_dir = Path(project_dir)
    markdown = MappedText()
    supporting: list[str] = []
    filters: list[str] = []
    dependencies: list[Dependency] = []
    preserve: dict[str, str] = {}
    sources: list[Document] = []

    for item in items:
        if item.file is None:
            if item.type in ("part", "appendix"):
                markdown = markdown.concat(book_part_markdown(item))
            continue

        entry = executed.get(item.file)
        if entry is None:
            raise MergeInvariantViolation(item.file, target_format.name)
        result = entry.result

        resource_dir = entry.document.parent or "."
        markdown = markdown.concat(book_item_metadata(item, resource_dir), result.markdown)
        sources.append(entry.document)

        for path in result.supporting:
            try:
                rel = layout.relative_to_project(project_dir, path)
            except ValueError:
                rel = Path(path).as_posix()
            if rel not in supporting:
                supporting.append(rel)
        for name in result.filters:
            if name not in filters:
                filters.append(name)
        dependencies.extend(result.dependencies)

        for token, content in result.preserve.items():
            if token in preserve and preserve[token] != content:
                logger.warning(
                    "Preserved block %s from %s overrides an earlier chapter's",
                    token, item.file,
                )
            preserve[token] = content

    output_file = book_output_file(book, project_dir, target_format.extension)
    book_format = with_book_title_metadata(target_format, book).with_options(
        **{"output-file": output_file}
    )
    merged = ExecutionResult(
        markdown=markdown,
        supporting=supporting,
        filters=filters,
        dependencies=dependencies,
        preserve=preserve,
    )
    logger.debug(
        "Merged %d chapter(s) for %s into %s",
        len(sources), target_format.name, output_file,
    )
    return ExecutedDocument(
        document=Document(path=PurePosixPath(output_file).as_posix()),
        format=book_format,
        result=merged,
        output_file=output_file,
        sources=sources,
    )
