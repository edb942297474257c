# src/book/chapters.py - v1
"""Markdown partitioning and chapter title metadata for per-document output."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from bookpress.book.items import ChapterInfo
from bookpress.config.project import BookConfig
from bookpress.core.mapped_text import MappedText
from bookpress.core.models import TargetFormat

_FRONT_MATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_HEADING = re.compile(r"^(#{1,6})[ \t]+(.+?)(?:[ \t]+\{([^}]*)\})?[ \t]*#*[ \t]*$")
_FENCE = re.compile(r"^(`{3,}|~{3,})")


@dataclass(frozen=True)
class HeadingAttr:
    """Pandoc attributes of a heading: ``{#id .class key=value}``."""

    id: str | None = None
    classes: tuple[str, ...] = ()
    keyvals: tuple[tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, raw: str | None) -> HeadingAttr:
        if not raw:
            return cls()
        ident = None
        classes: list[str] = []
        keyvals: list[tuple[str, str]] = []
        for token in raw.split():
            if token.startswith("#"):
                ident = token[1:]
            elif token.startswith("."):
                classes.append(token[1:])
            elif token == "-":
                classes.append("unnumbered")
            elif "=" in token:
                key, value = token.split("=", 1)
                keyvals.append((key, value.strip("\"'")))
        return cls(id=ident, classes=tuple(classes), keyvals=tuple(keyvals))


@dataclass(frozen=True)
class PartitionedMarkdown:
    """A document split into front matter, first heading and body."""

    markdown: MappedText
    yaml: dict[str, Any] = field(default_factory=dict)
    heading_text: str | None = None
    heading_attr: HeadingAttr | None = None


def partition_markdown(markdown: MappedText) -> PartitionedMarkdown:
    """Split off front matter and the first heading outside code fences."""
    text = markdown.value
    front: dict[str, Any] = {}
    start = 0
    match = _FRONT_MATTER.match(text)
    if match:
        loaded = yaml.safe_load(match.group(1))
        front = loaded if isinstance(loaded, dict) else {}
        start = match.end()

    heading_text = None
    heading_attr = None
    body = markdown.substring(start)

    pos = start
    fence: str | None = None
    for line in text[start:].splitlines(keepends=True):
        stripped = line.rstrip("\r\n")
        fence_match = _FENCE.match(stripped)
        if fence_match:
            marker = fence_match.group(1)
            if fence is None:
                fence = marker[0]
            elif marker[0] == fence:
                fence = None
        elif fence is None:
            heading = _HEADING.match(stripped)
            if heading:
                heading_text = heading.group(2).strip()
                heading_attr = HeadingAttr.parse(heading.group(3))
                body = markdown.substring(start, pos).concat(
                    markdown.substring(pos + len(line))
                )
                break
        pos += len(line)

    return PartitionedMarkdown(
        markdown=body,
        yaml=front,
        heading_text=heading_text,
        heading_attr=heading_attr,
    )


def with_chapter_title_metadata(
    target_format: TargetFormat,
    partitioned: PartitionedMarkdown,
    chapter: ChapterInfo | None,
) -> TargetFormat:
    """Return a format carrying the chapter's title (and number, if any)."""
    metadata: dict[str, Any] = {"title": partitioned.heading_text}
    attr = partitioned.heading_attr
    unnumbered = attr is not None and "unnumbered" in attr.classes
    if chapter is not None and not unnumbered:
        metadata["chapter-number"] = chapter.number
        metadata["chapter-label"] = chapter.label
        if chapter.appendix:
            metadata["appendix"] = True
    if attr is not None and attr.id:
        metadata["title-id"] = attr.id
    return target_format.with_metadata(**metadata)


def with_book_title_metadata(target_format: TargetFormat, book: BookConfig) -> TargetFormat:
    """Return a format carrying book-level title/subtitle/author/date/abstract."""
    metadata = book.metadata()
    if not metadata:
        return target_format
    return target_format.with_metadata(**metadata)
