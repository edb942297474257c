# src/book/items.py - v1
"""Book item model: the ordered table of contents.

Book order is authoritative for merging and numbering, independent of
the order in which executions complete.

Numbering rules:
  - the index (landing) page is never numbered
  - ``part`` markers take no number and do not reset numbering
  - an ``appendix`` marker takes no number and restarts numbering at 1;
    chapters after it are labelled with letters (A, B, ...)
"""

from __future__ import annotations

import string
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Collection, Literal

from pydantic import BaseModel, ConfigDict

from bookpress.config.project import BookConfig, PartEntry
from bookpress.core.models import Document

BookItemType = Literal["chapter", "part", "appendix"]


class BookItem(BaseModel):
    """One entry in the table of contents.

    Chapters carry a ``file``; structural markers carry display ``text``.
    """

    model_config = ConfigDict(frozen=True)

    type: BookItemType
    file: str | None = None
    text: str | None = None

    @property
    def document(self) -> Document | None:
        return Document(path=self.file) if self.file else None


@dataclass(frozen=True)
class ChapterInfo:
    """Chapter number of a document in book order."""

    number: int
    appendix: bool = False

    @property
    def label(self) -> str:
        if self.appendix:
            return _letter_label(self.number)
        return str(self.number)


def book_items(book: BookConfig) -> list[BookItem]:
    """Flatten the book configuration into ordered items."""
    items: list[BookItem] = []
    for entry in book.chapters:
        if isinstance(entry, PartEntry):
            items.append(BookItem(type="part", text=entry.part))
            items.extend(BookItem(type="chapter", file=f) for f in entry.chapters)
        else:
            items.append(BookItem(type="chapter", file=entry))
    if book.appendices:
        items.append(BookItem(type="appendix", text=book.appendices_title))
        items.extend(BookItem(type="chapter", file=f) for f in book.appendices)
    return items


def book_documents(items: list[BookItem]) -> list[Document]:
    """Documents referenced by the items, in book order, without duplicates."""
    documents: list[Document] = []
    for item in items:
        doc = item.document
        if doc is not None and doc not in documents:
            documents.append(doc)
    return documents


def is_index_page(document: Document | str, index_file: str = "index.md") -> bool:
    """Whether a document is the book's landing page."""
    path = document.path if isinstance(document, Document) else document
    return PurePosixPath(path) == PurePosixPath(index_file)


def chapter_numbers(
    items: list[BookItem],
    index_file: str = "index.md",
    headed: Collection[str] | None = None,
) -> dict[str, ChapterInfo]:
    """Assign chapter numbers to every numbered document.

    When ``headed`` is given only those documents (the ones with a
    visible heading) take a number.
    """
    numbers: dict[str, ChapterInfo] = {}
    counter = 0
    in_appendix = False
    for item in items:
        if item.type == "appendix":
            in_appendix = True
            counter = 0
            continue
        if item.type == "part" or item.file is None:
            continue
        if is_index_page(item.file, index_file) or item.file in numbers:
            continue
        if headed is not None and item.file not in headed:
            continue
        counter += 1
        numbers[item.file] = ChapterInfo(number=counter, appendix=in_appendix)
    return numbers


def _letter_label(number: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    letters = ""
    while number > 0:
        number, rem = divmod(number - 1, 26)
        letters = string.ascii_uppercase[rem] + letters
    return letters
