# src/core/mapped_text.py - v1
"""Span-addressable text that remembers where each character came from.

Execution results carry their markdown as ``MappedText`` so an offset in
merged or partitioned output can be mapped back to a source file for
error reporting. All operations return new values.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class TextSpan(BaseModel):
    """A run of text with an optional origin.

    ``offset`` is the position of ``text[0]`` within ``source``.
    Spans without a source are generated text (markers, separators).
    """

    text: str
    source: str | None = None
    offset: int = 0


class SourceLocation(BaseModel):
    """Position inside an original source file."""

    source: str
    offset: int


class MappedText(BaseModel):
    """Immutable-by-convention sequence of text spans."""

    spans: list[TextSpan] = Field(default_factory=list)

    @classmethod
    def from_source(cls, text: str, source: str, offset: int = 0) -> MappedText:
        """Wrap text read from ``source`` starting at ``offset``."""
        if not text:
            return cls()
        return cls(spans=[TextSpan(text=text, source=source, offset=offset)])

    @classmethod
    def from_text(cls, text: str) -> MappedText:
        """Wrap generated text that has no source."""
        if not text:
            return cls()
        return cls(spans=[TextSpan(text=text)])

    @property
    def value(self) -> str:
        return "".join(span.text for span in self.spans)

    def __str__(self) -> str:
        return self.value

    def __len__(self) -> int:
        return sum(len(span.text) for span in self.spans)

    def concat(self, *parts: MappedText | str) -> MappedText:
        """Return a new text with ``parts`` appended."""
        spans = [span.model_copy() for span in self.spans]
        for part in parts:
            if isinstance(part, str):
                if part:
                    spans.append(TextSpan(text=part))
            else:
                spans.extend(span.model_copy() for span in part.spans)
        return MappedText(spans=_coalesce(spans))

    def __add__(self, other: MappedText | str) -> MappedText:
        return self.concat(other)

    def substring(self, start: int, end: int | None = None) -> MappedText:
        """Slice by character offsets, keeping provenance."""
        total = len(self)
        if end is None or end > total:
            end = total
        start = max(0, start)
        if start >= end:
            return MappedText()

        spans: list[TextSpan] = []
        pos = 0
        for span in self.spans:
            span_end = pos + len(span.text)
            lo = max(start, pos)
            hi = min(end, span_end)
            if lo < hi:
                local = lo - pos
                spans.append(
                    TextSpan(
                        text=span.text[local : hi - pos],
                        source=span.source,
                        offset=span.offset + local if span.source else 0,
                    )
                )
            pos = span_end
            if pos >= end:
                break
        return MappedText(spans=spans)

    def map_offset(self, index: int) -> SourceLocation | None:
        """Map an offset in this text back to its source, if it has one."""
        if index < 0:
            return None
        pos = 0
        for span in self.spans:
            span_end = pos + len(span.text)
            if pos <= index < span_end:
                if span.source is None:
                    return None
                return SourceLocation(
                    source=span.source, offset=span.offset + (index - pos)
                )
            pos = span_end
        return None

    def sources(self) -> list[str]:
        """Distinct sources in order of first appearance."""
        seen: list[str] = []
        for span in self.spans:
            if span.source and span.source not in seen:
                seen.append(span.source)
        return seen


def _coalesce(spans: list[TextSpan]) -> list[TextSpan]:
    """Merge neighbouring spans that are contiguous in the same source."""
    merged: list[TextSpan] = []
    for span in spans:
        if not span.text:
            continue
        if merged:
            prev = merged[-1]
            if prev.source is None and span.source is None:
                merged[-1] = TextSpan(text=prev.text + span.text)
                continue
            if (
                prev.source is not None
                and prev.source == span.source
                and prev.offset + len(prev.text) == span.offset
            ):
                merged[-1] = TextSpan(
                    text=prev.text + span.text,
                    source=prev.source,
                    offset=prev.offset,
                )
                continue
        merged.append(span)
    return merged
