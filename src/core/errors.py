# src/core/errors.py - v1
"""Error taxonomy for book builds.

A cache miss is not an error: freeze lookups return a result with
``hit=False``. ``CacheCorruption`` never escapes the freeze store.
"""

from __future__ import annotations


class BookpressError(Exception):
    """Base class for all bookpress errors."""


class CacheCorruption(BookpressError):
    """A stored freeze entry is unreadable or its resources are missing."""

    def __init__(self, document: str, format_name: str, reason: str) -> None:
        self.document = document
        self.format_name = format_name
        self.reason = reason
        super().__init__(
            f"Corrupt freeze entry for {document} ({format_name}): {reason}"
        )


class ExecutionFailure(BookpressError):
    """The execution adapter failed for a (document, format) pair."""

    def __init__(self, document: str, format_name: str, cause: BaseException) -> None:
        self.document = document
        self.format_name = format_name
        self.cause = cause
        super().__init__(f"Execution of {document} ({format_name}) failed: {cause}")


class MergeInvariantViolation(BookpressError):
    """A book item references a document with no recorded execution result."""

    def __init__(self, document: str, format_name: str) -> None:
        self.document = document
        self.format_name = format_name
        super().__init__(
            f"Executed file not found for book item: {document} ({format_name})"
        )


class RenderFailure(BookpressError):
    """The renderer failed to produce a final artifact."""

    def __init__(self, format_name: str, target: str, cause: BaseException) -> None:
        self.format_name = format_name
        self.target = target
        self.cause = cause
        super().__init__(f"Rendering {target} ({format_name}) failed: {cause}")


class BuildCancelled(BookpressError):
    """The build was aborted before finalization."""
