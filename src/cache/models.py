# src/cache/models.py - v1
"""Freeze cache domain models: Fingerprint, FreezeEntry, FreezeLookupResult."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from bookpress.core.models import ExecutionResult

FreezePolicy = Literal["never", "always", "auto"]

FREEZE_POLICIES: tuple[str, ...] = ("never", "always", "auto")


def resolve_freeze_policy(
    value: bool | str | None, default: FreezePolicy = "auto"
) -> FreezePolicy:
    """Normalize a configured freeze value.

    ``true`` maps to ``always`` and ``false`` to ``never``, matching how
    projects usually spell it in YAML.
    """
    if value is None:
        return default
    if value is True:
        return "always"
    if value is False:
        return "never"
    normalized = str(value).strip().lower()
    if normalized in ("true", "yes"):
        return "always"
    if normalized in ("false", "no"):
        return "never"
    if normalized not in FREEZE_POLICIES:
        raise ValueError(f"Unsupported freeze policy: {value!r}")
    return normalized  # type: ignore[return-value]


class Fingerprint(BaseModel):
    """Identity of one document rendered for one format."""

    model_config = ConfigDict(frozen=True)

    document: str
    format: str
    digest: str


class FreezeEntry(BaseModel):
    """Persisted execution result for a (document, format) slot.

    ``files`` lists project-relative resource paths whose copies live
    under the slot's ``files/`` directory.
    """

    document: str
    format: str
    fingerprint: str
    result: ExecutionResult
    files: list[str] = Field(default_factory=list)
    created_at: datetime
    bookpress_version: str


class FreezeLookupResult(BaseModel):
    """Outcome of a freeze lookup. A miss is ``hit=False``, never an error."""

    hit: bool = False
    entry: FreezeEntry | None = None
    stale: bool = False
    corrupted: bool = False

    @property
    def result(self) -> ExecutionResult | None:
        return self.entry.result if self.entry is not None else None
