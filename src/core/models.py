# src/core/models.py - v1
"""Core domain models: Document, TargetFormat, ExecutionResult, RenderedFile.

TargetFormat values are immutable. Deriving a chapter- or book-level
variant goes through ``with_metadata()`` / ``with_options()``, which
return a new value with deep-copied mappings so no two chapters can
alias the same metadata dict.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from bookpress.core.mapped_text import MappedText

if TYPE_CHECKING:
    from bookpress.cache.models import Fingerprint
    from bookpress.render.base_renderer import BaseRenderer


class Document(BaseModel):
    """A source document identified by its project-relative POSIX path."""

    model_config = ConfigDict(frozen=True)

    path: str

    @classmethod
    def from_path(cls, path: Path | str, project_dir: Path | None = None) -> Document:
        """Build a Document from a filesystem path, relative to ``project_dir``."""
        p = Path(path)
        if project_dir is not None and p.is_absolute():
            p = p.relative_to(project_dir)
        return cls(path=PurePosixPath(*p.parts).as_posix())

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    @property
    def parent(self) -> str:
        parent = PurePosixPath(self.path).parent.as_posix()
        return "" if parent == "." else parent

    def input_path(self, project_dir: Path) -> Path:
        return project_dir / self.path

    def __str__(self) -> str:
        return self.path


# === Format capabilities ===


@dataclass(frozen=True)
class PerDocumentRenderer:
    """Format renders one output per document (e.g. html pages)."""

    renderer: BaseRenderer
    kind: Literal["per_document"] = "per_document"


@dataclass(frozen=True)
class MergedRenderer:
    """Format renders the whole book as a single artifact (e.g. pdf, epub)."""

    renderer: BaseRenderer
    kind: Literal["merged"] = "merged"


FormatCapability = Union[PerDocumentRenderer, MergedRenderer]


def _freeze_mapping(value: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(copy.deepcopy(dict(value or {})))


@dataclass(frozen=True)
class TargetFormat:
    """A named output format with its resolved options and metadata."""

    name: str
    capability: FormatCapability
    extension: str = ""
    options: Mapping[str, Any] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", _freeze_mapping(self.options))
        object.__setattr__(self, "metadata", _freeze_mapping(self.metadata))
        if not self.extension:
            object.__setattr__(self, "extension", self.name)

    @property
    def is_per_document(self) -> bool:
        return isinstance(self.capability, PerDocumentRenderer)

    def option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def with_metadata(self, **updates: Any) -> TargetFormat:
        """Return a new format with ``updates`` merged into its metadata."""
        metadata = copy.deepcopy(dict(self.metadata))
        metadata.update(updates)
        return replace(self, metadata=metadata)

    def with_options(self, **updates: Any) -> TargetFormat:
        """Return a new format with ``updates`` merged into its options."""
        options = copy.deepcopy(dict(self.options))
        options.update(updates)
        return replace(self, options=options)


# === Execution ===


class Dependency(BaseModel):
    """A script/style dependency a document asks to be injected."""

    name: str
    version: str | None = None
    scripts: list[str] = Field(default_factory=list)
    stylesheets: list[str] = Field(default_factory=list)
    head: str | None = None


class ExecutionResult(BaseModel):
    """Markdown plus side artifacts produced by executing a document."""

    markdown: MappedText = Field(default_factory=MappedText)
    supporting: list[str] = Field(default_factory=list)
    filters: list[str] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    preserve: dict[str, str] = Field(default_factory=dict)


@dataclass
class ExecutedDocument:
    """An execution result bound to the document and format it belongs to.

    Owned by a single build until it is merged or handed to a renderer.
    For merged books ``document`` is synthetic and ``sources`` lists the
    chapters folded into it.
    """

    document: Document
    format: TargetFormat
    result: ExecutionResult
    fingerprint: Fingerprint | None = None
    from_cache: bool = False
    output_file: str | None = None
    sources: list[Document] = field(default_factory=list)


class RenderedFile(BaseModel):
    """Final artifact produced for a format."""

    format: str
    file: Path
    sources: list[str] = Field(default_factory=list)
    merged: bool = False
