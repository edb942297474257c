# src/config/project.py - v1
"""Project configuration: book structure and formats loaded from ``_book.yml``.

Example::

    book:
      title: "Data Pipelines"
      author: "J. Doe"
      chapters:
        - index.md
        - intro.md
        - part: "Foundations"
          chapters: [basics.md]
      appendices: [reference.md]
    freeze: auto
    formats:
      html: {per-document: true}
      pdf: {renderer: pandoc}
"""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Mapping, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bookpress.cache.models import FreezePolicy, resolve_freeze_policy
from bookpress.config.settings import ConfigurationError, Settings
from bookpress.core.models import (
    FormatCapability,
    MergedRenderer,
    PerDocumentRenderer,
    TargetFormat,
)

if TYPE_CHECKING:
    from bookpress.render.base_renderer import BaseRenderer

logger = logging.getLogger(__name__)

BOOK_METADATA_KEYS = ("title", "subtitle", "author", "date", "abstract")


class PartEntry(BaseModel):
    """A ``part:`` grouping in the chapter list."""

    part: str
    chapters: list[str] = Field(default_factory=list)


class BookConfig(BaseModel):
    """The ``book:`` section."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    subtitle: str | None = None
    author: str | list[str] | None = None
    date: str | None = None
    abstract: str | None = None
    index: str = "index.md"
    chapters: list[Union[str, PartEntry]] = Field(default_factory=list)
    appendices: list[str] = Field(default_factory=list)
    appendices_title: str = Field(default="Appendices", alias="appendices-title")

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v: Any) -> Any:
        # YAML loads an unquoted 2026-01-01 as a date
        if isinstance(v, dt.date):
            return v.isoformat()
        return v

    def metadata(self) -> dict[str, Any]:
        """Book-level title metadata, skipping unset keys."""
        values = {key: getattr(self, key) for key in BOOK_METADATA_KEYS}
        return {key: value for key, value in values.items() if value}

    def files(self) -> list[str]:
        """Every chapter and appendix file in book order."""
        files: list[str] = []
        for entry in self.chapters:
            if isinstance(entry, PartEntry):
                files.extend(entry.chapters)
            else:
                files.append(entry)
        files.extend(self.appendices)
        return files


class FormatConfig(BaseModel):
    """One entry of the ``formats:`` section."""

    model_config = ConfigDict(populate_by_name=True)

    per_document: bool = Field(default=False, alias="per-document")
    renderer: Literal["markdown", "pandoc"] = "markdown"
    extension: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


def _default_formats() -> dict[str, FormatConfig]:
    return {"html": FormatConfig(per_document=True, extension="md")}


class ProjectConfig(BaseModel):
    """Validated project configuration."""

    book: BookConfig
    freeze: bool | str | None = None
    formats: dict[str, FormatConfig] = Field(default_factory=_default_formats)

    def freeze_policy(self, default: FreezePolicy = "auto") -> FreezePolicy:
        """Project freeze policy, falling back to ``default``."""
        try:
            return resolve_freeze_policy(self.freeze, default)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def target_formats(
        self,
        renderers: Mapping[str, BaseRenderer],
        names: list[str] | None = None,
    ) -> list[TargetFormat]:
        """Build immutable TargetFormat values for the requested format names.

        Raises:
            ConfigurationError: Unknown format or renderer name.
        """
        selected = names or list(self.formats)
        formats: list[TargetFormat] = []
        for name in selected:
            cfg = self.formats.get(name)
            if cfg is None:
                raise ConfigurationError(f"Format '{name}' is not configured")
            renderer = renderers.get(cfg.renderer)
            if renderer is None:
                raise ConfigurationError(
                    f"Format '{name}' uses unknown renderer '{cfg.renderer}'"
                )
            capability: FormatCapability
            if cfg.per_document:
                capability = PerDocumentRenderer(renderer=renderer)
            else:
                capability = MergedRenderer(renderer=renderer)
            formats.append(
                TargetFormat(
                    name=name,
                    capability=capability,
                    extension=cfg.extension or name,
                    options=cfg.options,
                    metadata=cfg.metadata,
                )
            )
        return formats


def load_project(project_dir: Path, settings: Settings | None = None) -> ProjectConfig:
    """Load and validate the project configuration.

    Raises:
        ConfigurationError: Missing/malformed file or missing chapter sources.
    """
    settings = settings or Settings()
    config_path = Path(project_dir) / settings.book_config_file
    if not config_path.exists():
        raise ConfigurationError(f"No {settings.book_config_file} found in {project_dir}")

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed {config_path.name}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{config_path.name} must be a YAML mapping, got {type(data).__name__}"
        )
    if "book" not in data:
        raise ConfigurationError(f"{config_path.name} has no 'book' section")

    try:
        project = ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {config_path.name}: {e}") from e

    missing = [f for f in project.book.files() if not (Path(project_dir) / f).is_file()]
    if missing:
        raise ConfigurationError(
            f"Book chapters not found: {', '.join(missing)}"
        )

    logger.debug(
        "Loaded project %s: %d file(s), formats=%s",
        project_dir, len(project.book.files()), ",".join(project.formats),
    )
    return project
