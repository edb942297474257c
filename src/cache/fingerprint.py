# src/cache/fingerprint.py - v2
"""Fingerprint engine: stable identity of a document rendered for a format.

The digest covers the raw source bytes, the format name, the execution
engine, every format option that can change rendered output, and the
content of resource files the engine reads besides the source (an
authored ``{stem}_files/`` directory, for instance).
Presentation-irrelevant options (verbosity, freeze policy itself, ...)
are dropped so toggling them does not invalidate the freezer.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Mapping

from bookpress.cache.models import Fingerprint
from bookpress.core.models import Document, TargetFormat

DEFAULT_EXCLUDED_OPTIONS: frozenset[str] = frozenset(
    {
        "quiet",
        "verbose",
        "log-level",
        "keep-md",
        "keep-intermediates",
        "freeze",
        "output-file",
    }
)


def compute_fingerprint(
    document: Document,
    target_format: TargetFormat,
    project_dir: Path,
    engine: str = "",
    exclude_options: Iterable[str] = DEFAULT_EXCLUDED_OPTIONS,
    resources: Iterable[Path] = (),
) -> Fingerprint:
    """Read the document source and fingerprint it for ``target_format``.

    Args:
        resources: Files or directories the engine reads as inputs.

    Raises:
        OSError: If the source or a resource cannot be read.
    """
    content = document.input_path(project_dir).read_bytes()
    return fingerprint_content(
        document,
        target_format,
        content,
        engine=engine,
        exclude_options=exclude_options,
        resources_digest=resources_digest(project_dir, resources),
    )


def fingerprint_content(
    document: Document,
    target_format: TargetFormat,
    content: bytes,
    engine: str = "",
    exclude_options: Iterable[str] = DEFAULT_EXCLUDED_OPTIONS,
    resources_digest: str = "",
) -> Fingerprint:
    """Pure fingerprint of already-loaded source bytes."""
    payload = {
        "document": document.path,
        "format": target_format.name,
        "engine": engine,
        "source": hashlib.sha256(content).hexdigest(),
        "options": identity_options(target_format.options, exclude_options),
    }
    if resources_digest:
        payload["resources"] = resources_digest
    canonical = json.dumps(
        payload, sort_keys=True, separators=(",", ":"), default=_json_default
    )
    return Fingerprint(
        document=document.path,
        format=target_format.name,
        digest=hashlib.sha256(canonical.encode("utf-8")).hexdigest(),
    )


def resources_digest(project_dir: Path, resources: Iterable[Path]) -> str:
    """Digest of file names and bytes under ``resources``. Empty if none exist."""
    files: list[Path] = []
    for resource in resources:
        path = Path(project_dir) / resource
        if path.is_dir():
            files.extend(p for p in path.rglob("*") if p.is_file())
        elif path.is_file():
            files.append(path)
    if not files:
        return ""

    digest = hashlib.sha256()
    for path in sorted(set(files)):
        try:
            rel = PurePosixPath(*path.relative_to(project_dir).parts).as_posix()
        except ValueError:
            rel = path.as_posix()
        digest.update(rel.encode("utf-8"))
        digest.update(b"\0")
        digest.update(hashlib.sha256(path.read_bytes()).digest())
    return digest.hexdigest()


def identity_options(
    options: Mapping[str, Any], exclude_options: Iterable[str] = DEFAULT_EXCLUDED_OPTIONS
) -> dict[str, Any]:
    """Return the subset of options that affects rendered output."""
    excluded = set(exclude_options)
    return {
        key: _plain(value)
        for key, value in options.items()
        if key not in excluded
    }


def _plain(value: Any) -> Any:
    """Convert read-only mappings and tuples into JSON-friendly values."""
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(v) for v in value)
    return value


def _json_default(value: Any) -> str:
    return str(value)
