# src/storage/layout.py - v1
"""Project directory structure definition.

Defines path conventions for the freezer, per-document intermediates and
rendered output. Everything is relative to the project root.

Freezer layout::

    {project}/_freeze/{document path without extension}/{format}/
        execute-results.json     serialized FreezeEntry
        files/                   copies of the result's supporting resources
    {project}/_freeze/.staging/  in-progress writes, renamed into place
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

FREEZE_DIR = "_freeze"
OUTPUT_DIR = "_book"
STAGING_DIR = ".staging"
ENTRY_FILE = "execute-results.json"
FILES_DIR = "files"
INTERMEDIATES_SUFFIX = "_files"


def freeze_root(project_dir: Path, freeze_dir: str = FREEZE_DIR) -> Path:
    """Return the freezer root for a project."""
    return project_dir / freeze_dir


def staging_root(project_dir: Path, freeze_dir: str = FREEZE_DIR) -> Path:
    """Return the staging directory used for atomic freezer writes."""
    return freeze_root(project_dir, freeze_dir) / STAGING_DIR


def freeze_document_dir(
    project_dir: Path, document_path: str, freeze_dir: str = FREEZE_DIR
) -> Path:
    """Return the freezer directory holding every format of a document."""
    doc = PurePosixPath(document_path)
    return freeze_root(project_dir, freeze_dir).joinpath(
        *doc.parent.parts, doc.stem
    )


def freeze_slot_dir(
    project_dir: Path,
    document_path: str,
    format_name: str,
    freeze_dir: str = FREEZE_DIR,
) -> Path:
    """Return the canonical slot for one (document, format) freeze entry."""
    return freeze_document_dir(project_dir, document_path, freeze_dir) / format_name


def entry_path(slot_dir: Path) -> Path:
    return slot_dir / ENTRY_FILE


def files_dir(slot_dir: Path) -> Path:
    return slot_dir / FILES_DIR


def intermediates_dir(project_dir: Path, document_path: str) -> Path:
    """Return the working directory an execution writes figures and data into."""
    doc = PurePosixPath(document_path)
    return project_dir.joinpath(*doc.parent.parts, f"{doc.stem}{INTERMEDIATES_SUFFIX}")


def output_root(project_dir: Path, output_dir: str = OUTPUT_DIR) -> Path:
    return project_dir / output_dir


def document_output_path(
    project_dir: Path,
    document_path: str,
    extension: str,
    output_dir: str = OUTPUT_DIR,
) -> Path:
    """Return where a per-document render of ``document_path`` is written."""
    doc = PurePosixPath(document_path)
    return output_root(project_dir, output_dir).joinpath(
        *doc.parent.parts, f"{doc.stem}.{extension}"
    )


def relative_to_project(project_dir: Path, path: Path | str) -> str:
    """Normalize a path to a POSIX path relative to the project root.

    Raises:
        ValueError: If an absolute path lies outside the project.
    """
    p = Path(path)
    if p.is_absolute():
        p = p.resolve().relative_to(project_dir.resolve())
    return PurePosixPath(*p.parts).as_posix()
