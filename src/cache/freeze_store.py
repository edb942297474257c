# src/cache/freeze_store.py - v1
"""On-disk freeze store under ``{project}/_freeze``.

Each (document, format) pair owns one slot directory holding a JSON
entry and copies of the result's supporting files. Writes are built in
a staging directory and renamed into the slot, so a reader sees either
the previous complete entry or no entry at all.

Unreadable entries and entries whose resource copies have vanished are
treated as misses: the freezer is an optimization, not a source of truth.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path

from bookpress.cache.base_freeze_store import BaseFreezeStore
from bookpress.cache.models import (
    Fingerprint,
    FreezeEntry,
    FreezeLookupResult,
    FreezePolicy,
)
from bookpress.core.errors import CacheCorruption
from bookpress.core.models import ExecutionResult
from bookpress.storage import layout
from bookpress.version import __version__

logger = logging.getLogger(__name__)

_SWAP_ATTEMPTS = 3


class FileFreezeStore(BaseFreezeStore):
    """File-based freeze store shared by every build of a project."""

    def __init__(self, project_dir: Path, freeze_dir: str = layout.FREEZE_DIR) -> None:
        self._project_dir = Path(project_dir)
        self._freeze_dir = freeze_dir

    @property
    def root(self) -> Path:
        return layout.freeze_root(self._project_dir, self._freeze_dir)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def lookup(
        self, fingerprint: Fingerprint, policy: FreezePolicy
    ) -> FreezeLookupResult:
        if policy == "never":
            return FreezeLookupResult()

        slot = self._slot(fingerprint.document, fingerprint.format)
        if not layout.entry_path(slot).exists():
            logger.debug(
                "Freeze miss (no entry) for %s (%s)",
                fingerprint.document, fingerprint.format,
            )
            return FreezeLookupResult()

        try:
            entry = self._read_entry(slot, fingerprint.document, fingerprint.format)
        except CacheCorruption as e:
            logger.warning("%s; re-executing", e)
            return FreezeLookupResult(corrupted=True)

        stale = entry.fingerprint != fingerprint.digest
        if stale and policy == "auto":
            logger.debug(
                "Freeze miss (fingerprint changed) for %s (%s)",
                fingerprint.document, fingerprint.format,
            )
            return FreezeLookupResult()
        if stale:
            logger.info(
                "Using frozen result for %s (%s) although its inputs changed",
                fingerprint.document, fingerprint.format,
            )

        try:
            restored = self._restore_files(slot, entry)
        except CacheCorruption as e:
            logger.warning("%s; re-executing", e)
            return FreezeLookupResult(corrupted=True)

        return FreezeLookupResult(hit=True, entry=restored, stale=stale)

    def _read_entry(self, slot: Path, document: str, format_name: str) -> FreezeEntry:
        path = layout.entry_path(slot)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            entry = FreezeEntry(**data)
        except Exception as e:
            raise CacheCorruption(document, format_name, str(e)) from e
        if entry.document != document or entry.format != format_name:
            raise CacheCorruption(
                document, format_name,
                f"entry belongs to {entry.document} ({entry.format})",
            )
        return entry

    def _restore_files(self, slot: Path, entry: FreezeEntry) -> FreezeEntry:
        """Copy frozen resources back into the project tree.

        Files that already exist in the project are never replaced: they
        are either the author's current version or identical output of
        the same execution.
        """
        cached_files = layout.files_dir(slot)
        missing = [rel for rel in entry.files if not (cached_files / rel).exists()]
        if missing:
            raise CacheCorruption(
                entry.document, entry.format,
                f"missing resource files: {', '.join(missing)}",
            )
        restored = sum(
            _restore_path(cached_files / rel, self._project_dir / rel)
            for rel in entry.files
        )
        logger.debug(
            "Restored %d file(s) for %s (%s)", restored, entry.document, entry.format
        )
        return entry

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    async def store(
        self, fingerprint: Fingerprint, result: ExecutionResult
    ) -> FreezeEntry:
        staging = self._new_staging_dir()
        try:
            files: list[str] = []
            for resource in result.supporting:
                try:
                    rel = layout.relative_to_project(self._project_dir, resource)
                except ValueError:
                    logger.warning(
                        "Supporting path %s is outside the project, not frozen", resource
                    )
                    continue
                source = self._project_dir / rel
                if not source.exists():
                    logger.debug("Supporting path %s does not exist, not frozen", rel)
                    continue
                _copy_path(source, layout.files_dir(staging) / rel)
                files.append(rel)

            frozen_result = result.model_copy(update={"supporting": files})
            entry = FreezeEntry(
                document=fingerprint.document,
                format=fingerprint.format,
                fingerprint=fingerprint.digest,
                result=frozen_result,
                files=files,
                created_at=datetime.now(timezone.utc),
                bookpress_version=__version__,
            )
            layout.entry_path(staging).write_text(
                entry.model_dump_json(indent=2), encoding="utf-8"
            )
            self._swap_into_place(
                staging, self._slot(fingerprint.document, fingerprint.format)
            )
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.debug(
            "Froze %s (%s): %d resource(s)",
            fingerprint.document, fingerprint.format, len(files),
        )
        return entry

    def _swap_into_place(self, staging: Path, slot: Path) -> None:
        """Rename a fully written staging dir onto the slot."""
        slot.parent.mkdir(parents=True, exist_ok=True)
        for attempt in range(_SWAP_ATTEMPTS):
            retired = self._retire(slot)
            try:
                os.replace(staging, slot)
            except OSError:
                # another build renamed its entry in between; retire it and retry
                if attempt == _SWAP_ATTEMPTS - 1:
                    raise
                continue
            finally:
                if retired is not None:
                    shutil.rmtree(retired, ignore_errors=True)
            return

    def _retire(self, slot: Path) -> Path | None:
        """Move an existing slot out of the way so it can be deleted."""
        if not slot.exists():
            return None
        retired = self._new_staging_dir(create=False)
        try:
            os.replace(slot, retired)
        except FileNotFoundError:
            return None
        return retired

    def _new_staging_dir(self, create: bool = True) -> Path:
        root = layout.staging_root(self._project_dir, self._freeze_dir)
        root.mkdir(parents=True, exist_ok=True)
        path = root / uuid.uuid4().hex
        if create:
            path.mkdir()
        return path

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def invalidate(self, document: str, format_name: str) -> bool:
        slot = self._slot(document, format_name)
        retired = self._retire(slot)
        if retired is None:
            return False
        shutil.rmtree(retired, ignore_errors=True)
        self._prune_empty_parents(slot.parent)
        logger.info("Invalidated freeze entry for %s (%s)", document, format_name)
        return True

    async def list_entries(self) -> list[FreezeEntry]:
        entries: list[FreezeEntry] = []
        if not self.root.is_dir():
            return entries

        for path in sorted(self.root.rglob(layout.ENTRY_FILE)):
            if layout.STAGING_DIR in path.relative_to(self.root).parts:
                continue
            try:
                entries.append(
                    FreezeEntry(**json.loads(path.read_text(encoding="utf-8")))
                )
            except Exception as e:
                logger.warning("Skipping unreadable freeze entry %s: %s", path, e)
        return entries

    async def clear(self, document: str | None = None) -> int:
        if document is None:
            count = len(await self.list_entries())
            shutil.rmtree(self.root, ignore_errors=True)
            return count

        doc_dir = layout.freeze_document_dir(
            self._project_dir, document, self._freeze_dir
        )
        if not doc_dir.is_dir():
            return 0
        count = 0
        for slot in sorted(p for p in doc_dir.iterdir() if p.is_dir()):
            if await self.invalidate(document, slot.name):
                count += 1
        return count

    def _slot(self, document: str, format_name: str) -> Path:
        return layout.freeze_slot_dir(
            self._project_dir, document, format_name, self._freeze_dir
        )

    def _prune_empty_parents(self, directory: Path) -> None:
        root = self.root
        while directory != root and root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent


def _copy_path(source: Path, target: Path) -> None:
    """Copy a file or directory tree, creating parents as needed."""
    target.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, target, dirs_exist_ok=True)
    else:
        shutil.copy2(source, target)


def _restore_path(source: Path, target: Path) -> int:
    """Copy frozen files back, leaving files already in the project alone."""
    if source.is_dir():
        pairs = [
            (path, target / path.relative_to(source))
            for path in sorted(source.rglob("*"))
            if path.is_file()
        ]
    else:
        pairs = [(source, target)]
    restored = 0
    for src, dest in pairs:
        if dest.exists():
            continue
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
        restored += 1
    return restored
