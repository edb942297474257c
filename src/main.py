# src/main.py - v1
"""CLI entry point: render, freeze list, freeze clean commands.

Usage:
    bookpress render [project] [--to html,pdf] [--freeze auto] [files ...]
    bookpress freeze list [project]
    bookpress freeze clean [project] [--document intro.md]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from bookpress.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _setup_logging(args.verbose)

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bookpress",
        description=f"bookpress v{__version__} - incremental book builds",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- render ---
    p_render = subparsers.add_parser("render", help="Render a book project")
    p_render.add_argument(
        "project", type=Path, nargs="?", default=Path("."),
        help="Project directory (default: current directory)",
    )
    p_render.add_argument(
        "files", nargs="*", default=[],
        help="Render only these documents (full book for single-file formats)",
    )
    p_render.add_argument(
        "-t", "--to", default=None,
        help="Comma-separated formats to render (default: all configured)",
    )
    p_render.add_argument(
        "--freeze", choices=["never", "always", "auto"], default=None,
        help="Freeze policy for this build",
    )
    p_render.set_defaults(func=_cmd_render)

    # --- freeze ---
    p_freeze = subparsers.add_parser("freeze", help="Inspect or clear the freezer")
    freeze_sub = p_freeze.add_subparsers(dest="freeze_command")

    p_list = freeze_sub.add_parser("list", help="List frozen executions")
    p_list.add_argument("project", type=Path, nargs="?", default=Path("."))
    p_list.set_defaults(func=_cmd_freeze_list)

    p_clean = freeze_sub.add_parser("clean", help="Remove frozen executions")
    p_clean.add_argument("project", type=Path, nargs="?", default=Path("."))
    p_clean.add_argument(
        "--document", default=None,
        help="Only remove entries of this document (project-relative path)",
    )
    p_clean.set_defaults(func=_cmd_freeze_clean)

    return parser


async def _cmd_render(args: argparse.Namespace) -> int:
    """Render the project and print the produced files."""
    from bookpress.api.facade import render_project

    formats = [f.strip() for f in args.to.split(",") if f.strip()] if args.to else None
    report = await render_project(
        args.project,
        formats=formats,
        documents=args.files or None,
        policy=args.freeze,
    )

    for rendered in report.files:
        print(f"  [{rendered.format}] {rendered.file}")
    print(f"\nBuild {report.build_id} {report.status}:")
    print(f"  Executed:  {report.stats.executed}")
    print(f"  Frozen:    {report.stats.cache_hits}")
    print(f"  Files:     {len(report.files)}")
    print(f"  Duration:  {report.stats.duration_seconds:.1f}s")
    for error in report.errors:
        logger.error("%s", error)
    return 0 if report.success else 1


async def _cmd_freeze_list(args: argparse.Namespace) -> int:
    """List freezer entries of a project."""
    store = _freeze_store(args.project)
    entries = await store.list_entries()
    if not entries:
        print("No frozen executions.")
        return 0
    for entry in entries:
        print(
            f"  {entry.document} [{entry.format}] "
            f"{entry.fingerprint[:12]} {entry.created_at:%Y-%m-%d %H:%M} "
            f"({len(entry.files)} file(s))"
        )
    return 0


async def _cmd_freeze_clean(args: argparse.Namespace) -> int:
    """Remove freezer entries of a project (or of one document)."""
    store = _freeze_store(args.project)
    removed = await store.clear(args.document)
    print(f"Removed {removed} frozen execution(s).")
    return 0


def _freeze_store(project: Path):
    from bookpress.cache.freeze_store import FileFreezeStore
    from bookpress.config.settings import Settings

    settings = Settings()
    return FileFreezeStore(project.resolve(), settings.freeze_dir)


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage from settings."""
    from bookpress.config.settings import Settings
    from bookpress.logging.logger import setup_logging

    settings = Settings()
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
