#!/usr/bin/env python3
"""
AssetWatch Command Line Watcher.

Watches a source tree, mirrors changes into a destination tree and
optionally drives LiveReload, until interrupted.
Requires Python 3.11+.

Usage:
    python scripts/watch.py source/ dest/ --livereload
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from dispatch.collaborators import CopyPipeline, RemoveCleaner
from utils.config import Settings, get_settings
from utils.errors import AssetWatchError
from utils.logger import configure_logging, get_logger
from watcher.orchestrator import WatchOrchestrator


logger = get_logger("watch")


def build_settings(args: argparse.Namespace) -> Settings:
    """Overlay command line arguments onto environment settings."""
    settings = get_settings().model_copy(deep=True)
    settings.cli = True

    if args.source is not None:
        settings.paths.source = args.source.resolve()
    if args.dest is not None:
        settings.paths.dest = args.dest.resolve()
    if args.livereload:
        settings.livereload.enabled = True
    if args.port is not None:
        settings.livereload.port = args.port
    if args.debug:
        settings.debug = True

    return settings


async def run(settings: Settings, source_glob: str | None, dest_glob: str | None) -> None:
    """
    Watch until cancelled.

    Args:
        settings: Effective settings
        source_glob: Optional source filter like '**/*.html'
        dest_glob: Optional destination filter like '**/*.css'
    """
    pipeline = CopyPipeline(settings.paths.source, settings.paths.dest)

    async with WatchOrchestrator(settings, pipeline, RemoveCleaner()) as orchestrator:
        await orchestrator.process_watch(source_glob, dest_glob)
        logger.info("watching", press="Ctrl+C to stop")
        await asyncio.Event().wait()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Watch a source tree and rebuild changed assets incrementally"
    )
    parser.add_argument("source", type=Path, nargs="?", help="Source directory")
    parser.add_argument("dest", type=Path, nargs="?", help="Destination directory")
    parser.add_argument(
        "--source-glob",
        default=None,
        help="Only watch source files matching this glob (e.g. '**/*.html')",
    )
    parser.add_argument(
        "--dest-glob",
        default=None,
        help="Only watch destination files matching this glob (e.g. '**/*.css')",
    )
    parser.add_argument(
        "--livereload",
        action="store_true",
        help="Start a LiveReload server and notify browsers of destination changes",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="LiveReload port (default: 35729)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log suppressed duplicate change events",
    )

    args = parser.parse_args()
    settings = build_settings(args)
    configure_logging(settings)

    try:
        asyncio.run(run(settings, args.source_glob, args.dest_glob))
    except KeyboardInterrupt:
        logger.info("watch_interrupted")
    except AssetWatchError as e:
        logger.error("watch_failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
