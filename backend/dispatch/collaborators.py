"""
AssetWatch Build Collaborators.

Contracts for the build pipeline, cleanup routine and file enumeration
the watcher drives, plus simple default implementations.
Requires Python 3.11+.
"""

import asyncio
import glob
import shutil
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Protocol

from utils.logger import LoggerMixin
from utils.paths import source_to_dest


class BuildPipeline(Protocol):
    """Transforms source files into destination artifacts."""

    async def process_build(self, files: Sequence[Path], incremental: bool) -> None:
        """Build a non-empty ordered list of absolute source paths."""
        ...


class Cleaner(Protocol):
    """Removes destination artifacts."""

    async def process_clean(self, dest_path: Path, incremental: bool) -> None:
        """Remove a destination file or directory."""
        ...


Enumerator = Callable[[str], Awaitable[list[Path]]]


def _glob_files(pattern: str) -> list[Path]:
    paths = (Path(match) for match in glob.glob(pattern, recursive=True))
    return sorted(path for path in paths if path.is_file())


async def glob_enumerate(pattern: str) -> list[Path]:
    """
    Enumerate files matching a recursive glob pattern.

    Args:
        pattern: Pattern like '/site/source/**/*.scss'

    Returns:
        Sorted list of matching files, directories excluded
    """
    return await asyncio.to_thread(_glob_files, pattern)


class CopyPipeline(LoggerMixin):
    """
    Minimal build pipeline mirroring source files into the destination.

    Useful on its own for static assets that need no transformation.
    """

    def __init__(self, source: Path, dest: Path) -> None:
        self._source = source
        self._dest = dest

    def _copy(self, files: Sequence[Path]) -> list[Path]:
        written: list[Path] = []
        for file in files:
            target = source_to_dest(file, self._source, self._dest)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(file, target)
            written.append(target)
        return written

    async def process_build(self, files: Sequence[Path], incremental: bool) -> None:
        """Copy each file to its mirrored destination path."""
        written = await asyncio.to_thread(self._copy, list(files))
        self.log.info("build_completed", files=len(written), incremental=incremental)


class RemoveCleaner(LoggerMixin):
    """Cleanup routine removing a mirrored destination file or directory."""

    def _remove(self, dest_path: Path) -> bool:
        if dest_path.is_dir() and not dest_path.is_symlink():
            shutil.rmtree(dest_path)
            return True
        try:
            dest_path.unlink()
        except FileNotFoundError:
            return False
        return True

    async def process_clean(self, dest_path: Path, incremental: bool) -> None:
        """Remove the destination path; a missing path is not an error."""
        removed = await asyncio.to_thread(self._remove, dest_path)
        if removed:
            self.log.info("clean_completed", path=str(dest_path), incremental=incremental)
