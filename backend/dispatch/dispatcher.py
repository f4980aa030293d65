"""
AssetWatch Build Dispatcher.

Decides which source files a change implies rebuilding and hands them to
the build pipeline.
Requires Python 3.11+.
"""

from collections.abc import Iterable
from pathlib import Path

from dispatch.collaborators import BuildPipeline, Enumerator, glob_enumerate
from utils.logger import LoggerMixin
from utils.paths import file_extension, trim_path


class BuildDispatcher(LoggerMixin):
    """
    Turns a changed source path into a minimal rebuild request.

    A regular file rebuilds only itself. An include file (base name
    starting with the include prefix) cannot be built alone; when its
    extension can embed includes, every file of that extension under the
    source tree is rebuilt, since any of them may pull it in.
    """

    def __init__(
        self,
        source_root: Path,
        pipeline: BuildPipeline,
        include_prefix: str,
        include_file_types: Iterable[str],
        enumerate_files: Enumerator = glob_enumerate,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            source_root: Root of the source tree
            pipeline: Build pipeline receiving the files
            include_prefix: Base name prefix marking include files
            include_file_types: Extensions whose files can embed includes
            enumerate_files: Glob enumeration used for fan-out rebuilds
        """
        self._source_root = source_root
        self._pipeline = pipeline
        self._include_prefix = include_prefix
        self._include_file_types = {ext.lower() for ext in include_file_types}
        self._enumerate = enumerate_files

    def is_include(self, path: str | Path) -> bool:
        """Check if a path names an include file."""
        return bool(self._include_prefix) and Path(path).name.startswith(self._include_prefix)

    async def files_to_build(self, path: str | Path) -> list[Path]:
        """
        Determine the files a changed source path requires rebuilding.

        Args:
            path: Changed file like '/site/source/css/_mixins.scss'

        Returns:
            Files to rebuild, possibly empty
        """
        path = Path(path)

        if not self.is_include(path):
            return [path]

        ext = file_extension(path)
        if ext not in self._include_file_types:
            return []

        # Any file of this type could embed the include, so rebuild them all
        return await self._enumerate(f"{self._source_root}/**/*.{ext}")

    async def build_one(self, path: str | Path) -> None:
        """
        Rebuild whatever a changed source path affects.

        Pipeline errors propagate to the caller.
        """
        files = await self.files_to_build(path)
        if not files:
            self.log.debug("nothing_to_build", file=trim_path(path, self._source_root))
            return

        self.log.debug(
            "dispatching_build",
            file=trim_path(path, self._source_root),
            count=len(files),
        )
        await self._pipeline.process_build(files, True)
