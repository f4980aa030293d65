"""
AssetWatch Path Helpers.

Mapping between the source and destination trees, display trimming,
configuration path checks and watch path spec resolution.
Requires Python 3.11+.
"""

import fnmatch
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from utils.errors import ConfigurationError

_GLOB_CHARS = frozenset("*?[")

# A path spec is a glob fragment, an explicit list of paths, or None
PathSpec = str | Sequence[str | Path] | None


def file_extension(path: str | Path) -> str:
    """Return the lowercase extension of a path without its leading dot."""
    return Path(path).suffix.lstrip(".").lower()


def trim_path(path: str | Path, root: Path) -> str:
    """
    Format a path relative to a tree root for display.

    Args:
        path: Path inside the tree
        root: Tree root

    Returns:
        Path like '/css/app.css', or the path unchanged if outside the root
    """
    try:
        relative = Path(path).relative_to(root)
    except ValueError:
        return Path(path).as_posix()
    return "/" + relative.as_posix()


def relative_to_root(path: str | Path, root: Path) -> str:
    """Return a posix path relative to root, e.g. 'css/app.css'."""
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return Path(path).as_posix()


def source_to_dest(path: str | Path, source: Path, dest: Path) -> Path:
    """
    Map a path in the source tree to its mirrored destination path.

    Raises:
        ValueError: If the path is not inside the source tree
    """
    return dest / Path(path).relative_to(source)


def validate_config_paths(source: Path | None, dest: Path | None) -> None:
    """
    Check that the configured source and destination paths are usable.

    Raises:
        ConfigurationError: With a description of the first problem found
    """
    if source is None or not str(source).strip():
        raise ConfigurationError("Source path is not set")
    if dest is None or not str(dest).strip():
        raise ConfigurationError("Destination path is not set")

    source_abs = Path(os.path.abspath(source))
    dest_abs = Path(os.path.abspath(dest))

    if source_abs == dest_abs:
        raise ConfigurationError(
            f"Source and destination paths must differ: {source_abs}"
        )
    if source_abs in dest_abs.parents:
        raise ConfigurationError(
            f"Destination path {dest_abs} must not be inside source path {source_abs}"
        )
    if dest_abs in source_abs.parents:
        raise ConfigurationError(
            f"Source path {source_abs} must not be inside destination path {dest_abs}"
        )


def glob_match(relative: str, pattern: str) -> bool:
    """
    Match a posix relative path against a glob pattern.

    Wildcards stay within one path segment, as with glob.glob; only a
    '**' segment spans directories, including none at all, so '**/*.css'
    matches both 'app.css' and 'css/app.css' but '*.css' matches only
    the former.
    """
    return _match_parts(relative.split("/"), pattern.split("/"))


def _match_parts(parts: list[str], patterns: list[str]) -> bool:
    if not patterns:
        return not parts
    head, rest = patterns[0], patterns[1:]
    if head == "**":
        return any(_match_parts(parts[index:], rest) for index in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match_parts(parts[1:], rest)


@dataclass
class WatchTarget:
    """A resolved path spec: directories to observe and what to report."""

    root: Path
    description: str | list[str]
    # (directory, recursive) pairs handed to the observer
    bases: list[tuple[Path, bool]] = field(default_factory=list)
    pattern_base: Path | None = None
    pattern: str = ""
    files: frozenset[Path] = frozenset()

    def matches(self, path: str | Path, is_directory: bool = False) -> bool:
        """Check whether an event path belongs to this target."""
        path = Path(path)

        if self.files:
            return path in self.files

        if self.pattern_base is None:
            return False
        try:
            relative = path.relative_to(self.pattern_base)
        except ValueError:
            return False

        if relative == Path("."):
            return False
        # Directory events are structural and pass any file filter
        if is_directory or not self.pattern:
            return True
        return glob_match(relative.as_posix(), self.pattern)


def _split_glob(joined: Path) -> tuple[Path, str]:
    """Split a path into its literal prefix and the glob remainder."""
    literal: list[str] = []
    parts = joined.parts
    for index, part in enumerate(parts):
        if _GLOB_CHARS & set(part):
            return Path(*literal) if literal else Path("."), "/".join(parts[index:])
        literal.append(part)
    return joined, ""


def resolve_path_spec(
    spec: PathSpec,
    root: Path,
    default_glob: str = "",
    recursive: bool = True,
) -> WatchTarget:
    """
    Resolve a path spec into a watch target under a tree root.

    Args:
        spec: Explicit list of paths, glob fragment like '*.css', or None
        root: Source or destination tree root
        default_glob: Filter used when spec is None
        recursive: Whether directory bases are observed recursively

    Returns:
        WatchTarget describing what to observe and report
    """
    if spec is not None and not isinstance(spec, str):
        files = [Path(item) for item in spec]
        if not files:
            raise ConfigurationError("Explicit watch file list is empty")
        parents = sorted({f.parent for f in files})
        return WatchTarget(
            root=root,
            description=[str(f) for f in files],
            bases=[(parent, False) for parent in parents],
            files=frozenset(files),
        )

    fragment = default_glob if spec is None else spec.replace(str(root), "", 1)
    if fragment.startswith(("/", "\\")):
        fragment = fragment[1:]

    joined = root / fragment if fragment else root
    base, pattern = _split_glob(joined)

    if not pattern and base.is_file():
        return WatchTarget(
            root=root,
            description=str(joined),
            bases=[(base.parent, False)],
            files=frozenset({base}),
        )

    return WatchTarget(
        root=root,
        description=str(joined),
        bases=[(base, recursive)],
        pattern_base=base,
        pattern=pattern,
    )
