"""
AssetWatch Dispatch Package.

Incremental rebuild decisions and the build collaborators.
Requires Python 3.11+.
"""

from dispatch.collaborators import (
    BuildPipeline,
    Cleaner,
    CopyPipeline,
    RemoveCleaner,
    glob_enumerate,
)
from dispatch.dispatcher import BuildDispatcher

__all__ = [
    "BuildDispatcher",
    "BuildPipeline",
    "Cleaner",
    "CopyPipeline",
    "RemoveCleaner",
    "glob_enumerate",
]
