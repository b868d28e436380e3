"""Source and toolchain management for xcforge.

This module handles fetching upstream sources, resolving Apple toolchains,
and laying out the workspace.
"""

from .archive_cache import (
    ArchiveCache,
    ArchiveError,
    ChecksumError,
    DownloadError,
    ExtractionError,
)
from .layout import WorkspaceLayout

__all__ = [
    "ArchiveCache",
    "ArchiveError",
    "DownloadError",
    "ChecksumError",
    "ExtractionError",
    "WorkspaceLayout",
]
