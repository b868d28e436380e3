"""Source acquisition.

Ensures a complete, buildable source tree exists at the deterministic path
the layout assigns to a target, fetching it when absent.
"""

import logging
from pathlib import Path
from typing import Optional

from ..config.targets import TargetSpec
from ..errors import AcquisitionError
from .archive_cache import ArchiveCache, ArchiveError
from .layout import WorkspaceLayout


class SourceAcquirer:
    """Fetches and verifies pinned upstream source trees.

    Example usage:
        acquirer = SourceAcquirer(WorkspaceLayout(project_dir))
        source_dir = acquirer.ensure_source(spec)
    """

    def __init__(
        self,
        layout: WorkspaceLayout,
        archives: Optional[ArchiveCache] = None,
        show_progress: bool = True,
    ):
        """Initialize source acquirer.

        Args:
            layout: Workspace layout
            archives: Archive cache (defaults to the layout's downloads dir)
            show_progress: Whether to show download progress bars
        """
        self.layout = layout
        self.archives = archives or ArchiveCache(layout.downloads_dir, show_progress=show_progress)

    def ensure_source(self, spec: TargetSpec) -> Path:
        """Ensure the target's source tree exists.

        Idempotent: an existing tree is returned without fetching.

        Args:
            spec: Target whose source is needed

        Returns:
            Path to the source tree

        Raises:
            AcquisitionError: On fetch, extraction or layout failure
        """
        source_dir = self.layout.source_dir(spec)

        if spec.source.checkout:
            return self._verify_checkout(spec, source_dir)

        if source_dir.is_dir():
            logging.info(f"Source for {spec.name} {spec.version} already exists, skipping download")
            return source_dir

        logging.info(f"Fetching {spec.name} v{spec.version}...")
        try:
            self.archives.unpack(
                spec.source.resolve_url(spec.version),
                spec.source.resolve_archive_root(spec.version),
                source_dir,
                checksum=spec.source.checksum,
            )
        except ArchiveError as e:
            raise AcquisitionError(str(e), target=spec.name) from e

        logging.info(f"Source ready at {source_dir}")
        return source_dir

    def _verify_checkout(self, spec: TargetSpec, source_dir: Path) -> Path:
        marker = source_dir / spec.source.marker
        if not marker.exists():
            message = f"Source checkout not found: {source_dir} (missing {spec.source.marker})"
            if spec.source.hint:
                message += f". {spec.source.hint}"
            raise AcquisitionError(message, target=spec.name)
        return source_dir
