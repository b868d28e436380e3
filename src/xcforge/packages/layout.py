"""Workspace layout for xcforge.

This module defines where sources, intermediates and outputs live. Every
location is a singleton per target and is only written by one build at a
time.

Layout Structure:
    <project>/
    ├── build/
    │   ├── downloads/              # Cached source archives
    │   ├── {name}-{version}/       # Extracted download sources
    │   ├── {name}-stub-headers/    # Generated stub headers
    │   └── xcforge.log
    ├── output/
    │   └── {name}/
    │       ├── host/               # Host-mode install prefix
    │       ├── ios-arm64/          # Per-pair install prefix
    │       ├── sim-arm64/
    │       ├── sim-x86_64/
    │       ├── sim-universal/      # Fused simulator binary
    │       └── frameworks/         # Per-platform .framework bundles
    └── {Package}.xcframework       # Final packages

The output root can be moved with the XCFORGE_OUTPUT_DIR environment
variable.
"""

import os
import shutil
from pathlib import Path
from typing import List, Optional

from ..config.targets import TargetSpec


class WorkspaceLayout:
    """Resolves workspace paths for targets."""

    def __init__(self, project_dir: Optional[Path] = None):
        """Initialize workspace layout.

        Args:
            project_dir: Project directory. If None, uses current directory.
        """
        if project_dir is None:
            project_dir = Path.cwd()

        self.project_dir = Path(project_dir).resolve()
        self.build_root = self.project_dir / "build"

        output_env = os.environ.get("XCFORGE_OUTPUT_DIR")
        if output_env:
            self.output_root = Path(output_env).resolve()
        else:
            self.output_root = self.project_dir / "output"

        self.package_root = self.project_dir

    @property
    def downloads_dir(self) -> Path:
        """Directory for downloaded source archives."""
        return self.build_root / "downloads"

    @property
    def log_file(self) -> Path:
        return self.build_root / "xcforge.log"

    def source_dir(self, spec: TargetSpec) -> Path:
        """Deterministic source tree location for a target."""
        if spec.source.checkout:
            return self.project_dir / spec.source.checkout
        return self.build_root / f"{spec.name}-{spec.version}"

    def stub_headers_dir(self, spec: TargetSpec) -> Path:
        return self.build_root / f"{spec.name}-stub-headers"

    def target_output_dir(self, spec: TargetSpec) -> Path:
        return self.output_root / spec.name

    def prefix_dir(self, spec: TargetSpec, output_name: str) -> Path:
        """Install prefix for one build (e.g. output/protobuf/sim-arm64)."""
        return self.target_output_dir(spec) / output_name

    def frameworks_dir(self, spec: TargetSpec) -> Path:
        return self.target_output_dir(spec) / "frameworks"

    def package_path(self, spec: TargetSpec) -> Path:
        return self.package_root / f"{spec.package_name}.xcframework"

    def ensure_directories(self) -> None:
        """Create the build and output roots if they don't exist."""
        for directory in [self.build_root, self.downloads_dir, self.output_root]:
            directory.mkdir(parents=True, exist_ok=True)

    def clean_target(self, spec: TargetSpec, include_sources: bool = False) -> List[Path]:
        """Remove all outputs of a target.

        Args:
            spec: Target to clean
            include_sources: Also remove downloaded sources (checkouts are
                never removed)

        Returns:
            Paths that were removed
        """
        candidates = [
            self.target_output_dir(spec),
            self.stub_headers_dir(spec),
            self.package_path(spec),
        ]
        if include_sources and spec.source.is_download:
            candidates.append(self.source_dir(spec))

        removed = []
        for path in candidates:
            if path.exists():
                shutil.rmtree(path)
                removed.append(path)
        return removed

    def clean_all(self, specs: List[TargetSpec]) -> List[Path]:
        """Remove every target's outputs, the build root and output root."""
        removed = []
        for spec in specs:
            removed.extend(self.clean_target(spec, include_sources=True))
        for path in [self.build_root, self.output_root]:
            if path.exists():
                shutil.rmtree(path)
                removed.append(path)
        return removed
