"""
Framework installer.

Copies finished packages into the consuming application's Frameworks
directory and publishes host tools (protoc) into its bin directory.

The install step is optional: when the consumer's Frameworks directory is
absent the package is left in the project and the run still succeeds.
"""

import logging
import os
import shutil
import stat
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..build.artifacts import MultiPlatformPackage
from ..config.ini_parser import InstallSettings
from ..config.targets import TargetSpec
from ..errors import InstallWarning


@dataclass
class InstallResult:
    """Outcome of one install.

    Attributes:
        target: Target name
        skipped: True if the consumer location was absent
        package_path: Installed package location (None when skipped)
        removed: Previously installed packages that were removed
        tools: Published host tools
    """

    target: str
    skipped: bool = False
    package_path: Optional[Path] = None
    removed: List[Path] = field(default_factory=list)
    tools: List[Path] = field(default_factory=list)


class FrameworkInstaller:
    """Installs packages and host tools into the consumer application."""

    def __init__(self, settings: InstallSettings):
        """Initialize installer.

        Args:
            settings: Consumer Frameworks and bin directories
        """
        self.settings = settings

    def install(
        self,
        spec: TargetSpec,
        package: MultiPlatformPackage,
        host_tools: Optional[Dict[str, Path]] = None,
    ) -> InstallResult:
        """Install a package, replacing any previous copy.

        Args:
            spec: Target the package belongs to
            package: Package to install
            host_tools: Host tools built for this target, keyed by name

        Returns:
            InstallResult (skipped=True if the Frameworks directory is absent)
        """
        frameworks_dir = self.settings.frameworks_dir
        if not frameworks_dir.is_dir():
            warnings.warn(
                f"{frameworks_dir} not found, skipping install of {package.path.name}",
                InstallWarning,
                stacklevel=2,
            )
            return InstallResult(target=spec.name, skipped=True)

        result = InstallResult(target=spec.name)

        for name in (spec.package_name, *spec.legacy_package_names):
            existing = frameworks_dir / f"{name}.xcframework"
            if existing.exists():
                logging.info(f"Removing {existing}")
                shutil.rmtree(existing)
                result.removed.append(existing)

        dest = frameworks_dir / package.path.name
        shutil.copytree(package.path, dest, symlinks=True)
        result.package_path = dest
        logging.info(f"Installed {package.path.name} to {frameworks_dir}")

        if spec.host_tool is not None and spec.host_tool.publish:
            tool = (host_tools or {}).get(spec.host_tool.name)
            if tool is not None:
                result.tools.append(self.publish_tool(tool))

        return result

    def publish_tool(self, tool: Path) -> Path:
        """Copy an executable into the consumer bin directory."""
        bin_dir = self.settings.bin_dir
        bin_dir.mkdir(parents=True, exist_ok=True)

        dest = bin_dir / tool.name
        if dest.exists():
            dest.unlink()
        shutil.copy2(tool, dest)
        mode = os.stat(dest).st_mode
        os.chmod(dest, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

        logging.info(f"Published {tool.name} to {bin_dir}")
        return dest
