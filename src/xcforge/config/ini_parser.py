"""
xcforge.ini configuration parser.

This module parses the optional project configuration file and applies it
on top of the built-in target definitions.
"""

import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ConfigurationError
from .targets import BUILTIN_TARGETS, DEFAULT_DEPLOYMENT_TARGET, VERSIONED_TARGET, TargetSpec

CONFIG_FILE_NAME = "xcforge.ini"


@dataclass
class InstallSettings:
    """Where finished packages and host tools are published."""

    frameworks_dir: Path
    bin_dir: Path


class ProjectConfig:
    """
    Parser for xcforge.ini configuration files.

    The file is optional; every key has a default.

    Example xcforge.ini:
        [xcforge]
        deployment_target = 17.0
        install_root = ..
        frameworks_dir = Frameworks
        bin_dir = bin

        [target:protobuf]
        version = 21.12

    Usage:
        config = ProjectConfig(Path("."))
        targets = config.get_targets()
    """

    SECTION = "xcforge"

    def __init__(self, project_dir: Path, ini_path: Optional[Path] = None):
        """
        Initialize the parser for a project directory.

        Args:
            project_dir: Project root directory
            ini_path: Explicit config file (default: project_dir/xcforge.ini)

        Raises:
            ConfigurationError: If the file exists but cannot be parsed
        """
        self.project_dir = Path(project_dir).resolve()
        self.ini_path = ini_path or self.project_dir / CONFIG_FILE_NAME

        self.config = configparser.ConfigParser(
            interpolation=configparser.ExtendedInterpolation()
        )

        if self.ini_path.exists():
            try:
                self.config.read(self.ini_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Failed to parse {self.ini_path}: {e}") from e

    def _get(self, key: str, default: str) -> str:
        if self.SECTION not in self.config:
            return default
        value = self.config[self.SECTION].get(key, "").strip()
        return value or default

    def get_deployment_target(self) -> str:
        """Minimum iOS version passed to compilers and written to manifests."""
        return self._get("deployment_target", DEFAULT_DEPLOYMENT_TARGET)

    def get_install_settings(self) -> InstallSettings:
        """
        Resolve consumer install directories.

        The install root defaults to the project's parent directory, which is
        where the host application repository keeps Frameworks/ and bin/.
        """
        root = Path(self._get("install_root", ".."))
        if not root.is_absolute():
            root = (self.project_dir / root).resolve()

        return InstallSettings(
            frameworks_dir=root / self._get("frameworks_dir", "Frameworks"),
            bin_dir=root / self._get("bin_dir", "bin"),
        )

    def get_target_overrides(self, name: str) -> Dict[str, str]:
        """Key/value overrides from the [target:<name>] section, if present."""
        section = f"target:{name}"
        if section not in self.config:
            return {}
        return {key: value.strip() for key, value in self.config[section].items()}

    def get_targets(self, version: Optional[str] = None,
                    versioned_target: str = VERSIONED_TARGET) -> List[TargetSpec]:
        """
        Build the target list: built-in definitions, then ini overrides,
        then the command-line version for the versioned target.

        Args:
            version: Version from the command line, if given
            versioned_target: Target the command-line version applies to

        Returns:
            List of TargetSpec in definition order
        """
        unknown = [
            s.split(":", 1)[1] for s in self.config.sections()
            if s.startswith("target:") and s.split(":", 1)[1] not in BUILTIN_TARGETS
        ]
        if unknown:
            raise ConfigurationError(
                f"Unknown target(s) in {self.ini_path.name}: {', '.join(unknown)}. "
                + f"Available targets: {', '.join(BUILTIN_TARGETS)}"
            )

        targets = []
        for name, spec in BUILTIN_TARGETS.items():
            overrides = self.get_target_overrides(name)
            spec = spec.with_overrides(
                version=overrides.get("version"),
                url=overrides.get("url"),
                checksum=overrides.get("checksum"),
            )
            if version and name == versioned_target:
                spec = spec.with_overrides(version=version)
            targets.append(spec)
        return targets
