"""Framework Info.plist generation."""

import plistlib
from pathlib import Path
from typing import Any, Dict

from ..config.targets import TargetSpec


def framework_manifest(spec: TargetSpec, deployment_target: str) -> Dict[str, Any]:
    """Build the Info.plist dictionary for a target's framework.

    Args:
        spec: Target being packaged
        deployment_target: Minimum iOS version

    Returns:
        Manifest keys and values
    """
    return {
        "CFBundleDevelopmentRegion": "en",
        "CFBundleExecutable": spec.package_name,
        "CFBundleIdentifier": spec.bundle_identifier,
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundleName": spec.package_name,
        "CFBundlePackageType": "FMWK",
        "CFBundleShortVersionString": spec.display_version,
        "CFBundleVersion": "1",
        "MinimumOSVersion": deployment_target,
    }


def write_manifest(path: Path, manifest: Dict[str, Any]) -> Path:
    """Write an XML plist with sorted keys, so identical inputs give identical bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        plistlib.dump(manifest, f, fmt=plistlib.FMT_XML, sort_keys=True)
    return path


def read_manifest(path: Path) -> Dict[str, Any]:
    with open(path, "rb") as f:
        return plistlib.load(f)
