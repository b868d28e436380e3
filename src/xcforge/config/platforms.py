"""Architecture and platform tables.

This module holds the static tables the toolchain resolver relies on:

    - Apple platforms (device, simulator) and the SDK each one builds against
    - The architecture -> autoconf host triple table
    - Host machine detection for host-mode builds

Supported pairs:
    - arm64 / device      -> ios-arm64
    - arm64 / simulator   -> sim-arm64
    - x86_64 / simulator  -> sim-x86_64
"""

import platform
from dataclasses import dataclass
from typing import Dict

from ..errors import ConfigurationError


@dataclass(frozen=True)
class Platform:
    """An Apple build platform.

    Attributes:
        name: Platform identifier ('device', 'simulator' or 'host')
        sdk: xcrun SDK name (e.g. 'iphoneos')
        min_version_flag: Compiler flag prefix for the minimum OS version
        output_prefix: Prefix used for per-pair output directories
    """

    name: str
    sdk: str
    min_version_flag: str
    output_prefix: str

    @property
    def is_host(self) -> bool:
        return self.name == "host"


DEVICE = Platform(
    name="device",
    sdk="iphoneos",
    min_version_flag="-miphoneos-version-min",
    output_prefix="ios",
)

SIMULATOR = Platform(
    name="simulator",
    sdk="iphonesimulator",
    min_version_flag="-mios-simulator-version-min",
    output_prefix="sim",
)

HOST = Platform(
    name="host",
    sdk="macosx",
    min_version_flag="",
    output_prefix="host",
)

# Autoconf --host triples. Unknown architectures are a configuration error.
HOST_TRIPLES: Dict[str, str] = {
    "arm64": "aarch64-apple-darwin",
    "x86_64": "x86_64-apple-darwin",
}


@dataclass(frozen=True)
class TargetPair:
    """One (architecture, platform) combination a target is built for."""

    arch: str
    platform: Platform

    @property
    def output_name(self) -> str:
        """Directory name for this pair's outputs (e.g. 'sim-x86_64')."""
        return f"{self.platform.output_prefix}-{self.arch}"

    def __str__(self) -> str:
        return self.output_name


def host_triple(arch: str) -> str:
    """Return the autoconf host triple for an architecture.

    Raises:
        ConfigurationError: If the architecture is not in the table
    """
    try:
        return HOST_TRIPLES[arch]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported architecture: {arch}. "
            + f"Supported: {', '.join(sorted(HOST_TRIPLES))}"
        )


def detect_host_arch() -> str:
    """Normalize the build machine's architecture name."""
    machine = platform.machine().lower()
    if machine in ("arm64", "aarch64"):
        return "arm64"
    if machine in ("x86_64", "amd64"):
        return "x86_64"
    return machine
