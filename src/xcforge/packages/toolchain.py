"""Toolchain resolution for Apple SDKs.

This module maps an (architecture, platform) pair to a ToolchainDescriptor:
the SDK root, compiler and archiver paths, minimum-OS flag and autoconf
host triple the builder needs. Resolution only queries xcrun; it has no
other side effects.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from ..build.command_runner import CommandRunner, which
from ..config.platforms import HOST, Platform, TargetPair, detect_host_arch, host_triple
from ..errors import ConfigurationError

# Variables that would leak one build's configuration into the next
SCRUBBED_VARIABLES = (
    "CC",
    "CXX",
    "CPP",
    "CFLAGS",
    "CXXFLAGS",
    "CPPFLAGS",
    "LDFLAGS",
    "LIBS",
    "AR",
    "RANLIB",
    "CONFIG_SITE",
)


class BuildMode(Enum):
    """How a build's outputs are used."""

    HOST = "host"
    CROSS = "cross"


@dataclass(frozen=True)
class ToolchainDescriptor:
    """Everything needed to compile for one (architecture, platform) pair.

    Computed once per pair and read-only afterwards.
    """

    arch: str
    platform: Platform
    mode: BuildMode
    cc: Path
    cxx: Path
    ar: Optional[Path] = None
    ranlib: Optional[Path] = None
    libtool: Optional[Path] = None
    sdk_root: Optional[Path] = None
    min_version_flag: Optional[str] = None
    triple: Optional[str] = None

    @property
    def pair(self) -> TargetPair:
        return TargetPair(self.arch, self.platform)

    @property
    def output_name(self) -> str:
        if self.mode is BuildMode.HOST:
            return "host"
        return self.pair.output_name

    @property
    def common_flags(self) -> Tuple[str, ...]:
        if self.mode is BuildMode.HOST:
            return ()
        flags = ["-arch", self.arch]
        if self.sdk_root:
            flags.extend(["-isysroot", str(self.sdk_root)])
        if self.min_version_flag:
            flags.append(self.min_version_flag)
        return tuple(flags)

    @property
    def link_flags(self) -> Tuple[str, ...]:
        if self.mode is BuildMode.HOST:
            return ()
        flags = ["-arch", self.arch]
        if self.sdk_root:
            flags.extend(["-isysroot", str(self.sdk_root)])
        return tuple(flags)

    def environment(
        self,
        base_env: Mapping[str, str],
        extra_cflags: Tuple[str, ...] = (),
        cxx_flags: Tuple[str, ...] = (),
    ) -> Dict[str, str]:
        """Translate the descriptor into the environment autotools reads.

        The inherited environment is scrubbed of compiler, flag and autoconf
        cache variables first, so nothing from a previous build survives.

        Args:
            base_env: Inherited environment
            extra_cflags: Target-specific C/C++ preprocessor flags
            cxx_flags: Target-specific C++-only flags (cross mode)

        Returns:
            New environment dictionary
        """
        env = {
            key: value
            for key, value in base_env.items()
            if key not in SCRUBBED_VARIABLES and not key.startswith("ac_cv_")
        }

        if self.mode is BuildMode.HOST:
            # Native build: let configure pick up the native compiler
            env["CC"] = str(self.cc)
            env["CXX"] = str(self.cxx)
            return env

        cflags = " ".join(self.common_flags + tuple(extra_cflags))
        env["CC"] = str(self.cc)
        env["CXX"] = str(self.cxx)
        env["CFLAGS"] = cflags
        env["CPPFLAGS"] = cflags
        env["CXXFLAGS"] = " ".join([cflags] + list(cxx_flags)).strip()
        env["LDFLAGS"] = " ".join(self.link_flags)
        if self.ar:
            env["AR"] = str(self.ar)
        if self.ranlib:
            env["RANLIB"] = str(self.ranlib)
        return env


class ToolchainResolver:
    """Resolves ToolchainDescriptors through xcrun.

    Example usage:
        resolver = ToolchainResolver(CommandRunner(), deployment_target="17.0")
        descriptor = resolver.resolve("arm64", SIMULATOR)
    """

    TOOLS = ("clang", "clang++", "ar", "ranlib", "libtool")

    def __init__(self, runner: CommandRunner, deployment_target: str):
        """Initialize toolchain resolver.

        Args:
            runner: Command runner used to query xcrun
            deployment_target: Minimum iOS version (e.g. '17.0')
        """
        self.runner = runner
        self.deployment_target = deployment_target
        self._descriptors: Dict[Tuple[str, str], ToolchainDescriptor] = {}
        self._sdk_paths: Dict[str, Path] = {}
        self._host: Optional[ToolchainDescriptor] = None

    def sdk_path(self, sdk: str) -> Path:
        """Get the SDK root for an SDK name (e.g. 'iphoneos').

        Raises:
            ConfigurationError: If xcrun cannot locate the SDK
        """
        if sdk not in self._sdk_paths:
            output = self.runner.capture(["xcrun", "--sdk", sdk, "--show-sdk-path"])
            if not output:
                raise ConfigurationError(
                    f"SDK '{sdk}' not found. Install Xcode and run: "
                    + "xcode-select --install"
                )
            self._sdk_paths[sdk] = Path(output)
        return self._sdk_paths[sdk]

    def find_tool(self, sdk: str, tool: str) -> Path:
        """Get the path of an SDK tool (e.g. clang, libtool).

        Raises:
            ConfigurationError: If the tool is not part of the toolchain
        """
        output = self.runner.capture(["xcrun", "--sdk", sdk, "--find", tool])
        if not output:
            raise ConfigurationError(
                f"Toolchain component '{tool}' not found for SDK '{sdk}'"
            )
        return Path(output)

    def resolve(self, arch: str, platform: Platform) -> ToolchainDescriptor:
        """Resolve the descriptor for one cross-compilation pair.

        Args:
            arch: Architecture name (e.g. 'arm64')
            platform: Device or simulator platform

        Returns:
            Memoized ToolchainDescriptor

        Raises:
            ConfigurationError: On unknown architecture or missing toolchain
        """
        key = (arch, platform.name)
        if key in self._descriptors:
            return self._descriptors[key]

        triple = host_triple(arch)
        if platform.is_host:
            raise ConfigurationError("Use resolve_host() for host-mode builds")

        sdk_root = self.sdk_path(platform.sdk)
        tools = {tool: self.find_tool(platform.sdk, tool) for tool in self.TOOLS}

        descriptor = ToolchainDescriptor(
            arch=arch,
            platform=platform,
            mode=BuildMode.CROSS,
            cc=tools["clang"],
            cxx=tools["clang++"],
            ar=tools["ar"],
            ranlib=tools["ranlib"],
            libtool=tools["libtool"],
            sdk_root=sdk_root,
            min_version_flag=f"{platform.min_version_flag}={self.deployment_target}",
            triple=triple,
        )
        logging.debug(
            f"Resolved toolchain for {descriptor.output_name}: "
            + f"triple={triple} sdk={sdk_root}"
        )
        self._descriptors[key] = descriptor
        return descriptor

    def resolve_pair(self, pair: TargetPair) -> ToolchainDescriptor:
        return self.resolve(pair.arch, pair.platform)

    def resolve_host(self) -> ToolchainDescriptor:
        """Resolve the native toolchain used for host-mode builds.

        Raises:
            ConfigurationError: If no native C/C++ compiler is on PATH
        """
        if self._host is not None:
            return self._host

        env = dict(os.environ)
        cc = which("clang", env) or which("cc", env)
        cxx = which("clang++", env) or which("c++", env)
        if cc is None or cxx is None:
            missing = "C compiler (clang/cc)" if cc is None else "C++ compiler (clang++/c++)"
            raise ConfigurationError(f"Native {missing} not found on PATH")

        self._host = ToolchainDescriptor(
            arch=detect_host_arch(),
            platform=HOST,
            mode=BuildMode.HOST,
            cc=cc,
            cxx=cxx,
            ar=which("ar", env),
            ranlib=which("ranlib", env),
        )
        return self._host
