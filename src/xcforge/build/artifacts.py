"""Build artifact models.

Values passed between the builder, the assembler and the installer.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..config.platforms import Platform, TargetPair
from ..packages.toolchain import BuildMode


@dataclass(frozen=True)
class BuildArtifact:
    """Result of one successful builder run.

    Only constructed after the declared output has been verified on disk:
    the static library for cross builds, the tool for host builds. Host
    builds keep nothing but the tool, so their library is None.
    """

    target: str
    arch: str
    platform: Platform
    mode: BuildMode
    prefix: Path
    library: Optional[Path]
    include_dir: Path
    tool: Optional[Path] = None

    @property
    def pair(self) -> TargetPair:
        return TargetPair(self.arch, self.platform)

    @property
    def output_name(self) -> str:
        return "host" if self.mode is BuildMode.HOST else self.pair.output_name


@dataclass
class Handoff:
    """Inputs a cross build receives from previously built targets.

    Attributes:
        tools: Host tool paths keyed by tool name (e.g. 'protoc')
        artifacts: Same-pair cross artifacts keyed by target name
    """

    tools: Dict[str, Path] = field(default_factory=dict)
    artifacts: Dict[str, BuildArtifact] = field(default_factory=dict)


@dataclass(frozen=True)
class PlatformBundle:
    """One architecture-homogenized binary plus headers for a platform."""

    platform: Platform
    binary: Path
    include_dir: Path
    archs: tuple
    header_arch: str

    @property
    def is_fat(self) -> bool:
        return len(self.archs) > 1


@dataclass(frozen=True)
class FrameworkBundle:
    """A <Name>.framework directory built from one PlatformBundle."""

    platform: Platform
    path: Path
    binary: Path
    headers_dir: Path
    manifest: Path


@dataclass
class MultiPlatformPackage:
    """The final <Name>.xcframework deliverable."""

    name: str
    path: Path
    frameworks: List[FrameworkBundle] = field(default_factory=list)
