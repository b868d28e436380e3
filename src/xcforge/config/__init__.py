"""Configuration modules for xcforge."""

from .ini_parser import InstallSettings, ProjectConfig
from .platforms import DEVICE, HOST, SIMULATOR, Platform, TargetPair, host_triple
from .targets import (
    BUILTIN_TARGETS,
    Dependency,
    HeaderRule,
    HostToolSpec,
    SourceLocator,
    TargetSpec,
)

__all__ = [
    "ProjectConfig",
    "InstallSettings",
    "Platform",
    "TargetPair",
    "DEVICE",
    "SIMULATOR",
    "HOST",
    "host_triple",
    "TargetSpec",
    "SourceLocator",
    "HostToolSpec",
    "Dependency",
    "HeaderRule",
    "BUILTIN_TARGETS",
]
