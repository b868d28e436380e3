"""Publishing finished packages into the consuming application."""

from .installer import FrameworkInstaller, InstallResult

__all__ = ["FrameworkInstaller", "InstallResult"]
