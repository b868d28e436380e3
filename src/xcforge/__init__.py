"""xcforge - iOS xcframework build orchestrator for autotools libraries."""

__version__ = "0.1.0"
