"""Error taxonomy for xcforge.

Every pipeline stage aborts the run on its first failure. Errors carry
enough context (stage, target, architecture/platform) for an operator to
diagnose the failure without reading the underlying tool's raw output.
"""

from typing import Optional


class XCForgeError(Exception):
    """Base class for fatal pipeline errors.

    Attributes:
        stage: Pipeline stage that failed (e.g. 'acquire', 'build')
        target: Name of the target being processed, if any
        pair: Output name of the (architecture, platform) pair, if any
        exit_code: Process exit code to report (propagated from the
            failing external tool where there is one)
    """

    stage = "pipeline"

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        pair: Optional[str] = None,
        exit_code: int = 1,
    ):
        super().__init__(message)
        self.message = message
        self.target = target
        self.pair = pair
        self.exit_code = exit_code if exit_code > 0 else 1

    def __str__(self) -> str:
        context = [self.stage]
        if self.target:
            context.append(self.target)
        if self.pair:
            context.append(self.pair)
        return f"[{' '.join(context)}] {self.message}"


class ConfigurationError(XCForgeError):
    """Unsupported architecture, missing external tool or missing handoff."""

    stage = "config"


class AcquisitionError(XCForgeError):
    """Source fetch, extraction or layout verification failed."""

    stage = "acquire"


class BuildError(XCForgeError):
    """The underlying build failed or did not produce its declared outputs."""

    stage = "build"


class AssemblyError(XCForgeError):
    """Fat-binary, framework or xcframework assembly failed."""

    stage = "assemble"


class InstallWarning(UserWarning):
    """Non-fatal: the consumer install location is absent."""

    pass
