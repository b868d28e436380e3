"""Command Runner.

This module is the single seam between xcforge and external tools
(configure, make, xcrun, lipo, libtool, xcodebuild).

Design:
    - Wraps subprocess.run with an argument list in, a CommandResult out
    - Checks that declared output files exist after the command
    - Decodes tool output as UTF-8, replacing undecodable bytes
    - Never raises for a non-zero exit; callers turn failures into their
      stage's error type
    - Raises ConfigurationError when the executable itself is missing
"""

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..errors import ConfigurationError

# Lines of tool output kept in error messages
OUTPUT_TAIL_LINES = 40


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    missing_outputs: List[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True if the command exited 0 and produced every declared output."""
        return self.returncode == 0 and not self.missing_outputs

    @property
    def command(self) -> str:
        return " ".join(self.args)

    def output_tail(self, lines: int = OUTPUT_TAIL_LINES) -> str:
        """Last lines of combined stderr/stdout for error reports."""
        text = "\n".join(part for part in (self.stdout, self.stderr) if part)
        return "\n".join(text.strip().splitlines()[-lines:])

    def describe_failure(self) -> str:
        """Human-readable failure summary."""
        if self.returncode != 0:
            msg = f"'{self.args[0]}' exited with status {self.returncode}\n"
            msg += f"command: {self.command}"
            tail = self.output_tail()
            if tail:
                msg += f"\noutput:\n{tail}"
            return msg
        missing = ", ".join(str(p) for p in self.missing_outputs)
        return (
            f"'{self.args[0]}' reported success but did not produce: {missing}\n"
            + f"command: {self.command}"
        )


class CommandRunner:
    """Runs external commands synchronously.

    Every call blocks until the child exits. On KeyboardInterrupt the
    child is terminated before the interrupt propagates.
    """

    def __init__(self, verbose: bool = False, timeout: Optional[float] = None):
        """Initialize command runner.

        Args:
            verbose: Log full tool output at DEBUG level
            timeout: Per-command timeout in seconds (None for no limit)
        """
        self.verbose = verbose
        self.timeout = timeout

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        expected_outputs: Sequence[Path] = (),
    ) -> CommandResult:
        """Run a command and collect its result.

        Args:
            args: Executable and arguments
            cwd: Working directory
            env: Complete environment for the child (None inherits)
            expected_outputs: Files that must exist after a successful run

        Returns:
            CommandResult with exit code, output and missing outputs

        Raises:
            ConfigurationError: If the executable cannot be found
        """
        cmd = [str(arg) for arg in args]
        logging.debug(f"Running: {' '.join(cmd)}" + (f" (cwd={cwd})" if cwd else ""))

        try:
            completed = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=env,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Required command not found: {cmd[0]}"
            ) from e
        except subprocess.TimeoutExpired as e:
            return CommandResult(
                args=cmd,
                returncode=124,
                stdout=_decode(e.stdout),
                stderr=f"Timed out after {self.timeout}s",
            )

        if self.verbose:
            for line in (completed.stdout or "").splitlines():
                logging.debug(f"  {line}")
            for line in (completed.stderr or "").splitlines():
                logging.debug(f"  {line}")

        result = CommandResult(
            args=cmd,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if result.returncode == 0:
            result.missing_outputs = [
                Path(p) for p in expected_outputs if not Path(p).exists()
            ]
        return result

    def capture(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> Optional[str]:
        """Run a query command and return its stripped stdout.

        Returns:
            stdout, or None if the command failed
        """
        result = self.run(args, cwd=cwd, env=env)
        if result.returncode != 0:
            return None
        return result.stdout.strip()


def _decode(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def which(name: str, env: Optional[Dict[str, str]] = None) -> Optional[Path]:
    """Locate an executable on PATH."""
    import shutil

    path = (env or os.environ).get("PATH")
    found = shutil.which(name, path=path)
    return Path(found) if found else None
