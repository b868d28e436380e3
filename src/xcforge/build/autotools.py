"""Autotools driver.

Runs the configure/make/install sequence of an upstream autotools project
inside its source tree, and resets the tree between builds.

Autotools caches configuration in the source tree (config.cache,
config.status, Makefiles). A tree configured for one toolchain silently
corrupts a build for another, so every build starts from reset().
"""

import logging
import shutil
from pathlib import Path
from typing import Dict, Optional, Sequence

import psutil

from .command_runner import CommandResult, CommandRunner

# Configuration state removed on reset, in addition to `make distclean`
CONFIG_STATE_FILES = ("config.cache", "config.status", "config.log")
CONFIG_STATE_DIRS = ("autom4te.cache",)


class AutotoolsError(Exception):
    """Raised when a configure/make step fails."""

    def __init__(self, step: str, result: CommandResult):
        super().__init__(f"{step} failed: {result.describe_failure()}")
        self.step = step
        self.result = result
        self.exit_code = result.returncode or 1


def default_jobs() -> int:
    """Parallel make jobs: the number of logical CPUs."""
    return psutil.cpu_count(logical=True) or 1


class AutotoolsProject:
    """An autotools source tree."""

    def __init__(self, source_dir: Path, runner: CommandRunner, jobs: Optional[int] = None):
        """Initialize autotools project.

        Args:
            source_dir: Root of the source tree (contains configure or autogen.sh)
            runner: Command runner
            jobs: Parallel make jobs (default: logical CPU count)
        """
        self.source_dir = Path(source_dir)
        self.runner = runner
        self.jobs = jobs or default_jobs()

    @property
    def configure_script(self) -> Path:
        return self.source_dir / "configure"

    def reset(self, env: Optional[Dict[str, str]] = None) -> None:
        """Remove all configuration and build state from the tree.

        `make distclean` failing is expected on a fresh tree and ignored.
        """
        if (self.source_dir / "Makefile").exists():
            result = self.runner.run(["make", "distclean"], cwd=self.source_dir, env=env)
            if result.returncode != 0:
                logging.debug(f"make distclean exited {result.returncode}, continuing")

        for name in CONFIG_STATE_FILES:
            path = self.source_dir / name
            if path.exists():
                path.unlink()
        for name in CONFIG_STATE_DIRS:
            path = self.source_dir / name
            if path.exists():
                shutil.rmtree(path)

    def autogen(self, env: Dict[str, str]) -> None:
        """Generate the configure script when the tree doesn't ship one."""
        if self.configure_script.exists():
            return
        autogen = self.source_dir / "autogen.sh"
        if not autogen.exists():
            raise AutotoolsError(
                "autogen",
                CommandResult(
                    args=[str(autogen)],
                    returncode=1,
                    stderr=f"Neither configure nor autogen.sh found in {self.source_dir}",
                ),
            )
        logging.info("Running autogen.sh...")
        self._check("autogen", self.runner.run(["./autogen.sh"], cwd=self.source_dir, env=env))

    def configure(self, args: Sequence[str], env: Dict[str, str]) -> None:
        logging.debug(f"configure {' '.join(args)}")
        self._check(
            "configure",
            self.runner.run(["./configure", *args], cwd=self.source_dir, env=env),
        )

    def make(self, env: Dict[str, str], target: Optional[str] = None) -> None:
        cmd = ["make", f"-j{self.jobs}"]
        if target:
            cmd.append(target)
        self._check(
            f"make {target}" if target else "make",
            self.runner.run(cmd, cwd=self.source_dir, env=env),
        )

    def _check(self, step: str, result: CommandResult) -> None:
        if not result.ok:
            raise AutotoolsError(step, result)
