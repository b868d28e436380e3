"""Fat binary fusing.

Merges per-architecture static libraries of one platform into a single
multi-architecture binary with `lipo -create`, then confirms the slices
with `lipo -archs`.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from .command_runner import CommandRunner


class FuseError(Exception):
    """Raised when lipo fails or produces the wrong slices."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


class ArchitectureFuser:
    """Runs lipo through the command runner."""

    def __init__(self, runner: CommandRunner, lipo: str = "lipo"):
        self.runner = runner
        self.lipo = lipo

    def fuse(self, inputs: Sequence[Path], output: Path, archs: Sequence[str]) -> Path:
        """Fuse per-architecture binaries into one.

        A single input is returned as-is; lipo is not invoked.

        Args:
            inputs: One binary per architecture
            output: Path of the fused binary
            archs: Architectures the inputs contain, in the same order

        Returns:
            Path of the binary to package

        Raises:
            FuseError: If lipo fails or the result has other slices than archs
        """
        if not inputs:
            raise FuseError("No binaries provided to fuse")
        if len(inputs) == 1:
            return Path(inputs[0])

        output.parent.mkdir(parents=True, exist_ok=True)
        if output.exists():
            output.unlink()

        cmd = [self.lipo, "-create", *[str(p) for p in inputs], "-output", str(output)]
        logging.info(f"Fusing {', '.join(archs)} into {output}")
        result = self.runner.run(cmd, expected_outputs=[output])
        if not result.ok:
            raise FuseError(
                f"lipo failed to create {output.name}\n{result.describe_failure()}",
                exit_code=result.returncode or 1,
            )

        found = self.architectures(output)
        if sorted(found) != sorted(archs):
            raise FuseError(
                f"Fused binary {output} contains [{' '.join(found)}], "
                + f"expected [{' '.join(archs)}]"
            )
        return output

    def architectures(self, binary: Path) -> List[str]:
        """List the architecture slices of a binary.

        Raises:
            FuseError: If lipo cannot read the binary
        """
        result = self.runner.run([self.lipo, "-archs", str(binary)])
        if not result.ok:
            raise FuseError(
                f"lipo could not read {binary}\n{result.describe_failure()}",
                exit_code=result.returncode or 1,
            )
        return result.stdout.split()

