"""Archive Creator.

This module combines several static libraries into one with the SDK's
libtool (`libtool -static -o out.a in1.a in2.a ...`).

Design:
    - Wraps libtool command execution through the CommandRunner
    - Validates inputs exist before running
    - Verifies the combined archive was written
"""

import logging
from pathlib import Path
from typing import List

from .command_runner import CommandRunner


class ArchiveError(Exception):
    """Raised when archive creation operations fail."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


class ArchiveCreator:
    """Creates combined static libraries."""

    def __init__(self, runner: CommandRunner):
        """Initialize archive creator.

        Args:
            runner: Command runner for libtool
        """
        self.runner = runner

    def combine(
        self,
        libtool_path: Path,
        archive_path: Path,
        libraries: List[Path]
    ) -> Path:
        """Combine static libraries into one archive.

        Args:
            libtool_path: Path to the SDK's libtool
            archive_path: Path for the output .a file
            libraries: Static libraries to combine

        Returns:
            Path to the combined archive

        Raises:
            ArchiveError: If inputs are missing or libtool fails
        """
        if not libraries:
            raise ArchiveError("No libraries provided for archive")

        missing = [str(lib) for lib in libraries if not lib.exists()]
        if missing:
            raise ArchiveError(f"Libraries to combine not found: {', '.join(missing)}")

        archive_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = [str(libtool_path), "-static", "-o", str(archive_path)]
        cmd.extend(str(lib) for lib in libraries)

        logging.info(f"Creating {archive_path.name} from {len(libraries)} libraries...")
        result = self.runner.run(cmd, expected_outputs=[archive_path])
        if not result.ok:
            raise ArchiveError(
                f"Archive creation failed for {archive_path.name}\n{result.describe_failure()}",
                exit_code=result.returncode or 1,
            )

        size = archive_path.stat().st_size
        logging.info(f"Created {archive_path.name}: {size:,} bytes ({size / 1024 / 1024:.2f} MB)")
        return archive_path
