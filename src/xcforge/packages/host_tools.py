"""Host tool requirement checks.

Verifies up front that the external commands a target's build relies on
are installed, so a missing tool is reported by name instead of surfacing
as an obscure configure or make failure.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..build.command_runner import CommandRunner, which
from ..config.targets import TargetSpec
from ..errors import ConfigurationError

# Homebrew formula providing each command, for install hints
BREW_FORMULAE: Dict[str, str] = {
    "autoconf": "autoconf",
    "automake": "automake",
    "libtool": "libtool",
    "pkg-config": "pkg-config",
    "make": "make",
}


class RequirementChecker:
    """Finds and verifies the external commands targets need."""

    def __init__(self, runner: CommandRunner, env: Optional[Dict[str, str]] = None):
        """Initialize requirement checker.

        Args:
            runner: Command runner used for xcrun queries
            env: Environment whose PATH is searched (default: os.environ)
        """
        self.runner = runner
        self.env = env

    def find_missing_commands(self, commands: Iterable[str]) -> List[str]:
        """Return the commands that are not on PATH."""
        return [cmd for cmd in commands if which(cmd, self.env) is None]

    def find_missing_sdk_tools(self, tools: Iterable[str], sdk: str = "iphoneos") -> List[str]:
        """Return the SDK tools xcrun cannot locate."""
        missing = []
        for tool in tools:
            if not self.runner.capture(["xcrun", "--sdk", sdk, "--find", tool]):
                missing.append(tool)
        return missing

    def verify_required(self, spec: TargetSpec) -> Tuple[bool, List[str]]:
        """Verify that all required commands for a target exist.

        Returns:
            Tuple of (all_found, missing)
        """
        missing = self.find_missing_commands(spec.required_commands)
        if "xcrun" not in missing:
            missing.extend(
                f"xcrun {tool}" for tool in self.find_missing_sdk_tools(spec.required_sdk_tools)
            )
        return len(missing) == 0, missing

    def check(self, spec: TargetSpec) -> None:
        """Check a target's requirements.

        Raises:
            ConfigurationError: Naming every missing command with an
                install hint
        """
        logging.info(f"Checking requirements for {spec.name}...")
        all_found, missing = self.verify_required(spec)
        if all_found:
            logging.info("All requirements satisfied")
            return

        message = f"Missing dependencies: {', '.join(missing)}"
        formulae = [BREW_FORMULAE[cmd] for cmd in missing if cmd in BREW_FORMULAE]
        if formulae:
            message += f"\nInstall with: brew install {' '.join(formulae)}"
        if any(cmd.startswith("xcrun") for cmd in missing):
            message += "\nInstall Xcode command line tools: xcode-select --install"
        raise ConfigurationError(message, target=spec.name)
