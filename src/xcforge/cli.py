"""
Command-line interface for xcforge.

This module provides the `xcforge` CLI tool for building iOS xcframeworks.
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from xcforge import __version__
from xcforge.build.command_runner import CommandRunner
from xcforge.build.orchestrator import PipelineOrchestrator
from xcforge.cli_utils import ErrorFormatter, PathValidator
from xcforge.config import ProjectConfig
from xcforge.errors import XCForgeError
from xcforge.log_setup import setup_logging
from xcforge.packages import WorkspaceLayout


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    project_dir: Path
    version: Optional[str] = None
    targets: List[str] = field(default_factory=list)
    clean: bool = False
    install: bool = True
    verbose: bool = False


@dataclass
class CleanArgs:
    """Arguments for the clean command."""

    project_dir: Path
    verbose: bool = False


def build_command(args: BuildArgs) -> None:
    """Build, package and install xcframeworks.

    Examples:
        xcforge build                  # Build all targets (protobuf 21.12)
        xcforge build 25.1             # Build with protobuf 25.1
        xcforge build -t protobuf      # Build only protobuf
        xcforge build --clean          # Clean build
        xcforge build --verbose        # Verbose output
    """
    print(f"xcforge v{__version__}")
    print()

    try:
        config = ProjectConfig(args.project_dir)
        layout = WorkspaceLayout(args.project_dir)
        setup_logging(args.verbose, layout.log_file)

        targets = config.get_targets(version=args.version)
        orchestrator = PipelineOrchestrator(
            layout,
            CommandRunner(verbose=args.verbose),
            deployment_target=config.get_deployment_target(),
            install_settings=config.get_install_settings() if args.install else None,
        )

        result = orchestrator.run(targets, selected=args.targets or None, clean=args.clean)

        ErrorFormatter.print_success("Build successful!")
        print()
        for package in result.packages:
            print(f"Package: {package.path}")
        for name, tool in result.host_tools.items():
            print(f"Host tool {name}: {tool}")
        for install in result.installs:
            if install.skipped:
                ErrorFormatter.print_warning(f"Install skipped for {install.target}")
            else:
                print(f"Installed: {install.package_path}")
        print(f"Build time: {result.elapsed:.2f}s")
        sys.exit(0)

    except XCForgeError as e:
        ErrorFormatter.handle_pipeline_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def clean_command(args: CleanArgs) -> None:
    """Remove build directories, outputs and packages.

    Examples:
        xcforge clean
    """
    try:
        config = ProjectConfig(args.project_dir)
        layout = WorkspaceLayout(args.project_dir)
        setup_logging(args.verbose)

        orchestrator = PipelineOrchestrator(
            layout,
            CommandRunner(verbose=args.verbose),
            deployment_target=config.get_deployment_target(),
        )
        removed = orchestrator.clean(config.get_targets())

        if removed:
            ErrorFormatter.print_success(f"Removed {len(removed)} path(s)")
        else:
            ErrorFormatter.print_success("Nothing to clean")
        sys.exit(0)

    except XCForgeError as e:
        ErrorFormatter.handle_pipeline_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def main(argv: Optional[List[str]] = None) -> None:
    """xcforge - iOS xcframework build orchestrator.

    Cross-compiles autotools libraries for iOS device and simulator and
    packages them as xcframeworks.
    """
    parser = argparse.ArgumentParser(
        prog="xcforge",
        description="xcforge - iOS xcframework build orchestrator",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"xcforge {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Build xcframeworks for all (or selected) targets",
    )
    build_parser.add_argument(
        "version",
        nargs="?",
        default=None,
        help="Protobuf version to build (default: 21.12)",
    )
    build_parser.add_argument(
        "-C",
        "--project-dir",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    build_parser.add_argument(
        "-t",
        "--target",
        dest="targets",
        action="append",
        default=[],
        help="Target to build, may be repeated (default: all targets)",
    )
    build_parser.add_argument(
        "-c",
        "--clean",
        action="store_true",
        help="Remove previous outputs before building",
    )
    build_parser.add_argument(
        "--no-install",
        action="store_true",
        help="Don't copy packages into the consumer Frameworks directory",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose build output",
    )

    # Clean command
    clean_parser = subparsers.add_parser(
        "clean",
        help="Remove build directories, outputs and packages",
    )
    clean_parser.add_argument(
        "-C",
        "--project-dir",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    clean_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    PathValidator.validate_project_dir(parsed_args.project_dir)

    if parsed_args.command == "build":
        build_args = BuildArgs(
            project_dir=parsed_args.project_dir,
            version=parsed_args.version,
            targets=parsed_args.targets,
            clean=parsed_args.clean,
            install=not parsed_args.no_install,
            verbose=parsed_args.verbose,
        )
        build_command(build_args)
    elif parsed_args.command == "clean":
        clean_args = CleanArgs(
            project_dir=parsed_args.project_dir,
            verbose=parsed_args.verbose,
        )
        clean_command(clean_args)


if __name__ == "__main__":
    main()
