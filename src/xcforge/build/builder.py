"""
Per-target builder.

Runs one target's upstream autotools build against one ToolchainDescriptor
and produces a verified BuildArtifact. A target may be built in two modes:

    - host: native toolchain, only to produce a code-generator tool
    - cross: one build per (architecture, platform) pair

Every build starts with a full reset of the source tree, so configuration
cached by a previous mode or architecture never reaches the next build.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..config.targets import TargetSpec
from ..errors import BuildError, ConfigurationError
from ..packages.layout import WorkspaceLayout
from ..packages.toolchain import BuildMode, ToolchainDescriptor
from .archive_creator import ArchiveCreator, ArchiveError
from .artifacts import BuildArtifact, Handoff
from .autotools import AutotoolsError, AutotoolsProject
from .command_runner import CommandRunner


class TargetBuilder:
    """
    Builds targets into BuildArtifacts.

    Example usage:
        builder = TargetBuilder(layout, runner)
        host = builder.build_host(protobuf, source_dir, resolver.resolve_host())
        artifact = builder.build(
            protobuf, source_dir, resolver.resolve("arm64", DEVICE),
            Handoff(tools={"protoc": host.tool}),
        )
    """

    def __init__(
        self,
        layout: WorkspaceLayout,
        runner: CommandRunner,
        jobs: Optional[int] = None,
        base_env: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize target builder.

        Args:
            layout: Workspace layout
            runner: Command runner for all external tools
            jobs: Parallel make jobs (default: logical CPU count)
            base_env: Environment builds inherit (default: os.environ)
        """
        self.layout = layout
        self.runner = runner
        self.jobs = jobs
        self.base_env = dict(base_env if base_env is not None else os.environ)
        self.archive_creator = ArchiveCreator(runner)
        # Last build configuration per source tree, for mode-switch reporting
        self._last_build: Dict[Path, str] = {}

    def build_host(
        self,
        spec: TargetSpec,
        source_dir: Path,
        descriptor: ToolchainDescriptor,
    ) -> BuildArtifact:
        """
        Build a target in host mode to produce its code-generator tool.

        Args:
            spec: Target with a host_tool
            source_dir: Target source tree
            descriptor: Host toolchain descriptor

        Returns:
            BuildArtifact whose tool path is verified to exist

        Raises:
            ConfigurationError: If the target declares no host tool
            BuildError: If the build fails or the tool is missing
        """
        if spec.host_tool is None:
            raise ConfigurationError(
                f"{spec.name} declares no host tool; nothing to build in host mode",
                target=spec.name,
            )
        if descriptor.mode is not BuildMode.HOST:
            raise ConfigurationError(
                "build_host() requires a host-mode toolchain descriptor",
                target=spec.name,
                pair=descriptor.output_name,
            )

        logging.info(f"Building {spec.name} for host ({spec.host_tool.name})...")

        prefix = self.layout.prefix_dir(spec, descriptor.output_name)
        env = descriptor.environment(self.base_env)
        args = [*spec.host_configure_args, f"--prefix={prefix}"]

        self._run_autotools(spec, source_dir, descriptor, prefix, args, env, install=True)

        tool = prefix / spec.host_tool.path
        if not tool.is_file():
            raise BuildError(
                f"Build reported success but host tool {spec.host_tool.name} "
                + f"is missing: {tool}",
                target=spec.name,
                pair=descriptor.output_name,
            )

        version = self.runner.capture([str(tool), "--version"])
        logging.info(f"Built {spec.host_tool.name}: {tool}" + (f" ({version})" if version else ""))

        return BuildArtifact(
            target=spec.name,
            arch=descriptor.arch,
            platform=descriptor.platform,
            mode=BuildMode.HOST,
            prefix=prefix,
            library=None,
            include_dir=prefix / "include",
            tool=tool,
        )

    def build(
        self,
        spec: TargetSpec,
        source_dir: Path,
        descriptor: ToolchainDescriptor,
        handoff: Optional[Handoff] = None,
    ) -> BuildArtifact:
        """
        Cross-compile a target for one (architecture, platform) pair.

        Args:
            spec: Target to build
            source_dir: Target source tree
            descriptor: Cross toolchain descriptor
            handoff: Host tools and same-pair dependency artifacts

        Returns:
            BuildArtifact whose static library is verified to exist

        Raises:
            ConfigurationError: If a required host tool or dependency
                artifact is missing (raised before any command runs)
            BuildError: If the build fails or its library is missing
        """
        handoff = handoff or Handoff()
        pair_name = descriptor.output_name

        if descriptor.mode is not BuildMode.CROSS or not descriptor.triple:
            raise ConfigurationError(
                "build() requires a cross-compile toolchain descriptor",
                target=spec.name,
                pair=pair_name,
            )

        tool_args, tool_env = self._resolve_tools(spec, descriptor, handoff)
        dep_env = self._resolve_dependency_artifacts(spec, descriptor, handoff)

        logging.info(f"Building {spec.name} for {pair_name} ({descriptor.arch})...")

        prefix = self.layout.prefix_dir(spec, pair_name)

        extra_cflags = list(spec.extra_cflags)
        if spec.stub_headers:
            stub_dir = self._write_stub_headers(spec)
            extra_cflags.insert(0, f"-I{stub_dir}")

        env = descriptor.environment(
            self.base_env, extra_cflags=tuple(extra_cflags), cxx_flags=spec.cxx_flags
        )
        env.update(spec.cache_variables)
        env.update(tool_env)
        env.update(dep_env)

        args = [
            f"--host={descriptor.triple}",
            *spec.configure_args,
            *tool_args,
            f"--prefix={prefix}",
        ]

        self._run_autotools(
            spec, source_dir, descriptor, prefix, args, env, install=spec.make_install
        )

        library = prefix / spec.library
        if spec.combine_libraries:
            self._combine_libraries(spec, source_dir, descriptor, library)

        include_dir = prefix / "include"
        self._copy_headers(spec, source_dir, include_dir, pair_name)

        if not library.is_file():
            raise BuildError(
                f"Build reported success but expected library is missing: {library}",
                target=spec.name,
                pair=pair_name,
            )

        logging.info(f"Built {spec.name} for {pair_name}")
        return BuildArtifact(
            target=spec.name,
            arch=descriptor.arch,
            platform=descriptor.platform,
            mode=BuildMode.CROSS,
            prefix=prefix,
            library=library,
            include_dir=include_dir,
        )

    def _resolve_tools(
        self, spec: TargetSpec, descriptor: ToolchainDescriptor, handoff: Handoff
    ):
        """Translate required host tools into configure args and env vars."""
        args: List[str] = []
        env: Dict[str, str] = {}

        if spec.host_tool is not None:
            tool = self._require_tool(spec, spec.host_tool.name, spec.name, descriptor, handoff)
            if spec.host_tool.configure_arg:
                args.append(spec.host_tool.configure_arg.format(tool=tool))

        for dep in spec.dependencies:
            if not dep.tool:
                continue
            tool = self._require_tool(spec, dep.tool, dep.target, descriptor, handoff)
            if dep.tool_configure_arg:
                args.append(dep.tool_configure_arg.format(tool=tool))
            if dep.tool_env:
                env[dep.tool_env] = str(tool)

        return args, env

    def _require_tool(
        self,
        spec: TargetSpec,
        tool_name: str,
        provider: str,
        descriptor: ToolchainDescriptor,
        handoff: Handoff,
    ) -> Path:
        tool = handoff.tools.get(tool_name)
        if tool is None or not Path(tool).is_file() or not os.access(tool, os.X_OK):
            location = f" at {tool}" if tool is not None else ""
            raise ConfigurationError(
                f"Required host tool '{tool_name}' not found{location}. "
                + f"Build {provider} in host mode first.",
                target=spec.name,
                pair=descriptor.output_name,
            )
        return Path(tool)

    def _resolve_dependency_artifacts(
        self, spec: TargetSpec, descriptor: ToolchainDescriptor, handoff: Handoff
    ) -> Dict[str, str]:
        """Translate same-pair dependency artifacts into env vars."""
        env: Dict[str, str] = {}
        for dep in spec.dependencies:
            if not dep.needs_artifact:
                continue
            artifact = handoff.artifacts.get(dep.target)
            if (
                artifact is None
                or artifact.pair != descriptor.pair
                or artifact.library is None
                or not artifact.library.is_file()
            ):
                raise ConfigurationError(
                    f"Dependency artifact {dep.target} for {descriptor.output_name} "
                    + f"not found. Build {dep.target} first.",
                    target=spec.name,
                    pair=descriptor.output_name,
                )
            if dep.libs_env:
                env[dep.libs_env] = str(artifact.library)
            if dep.cflags_env:
                env[dep.cflags_env] = f"-I{artifact.include_dir}"
        return env

    def _run_autotools(
        self,
        spec: TargetSpec,
        source_dir: Path,
        descriptor: ToolchainDescriptor,
        prefix: Path,
        configure_args: List[str],
        env: Dict[str, str],
        install: bool,
    ) -> None:
        project = AutotoolsProject(source_dir, self.runner, self.jobs)
        pair_name = descriptor.output_name

        previous = self._last_build.get(source_dir)
        if previous is not None and previous != pair_name:
            logging.info(f"Resetting {spec.name} source tree ({previous} -> {pair_name})")

        try:
            project.reset(env)
            self._last_build[source_dir] = pair_name
            if prefix.exists():
                shutil.rmtree(prefix)

            project.autogen(env)
            project.configure(configure_args, env)
            project.make(env)
            if install:
                project.make(env, "install")
        except AutotoolsError as e:
            raise BuildError(str(e), target=spec.name, pair=pair_name, exit_code=e.exit_code) from e

    def _write_stub_headers(self, spec: TargetSpec) -> Path:
        stub_dir = self.layout.stub_headers_dir(spec)
        stub_dir.mkdir(parents=True, exist_ok=True)
        for name, content in spec.stub_headers.items():
            (stub_dir / name).write_text(content)
        return stub_dir

    def _combine_libraries(
        self,
        spec: TargetSpec,
        source_dir: Path,
        descriptor: ToolchainDescriptor,
        library: Path,
    ) -> None:
        if descriptor.libtool is None:
            raise ConfigurationError(
                "Toolchain component 'libtool' not available",
                target=spec.name,
                pair=descriptor.output_name,
            )
        try:
            self.archive_creator.combine(
                descriptor.libtool,
                library,
                [source_dir / lib for lib in spec.combine_libraries],
            )
        except ArchiveError as e:
            raise BuildError(
                str(e), target=spec.name, pair=descriptor.output_name, exit_code=e.exit_code
            ) from e

    def _copy_headers(
        self, spec: TargetSpec, source_dir: Path, include_dir: Path, pair_name: str
    ) -> None:
        for rule in spec.headers:
            src = source_dir / rule.source
            dst = include_dir / rule.dest
            if not src.exists():
                raise BuildError(
                    f"Declared header not found: {src}", target=spec.name, pair=pair_name
                )
            dst.parent.mkdir(parents=True, exist_ok=True)
            if src.is_dir():
                shutil.copytree(src, dst, dirs_exist_ok=True)
            else:
                shutil.copy2(src, dst)
