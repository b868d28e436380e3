"""
Pipeline orchestrator.

Drives every selected target through the pipeline, strictly in sequence:

    acquire source -> host build (if the target has a host tool)
    -> cross build per declared pair -> assemble package -> install

Targets run in dependency order. The first failure aborts the run; partial
state is left on disk for `xcforge clean`.
"""

import logging
import time
from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..config.ini_parser import InstallSettings
from ..config.platforms import TargetPair
from ..config.targets import TargetSpec
from ..deploy.installer import FrameworkInstaller, InstallResult
from ..errors import ConfigurationError
from ..packages.host_tools import RequirementChecker
from ..packages.layout import WorkspaceLayout
from ..packages.source import SourceAcquirer
from ..packages.toolchain import ToolchainResolver
from .artifacts import BuildArtifact, Handoff, MultiPlatformPackage
from .assembler import BundleAssembler
from .builder import TargetBuilder
from .command_runner import CommandRunner


@dataclass
class PipelineResult:
    """Outcome of a successful pipeline run."""

    packages: List[MultiPlatformPackage] = field(default_factory=list)
    host_tools: Dict[str, Path] = field(default_factory=dict)
    installs: List[InstallResult] = field(default_factory=list)
    elapsed: float = 0.0


def resolve_order(
    targets: Sequence[TargetSpec], selected: Optional[Sequence[str]] = None
) -> List[TargetSpec]:
    """
    Order targets so every dependency builds before its dependents.

    Args:
        targets: All known targets
        selected: Names to build (default: all). Dependencies of selected
            targets are included.

    Returns:
        Targets in build order

    Raises:
        ConfigurationError: On unknown targets, unknown dependencies or cycles
    """
    by_name = {t.name: t for t in targets}

    wanted = list(selected) if selected else list(by_name)
    unknown = [name for name in wanted if name not in by_name]
    if unknown:
        raise ConfigurationError(
            f"Unknown target(s): {', '.join(unknown)}. "
            + f"Available targets: {', '.join(by_name)}"
        )

    graph: Dict[str, List[str]] = {}
    pending = list(wanted)
    while pending:
        name = pending.pop()
        if name in graph:
            continue
        deps = [dep.target for dep in by_name[name].dependencies]
        for dep in deps:
            if dep not in by_name:
                raise ConfigurationError(
                    f"{name} depends on unknown target '{dep}'", target=name
                )
        graph[name] = deps
        pending.extend(deps)

    sorter = TopologicalSorter(graph)
    try:
        sorter.prepare()
    except CycleError as e:
        raise ConfigurationError(
            f"Dependency cycle between targets: {' -> '.join(e.args[1])}"
        ) from e

    # Definition order among targets that are ready together
    position = {name: i for i, name in enumerate(by_name)}
    ordered: List[str] = []
    while sorter.is_active():
        for name in sorted(sorter.get_ready(), key=position.__getitem__):
            ordered.append(name)
            sorter.done(name)
    return [by_name[name] for name in ordered]


class PipelineOrchestrator:
    """
    Runs the build pipeline for a set of targets.

    Example usage:
        config = ProjectConfig(project_dir)
        orchestrator = PipelineOrchestrator(
            WorkspaceLayout(project_dir), CommandRunner(),
            deployment_target=config.get_deployment_target(),
            install_settings=config.get_install_settings(),
        )
        result = orchestrator.run(config.get_targets("21.12"))
    """

    def __init__(
        self,
        layout: WorkspaceLayout,
        runner: CommandRunner,
        deployment_target: str,
        install_settings: Optional[InstallSettings] = None,
        jobs: Optional[int] = None,
        show_progress: bool = True,
        check_requirements: bool = True,
    ):
        """
        Initialize the orchestrator.

        Args:
            layout: Workspace layout
            runner: Command runner shared by every stage
            deployment_target: Minimum iOS version
            install_settings: Consumer locations (None disables install)
            jobs: Parallel make jobs (default: logical CPU count)
            show_progress: Show download progress bars
            check_requirements: Verify external commands before building
        """
        self.layout = layout
        self.runner = runner
        self.deployment_target = deployment_target
        self.check_requirements = check_requirements

        self.acquirer = SourceAcquirer(layout, show_progress=show_progress)
        self.resolver = ToolchainResolver(runner, deployment_target)
        self.builder = TargetBuilder(layout, runner, jobs=jobs)
        self.assembler = BundleAssembler(layout, runner, deployment_target)
        self.requirements = RequirementChecker(runner)
        self.installer = FrameworkInstaller(install_settings) if install_settings else None

    def run(
        self,
        targets: Sequence[TargetSpec],
        selected: Optional[Sequence[str]] = None,
        clean: bool = False,
    ) -> PipelineResult:
        """
        Build, package and install targets.

        Args:
            targets: All known targets
            selected: Target names to build (default: all)
            clean: Remove previous outputs of the ordered targets first

        Returns:
            PipelineResult

        Raises:
            XCForgeError: On the first failing stage
        """
        start_time = time.time()
        order = resolve_order(targets, selected)
        logging.info(f"Build order: {' -> '.join(t.name for t in order)}")

        if self.check_requirements:
            for spec in order:
                self.requirements.check(spec)

        if clean:
            for spec in order:
                self.layout.clean_target(spec)

        self.layout.ensure_directories()

        result = PipelineResult()
        cross_artifacts: Dict[str, Dict[TargetPair, BuildArtifact]] = {}

        for spec in order:
            package = self.run_target(spec, result.host_tools, cross_artifacts)
            result.packages.append(package)
            if self.installer is not None:
                result.installs.append(
                    self.installer.install(spec, package, result.host_tools)
                )

        result.elapsed = time.time() - start_time
        logging.info(f"Pipeline finished in {result.elapsed:.1f}s")
        return result

    def run_target(
        self,
        spec: TargetSpec,
        host_tools: Dict[str, Path],
        cross_artifacts: Dict[str, Dict[TargetPair, BuildArtifact]],
    ) -> MultiPlatformPackage:
        """
        Run one target through acquire, host build, cross builds and assembly.

        host_tools and cross_artifacts accumulate across targets so later
        targets can consume what earlier ones produced.
        """
        logging.info(f"=== {spec.name} {spec.version} ===")
        source_dir = self.acquirer.ensure_source(spec)

        if spec.host_tool is not None:
            host_artifact = self.builder.build_host(
                spec, source_dir, self.resolver.resolve_host()
            )
            host_tools[spec.host_tool.name] = host_artifact.tool

        built: Dict[TargetPair, BuildArtifact] = {}
        for pair in spec.pairs:
            handoff = Handoff(
                tools=dict(host_tools),
                artifacts={
                    dep.target: cross_artifacts[dep.target][pair]
                    for dep in spec.dependencies
                    if pair in cross_artifacts.get(dep.target, {})
                },
            )
            built[pair] = self.builder.build(
                spec, source_dir, self.resolver.resolve_pair(pair), handoff
            )
        cross_artifacts[spec.name] = built

        return self.assembler.assemble(spec, list(built.values()))

    def clean(self, targets: Sequence[TargetSpec]) -> List[Path]:
        """Remove build directories, outputs and packages of all targets."""
        removed = self.layout.clean_all(list(targets))
        for path in removed:
            logging.info(f"Removed {path}")
        return removed
