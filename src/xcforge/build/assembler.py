"""
Bundle assembler.

Turns a target's per-pair BuildArtifacts into one multi-platform package:

    1. Group artifacts by platform and fuse each platform's architectures
       into one binary (simulator: arm64 + x86_64)
    2. Wrap each platform binary in a <Name>.framework with Headers/ and a
       generated Info.plist
    3. Combine the frameworks with `xcodebuild -create-xcframework`

Any stale package at the destination is removed before step 3.
"""

import hashlib
import logging
import shutil
from pathlib import Path
from typing import Dict, List, Sequence

from ..config.platforms import Platform
from ..config.targets import TargetSpec
from ..errors import AssemblyError
from ..packages.layout import WorkspaceLayout
from .artifacts import BuildArtifact, FrameworkBundle, MultiPlatformPackage, PlatformBundle
from .command_runner import CommandRunner
from .fat_binary import ArchitectureFuser, FuseError
from .manifest import framework_manifest, write_manifest


def hash_tree(root: Path) -> Dict[str, str]:
    """SHA256 of every file under root, keyed by relative path."""
    digests = {}
    for path in sorted(root.rglob("*")):
        if path.is_file():
            digests[path.relative_to(root).as_posix()] = hashlib.sha256(
                path.read_bytes()
            ).hexdigest()
    return digests


class BundleAssembler:
    """
    Assembles frameworks and multi-platform packages.

    Example usage:
        assembler = BundleAssembler(layout, runner, deployment_target="17.0")
        package = assembler.assemble(protobuf, artifacts)
        print(package.path)  # <project>/Protobuf.xcframework
    """

    def __init__(
        self,
        layout: WorkspaceLayout,
        runner: CommandRunner,
        deployment_target: str,
        verify_headers: bool = True,
    ):
        """
        Initialize bundle assembler.

        Args:
            layout: Workspace layout
            runner: Command runner for lipo and xcodebuild
            deployment_target: Minimum iOS version written to Info.plist
            verify_headers: Require identical headers across a platform's
                architectures
        """
        self.layout = layout
        self.runner = runner
        self.deployment_target = deployment_target
        self.verify_headers = verify_headers
        self.fuser = ArchitectureFuser(runner)

    def assemble(
        self, spec: TargetSpec, artifacts: Sequence[BuildArtifact]
    ) -> MultiPlatformPackage:
        """
        Assemble a target's artifacts into <Package>.xcframework.

        Args:
            spec: Target being packaged
            artifacts: One cross artifact per declared pair

        Returns:
            MultiPlatformPackage with one framework per platform

        Raises:
            AssemblyError: If an artifact is missing, fusing fails, headers
                differ across architectures or xcodebuild fails
        """
        logging.info(f"Assembling {spec.package_name}.xcframework...")

        bundles = [
            self.bundle_platform(spec, platform, group)
            for platform, group in self._group_by_platform(spec, artifacts).items()
        ]
        frameworks = [self.create_framework(spec, bundle) for bundle in bundles]
        return self.create_package(spec, frameworks)

    def _group_by_platform(
        self, spec: TargetSpec, artifacts: Sequence[BuildArtifact]
    ) -> Dict[Platform, List[BuildArtifact]]:
        by_pair = {artifact.pair: artifact for artifact in artifacts}
        groups: Dict[Platform, List[BuildArtifact]] = {}
        for pair in spec.pairs:
            artifact = by_pair.get(pair)
            if artifact is None or artifact.library is None:
                raise AssemblyError(
                    f"No build artifact for {pair.output_name}",
                    target=spec.name,
                    pair=pair.output_name,
                )
            groups.setdefault(pair.platform, []).append(artifact)
        return groups

    def bundle_platform(
        self, spec: TargetSpec, platform: Platform, artifacts: List[BuildArtifact]
    ) -> PlatformBundle:
        """Fuse one platform's architectures and pick its header source."""
        archs = tuple(a.arch for a in artifacts)
        header_artifact = artifacts[0]

        if self.verify_headers and len(artifacts) > 1:
            self._check_headers(spec, platform, artifacts)

        universal_name = f"{platform.output_prefix}-universal"
        output = self.layout.prefix_dir(spec, universal_name) / "lib" / spec.library_name
        try:
            binary = self.fuser.fuse([a.library for a in artifacts], output, archs)
        except FuseError as e:
            raise AssemblyError(
                str(e), target=spec.name, pair=universal_name, exit_code=e.exit_code
            ) from e

        return PlatformBundle(
            platform=platform,
            binary=binary,
            include_dir=header_artifact.include_dir,
            archs=archs,
            header_arch=header_artifact.arch,
        )

    def _check_headers(
        self, spec: TargetSpec, platform: Platform, artifacts: List[BuildArtifact]
    ) -> None:
        reference = artifacts[0]
        expected = hash_tree(self._header_source(spec, reference.include_dir))
        for artifact in artifacts[1:]:
            actual = hash_tree(self._header_source(spec, artifact.include_dir))
            if actual != expected:
                differing = sorted(
                    name
                    for name in set(expected) | set(actual)
                    if expected.get(name) != actual.get(name)
                )
                raise AssemblyError(
                    f"Headers differ between {reference.arch} and {artifact.arch} "
                    + f"on {platform.name}: {', '.join(differing[:10])}",
                    target=spec.name,
                    pair=artifact.output_name,
                )

    def _header_source(self, spec: TargetSpec, include_dir: Path) -> Path:
        if spec.framework_headers:
            return include_dir / spec.framework_headers
        return include_dir

    def create_framework(self, spec: TargetSpec, bundle: PlatformBundle) -> FrameworkBundle:
        """
        Write <Name>.framework for one platform.

        Layout:
            <Name>.framework/
            ├── <Name>          # static library binary
            ├── Headers/
            └── Info.plist
        """
        name = spec.package_name
        framework_dir = (
            self.layout.frameworks_dir(spec)
            / bundle.platform.output_prefix
            / f"{name}.framework"
        )
        if framework_dir.exists():
            shutil.rmtree(framework_dir)
        framework_dir.mkdir(parents=True)

        binary = framework_dir / name
        shutil.copy2(bundle.binary, binary)

        headers_source = self._header_source(spec, bundle.include_dir)
        headers_dir = framework_dir / "Headers"
        if not headers_source.is_dir():
            raise AssemblyError(
                f"Header directory not found: {headers_source}",
                target=spec.name,
                pair=bundle.platform.name,
            )
        shutil.copytree(headers_source, headers_dir)

        manifest = write_manifest(
            framework_dir / "Info.plist",
            framework_manifest(spec, self.deployment_target),
        )

        logging.info(
            f"Created {framework_dir.name} for {bundle.platform.name} "
            + f"({' '.join(bundle.archs)})"
        )
        return FrameworkBundle(
            platform=bundle.platform,
            path=framework_dir,
            binary=binary,
            headers_dir=headers_dir,
            manifest=manifest,
        )

    def create_package(
        self, spec: TargetSpec, frameworks: List[FrameworkBundle]
    ) -> MultiPlatformPackage:
        """Combine frameworks into <Package>.xcframework with xcodebuild."""
        package_path = self.layout.package_path(spec)
        if package_path.exists():
            logging.info(f"Removing stale {package_path.name}")
            shutil.rmtree(package_path)

        cmd = ["xcodebuild", "-create-xcframework"]
        for framework in frameworks:
            cmd.extend(["-framework", str(framework.path)])
        cmd.extend(["-output", str(package_path)])

        result = self.runner.run(cmd, expected_outputs=[package_path])
        if not result.ok:
            raise AssemblyError(
                f"xcodebuild -create-xcframework failed\n{result.describe_failure()}",
                target=spec.name,
                exit_code=result.returncode or 1,
            )

        logging.info(f"Created {package_path}")
        return MultiPlatformPackage(name=spec.package_name, path=package_path, frameworks=frameworks)
