"""
Pipeline tests running the real builder, assembler and installer.

Only source acquisition and toolchain resolution are stubbed; every
external tool is answered by the scripted runner.
"""

from dataclasses import replace
from pathlib import Path
from unittest.mock import Mock

import pytest

from xcforge.build.manifest import read_manifest
from xcforge.build.orchestrator import PipelineOrchestrator
from xcforge.config.ini_parser import InstallSettings
from xcforge.config.platforms import HOST
from xcforge.config.targets import MOSH, PROTOBUF
from xcforge.errors import ConfigurationError
from xcforge.packages.toolchain import BuildMode, ToolchainDescriptor

TARGETS = [PROTOBUF, MOSH]
PROTOBUF_FILES = ["lib/libprotobuf.a", "include/google/protobuf/message.h"]
MOSH_TREE_FILES = [*MOSH.combine_libraries, "src/frontend/moshiosbridge.h"]


@pytest.fixture
def sources(layout):
    """Ready-to-configure source trees for both targets."""
    trees = {}
    for spec in TARGETS:
        source = layout.source_dir(spec)
        source.mkdir(parents=True)
        (source / "configure").write_text("#!/bin/sh\n")
        trees[spec.name] = source
    (trees["mosh"] / "configure.ac").write_text("AC_INIT([mosh], [1.4.0])\n")
    return trees


@pytest.fixture
def apple_tools(runner):
    """lipo, libtool and xcodebuild fakes that write their outputs."""

    def write_output(flag):
        def effect(call):
            output = Path(call.args[call.args.index(flag) + 1])
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(b"!<arch>\n")

        return effect

    def create_xcframework(call):
        output = Path(call.args[call.args.index("-output") + 1])
        # xcodebuild refuses to write over an existing package
        output.mkdir()
        for i, arg in enumerate(call.args):
            if arg == "-framework":
                framework = Path(call.args[i + 1])
                (output / framework.parent.name / framework.name).mkdir(parents=True)
        (output / "Info.plist").write_bytes(b"<plist/>")

    runner.on("lipo", "-create", effect=write_output("-output"))
    runner.on("lipo", "-archs", stdout="arm64 x86_64\n")
    runner.on("libtool", "-static", effect=write_output("-o"))
    runner.on("xcodebuild", "-create-xcframework", effect=create_xcframework)
    return runner


@pytest.fixture
def frameworks_dir(tmp_path):
    frameworks = tmp_path / "app" / "Frameworks"
    frameworks.mkdir(parents=True)
    return frameworks


@pytest.fixture
def pipeline(layout, apple_tools, autotools, sources, cross_toolchain, frameworks_dir):
    autotools(files=PROTOBUF_FILES, tool="bin/protoc", tree_files=MOSH_TREE_FILES)

    orchestrator = PipelineOrchestrator(
        layout,
        apple_tools,
        deployment_target="17.0",
        install_settings=InstallSettings(
            frameworks_dir=frameworks_dir, bin_dir=frameworks_dir.parent / "bin"
        ),
        jobs=4,
        show_progress=False,
        check_requirements=False,
    )
    orchestrator.acquirer = Mock()
    orchestrator.acquirer.ensure_source.side_effect = lambda spec: sources[spec.name]
    orchestrator.resolver = Mock()
    orchestrator.resolver.resolve_pair.side_effect = cross_toolchain
    orchestrator.resolver.resolve_host.return_value = ToolchainDescriptor(
        arch="arm64",
        platform=HOST,
        mode=BuildMode.HOST,
        cc=Path("/usr/bin/clang"),
        cxx=Path("/usr/bin/clang++"),
    )
    return orchestrator


class TestPipeline:
    """Full runs over protobuf and mosh."""

    def test_builds_packages_and_installs(self, pipeline, layout, frameworks_dir):
        result = pipeline.run(TARGETS)

        protobuf, mosh = result.packages
        assert protobuf.path == layout.package_path(PROTOBUF)
        assert mosh.path == layout.package_path(MOSH)
        assert [f.platform.name for f in protobuf.frameworks] == ["device", "simulator"]

        manifest = read_manifest(protobuf.frameworks[0].manifest)
        assert manifest["CFBundleExecutable"] == "Protobuf"
        assert manifest["CFBundleShortVersionString"] == "3.21.12"
        assert manifest["MinimumOSVersion"] == "17.0"
        for framework in mosh.frameworks:
            assert (framework.headers_dir / "moshiosbridge.h").is_file()

        assert (frameworks_dir / "Protobuf.xcframework").is_dir()
        assert (frameworks_dir / "mosh.xcframework").is_dir()
        assert (frameworks_dir.parent / "bin" / "protoc").is_file()

    def test_host_pass_precedes_cross_builds(self, pipeline, apple_tools):
        result = pipeline.run(TARGETS)

        prefixes = [
            next(a for a in c.args if a.startswith("--prefix=")).rsplit("/", 1)[-1]
            for c in apple_tools.commands("configure")
        ]
        assert prefixes == [
            "host", "ios-arm64", "sim-arm64", "sim-x86_64",
            "ios-arm64", "sim-arm64", "sim-x86_64",
        ]
        host_configure, *protobuf_configures = apple_tools.commands("configure")[:4]
        assert not any(a.startswith("--host=") for a in host_configure.args)
        with_protoc = f"--with-protoc={result.host_tools['protoc']}"
        assert all(with_protoc in c.args for c in protobuf_configures)

    def test_dependent_gets_host_tool_and_same_pair_library(self, pipeline, apple_tools, sources, layout):
        result = pipeline.run(TARGETS)

        mosh_configures = [
            c for c in apple_tools.commands("configure") if Path(c.cwd) == sources["mosh"]
        ]
        assert len(mosh_configures) == 3
        for call in mosh_configures:
            pair = next(a for a in call.args if a.startswith("--prefix=")).rsplit("/", 1)[-1]
            assert call.env["ac_cv_path_PROTOC"] == str(result.host_tools["protoc"])
            assert call.env["protobuf_LIBS"] == str(
                layout.prefix_dir(PROTOBUF, pair) / "lib" / "libprotobuf.a"
            )

    def test_missing_host_tool_stops_dependent_before_any_command(
        self, pipeline, apple_tools, sources
    ):
        protobuf_without_protoc = replace(PROTOBUF, host_tool=None)

        with pytest.raises(ConfigurationError, match="Required host tool 'protoc' not found") as exc_info:
            pipeline.run([protobuf_without_protoc, MOSH])

        assert exc_info.value.target == "mosh"
        assert exc_info.value.pair == "ios-arm64"
        assert not [c for c in apple_tools.calls if c.cwd and Path(c.cwd) == sources["mosh"]]
        assert apple_tools.commands("clang") == []

    def test_second_run_replaces_previous_package(self, pipeline, apple_tools, layout):
        pipeline.run(TARGETS)
        stale_slice = layout.package_path(PROTOBUF) / "ios-armv7"
        stale_slice.mkdir()

        result = pipeline.run(TARGETS)

        assert len(apple_tools.commands("xcodebuild")) == 4
        assert not stale_slice.exists()
        assert result.packages[0].path.is_dir()
