"""Unit tests for toolchain resolution."""

from pathlib import Path
from unittest.mock import patch

import pytest

from xcforge.config.platforms import DEVICE, HOST, SIMULATOR, TargetPair
from xcforge.errors import ConfigurationError
from xcforge.packages.toolchain import BuildMode, ToolchainResolver


@pytest.fixture
def xcrun(runner):
    """Runner answering xcrun SDK and tool queries."""
    runner.on("xcrun", "--show-sdk-path", stdout=lambda call: f"/sdk/{call.args[2]}\n")
    runner.on("xcrun", "--find", stdout=lambda call: f"/xc/{call.args[2]}/{call.args[4]}\n")
    return runner


class TestToolchainResolver:
    """Test cases for ToolchainResolver."""

    def test_resolve_device(self, xcrun):
        descriptor = ToolchainResolver(xcrun, "17.0").resolve("arm64", DEVICE)

        assert descriptor.mode is BuildMode.CROSS
        assert descriptor.triple == "aarch64-apple-darwin"
        assert descriptor.sdk_root == Path("/sdk/iphoneos")
        assert descriptor.cc == Path("/xc/iphoneos/clang")
        assert descriptor.cxx == Path("/xc/iphoneos/clang++")
        assert descriptor.libtool == Path("/xc/iphoneos/libtool")
        assert descriptor.min_version_flag == "-miphoneos-version-min=17.0"
        assert descriptor.output_name == "ios-arm64"

    def test_resolve_simulator_flag_depends_only_on_platform(self, xcrun):
        resolver = ToolchainResolver(xcrun, "16.0")
        arm = resolver.resolve("arm64", SIMULATOR)
        intel = resolver.resolve("x86_64", SIMULATOR)

        assert arm.min_version_flag == intel.min_version_flag == "-mios-simulator-version-min=16.0"
        assert intel.triple == "x86_64-apple-darwin"
        assert arm.sdk_root == intel.sdk_root == Path("/sdk/iphonesimulator")

    def test_resolution_is_memoized(self, xcrun):
        resolver = ToolchainResolver(xcrun, "17.0")
        first = resolver.resolve("arm64", SIMULATOR)
        queries = len(xcrun.calls)

        second = resolver.resolve_pair(TargetPair("arm64", SIMULATOR))

        assert second is first
        assert len(xcrun.calls) == queries

    def test_sdk_path_queried_once_per_sdk(self, xcrun):
        resolver = ToolchainResolver(xcrun, "17.0")
        resolver.resolve("arm64", SIMULATOR)
        resolver.resolve("x86_64", SIMULATOR)

        sdk_queries = [c for c in xcrun.calls if "--show-sdk-path" in c.args]
        assert len(sdk_queries) == 1

    def test_unknown_architecture_fails_before_querying(self, xcrun):
        with pytest.raises(ConfigurationError, match="Unsupported architecture: armv7"):
            ToolchainResolver(xcrun, "17.0").resolve("armv7", DEVICE)
        assert xcrun.calls == []

    def test_missing_sdk(self, runner):
        runner.on("xcrun", "--show-sdk-path", returncode=1, stderr="SDK not found")
        with pytest.raises(ConfigurationError, match="SDK 'iphoneos' not found"):
            ToolchainResolver(runner, "17.0").resolve("arm64", DEVICE)

    def test_missing_tool_is_named(self, xcrun):
        xcrun.on("xcrun", "--find", "libtool", returncode=72)
        with pytest.raises(ConfigurationError, match="'libtool' not found"):
            ToolchainResolver(xcrun, "17.0").resolve("arm64", DEVICE)

    def test_host_platform_rejected_by_resolve(self, xcrun):
        with pytest.raises(ConfigurationError, match="resolve_host"):
            ToolchainResolver(xcrun, "17.0").resolve("arm64", HOST)

    def test_resolve_host(self, runner):
        tools = {"clang": Path("/usr/bin/clang"), "clang++": Path("/usr/bin/clang++")}
        with patch(
            "xcforge.packages.toolchain.which", side_effect=lambda name, env=None: tools.get(name)
        ):
            descriptor = ToolchainResolver(runner, "17.0").resolve_host()

        assert descriptor.mode is BuildMode.HOST
        assert descriptor.triple is None
        assert descriptor.min_version_flag is None
        assert descriptor.output_name == "host"
        assert descriptor.cc == Path("/usr/bin/clang")

    def test_resolve_host_without_compiler(self, runner):
        with patch("xcforge.packages.toolchain.which", return_value=None):
            with pytest.raises(ConfigurationError, match="Native C compiler"):
                ToolchainResolver(runner, "17.0").resolve_host()


class TestToolchainEnvironment:
    """Test cases for ToolchainDescriptor.environment."""

    def test_cross_environment(self, sim_x86_64):
        env = sim_x86_64.environment({"PATH": "/usr/bin"}, cxx_flags=("-std=c++17",))

        assert env["PATH"] == "/usr/bin"
        assert env["CC"] == "/xc/clang"
        assert env["CFLAGS"] == (
            "-arch x86_64 -isysroot /sdk/iphonesimulator -mios-simulator-version-min=17.0"
        )
        assert env["CPPFLAGS"] == env["CFLAGS"]
        assert env["CXXFLAGS"] == env["CFLAGS"] + " -std=c++17"
        assert env["LDFLAGS"] == "-arch x86_64 -isysroot /sdk/iphonesimulator"
        assert env["AR"] == "/xc/ar"
        assert env["RANLIB"] == "/xc/ranlib"

    def test_inherited_build_state_is_scrubbed(self, device_arm64):
        base = {
            "CFLAGS": "-arch x86_64",
            "LIBS": "-lfoo",
            "CONFIG_SITE": "/etc/config.site",
            "ac_cv_path_PROTOC": "/old/protoc",
            "HOME": "/home/me",
        }
        env = device_arm64.environment(base)

        assert "-arch x86_64" not in env["CFLAGS"]
        assert "LIBS" not in env
        assert "CONFIG_SITE" not in env
        assert "ac_cv_path_PROTOC" not in env
        assert env["HOME"] == "/home/me"

    def test_extra_cflags_appended(self, device_arm64):
        env = device_arm64.environment({}, extra_cflags=("-I/stubs", "-DHAVE_FORKPTY=1"))
        assert env["CFLAGS"].endswith("-I/stubs -DHAVE_FORKPTY=1")

    def test_environment_does_not_mutate_base(self, device_arm64):
        base = {"CFLAGS": "-O0"}
        device_arm64.environment(base)
        assert base == {"CFLAGS": "-O0"}
