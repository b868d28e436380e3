"""Unit tests for platform and architecture tables."""

from unittest.mock import patch

import pytest

from xcforge.config.platforms import (
    DEVICE,
    SIMULATOR,
    TargetPair,
    detect_host_arch,
    host_triple,
)
from xcforge.errors import ConfigurationError


class TestHostTriple:
    """Test cases for the architecture -> triple table."""

    def test_known_architectures(self):
        assert host_triple("arm64") == "aarch64-apple-darwin"
        assert host_triple("x86_64") == "x86_64-apple-darwin"

    def test_unknown_architecture_is_configuration_error(self):
        with pytest.raises(ConfigurationError, match="Unsupported architecture: armv7"):
            host_triple("armv7")


class TestPlatforms:
    """Test cases for platform definitions."""

    def test_device_uses_iphoneos_sdk(self):
        assert DEVICE.sdk == "iphoneos"
        assert DEVICE.min_version_flag == "-miphoneos-version-min"

    def test_simulator_uses_iphonesimulator_sdk(self):
        assert SIMULATOR.sdk == "iphonesimulator"
        assert SIMULATOR.min_version_flag == "-mios-simulator-version-min"


class TestTargetPair:
    """Test cases for TargetPair."""

    def test_output_names(self):
        assert TargetPair("arm64", DEVICE).output_name == "ios-arm64"
        assert TargetPair("arm64", SIMULATOR).output_name == "sim-arm64"
        assert str(TargetPair("x86_64", SIMULATOR)) == "sim-x86_64"

    def test_pairs_are_hashable_values(self):
        assert TargetPair("arm64", DEVICE) == TargetPair("arm64", DEVICE)
        assert len({TargetPair("arm64", DEVICE), TargetPair("arm64", DEVICE)}) == 1


class TestDetectHostArch:
    """Test cases for host architecture detection."""

    @pytest.mark.parametrize(
        "machine,expected",
        [("arm64", "arm64"), ("aarch64", "arm64"), ("x86_64", "x86_64"), ("AMD64", "x86_64")],
    )
    def test_normalizes_machine(self, machine, expected):
        with patch("xcforge.config.platforms.platform.machine", return_value=machine):
            assert detect_host_arch() == expected
