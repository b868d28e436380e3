"""Shared fixtures for xcforge unit tests.

FakeRunner stands in for CommandRunner: it records every command and
answers from scripted rules instead of spawning processes.
"""

import os
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from xcforge.build.command_runner import CommandResult, CommandRunner
from xcforge.config.platforms import DEVICE, SIMULATOR
from xcforge.packages.layout import WorkspaceLayout
from xcforge.packages.toolchain import BuildMode, ToolchainDescriptor


class Call:
    """One recorded command."""

    def __init__(self, args, cwd, env):
        self.args = [str(a) for a in args]
        self.cwd = cwd
        self.env = dict(env) if env is not None else None

    @property
    def name(self) -> str:
        return os.path.basename(self.args[0])

    def __repr__(self) -> str:
        return f"Call({' '.join(self.args)})"


class FakeRunner(CommandRunner):
    """Scripted CommandRunner.

    Rules match on the executable's basename plus tokens that must all
    appear in the arguments. The most recently added matching rule wins.
    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        super().__init__()
        self.calls: List[Call] = []
        self.rules = []

    def on(
        self,
        name: str,
        *tokens: str,
        returncode: int = 0,
        stdout="",
        stderr: str = "",
        effect: Optional[Callable] = None,
    ) -> "FakeRunner":
        self.rules.append((name, tokens, returncode, stdout, stderr, effect))
        return self

    def run(self, args, cwd=None, env=None, expected_outputs=()):
        call = Call(args, cwd, env)
        self.calls.append(call)

        returncode, stdout, stderr = 0, "", ""
        for name, tokens, rc, out, err, effect in reversed(self.rules):
            if name == call.name and all(t in call.args for t in tokens):
                if effect is not None:
                    effect(call)
                returncode = rc
                stdout = out(call) if callable(out) else out
                stderr = err
                break

        result = CommandResult(
            args=call.args, returncode=returncode, stdout=stdout, stderr=stderr
        )
        if returncode == 0:
            result.missing_outputs = [Path(p) for p in expected_outputs if not Path(p).exists()]
        return result

    def commands(self, name: str) -> List[Call]:
        return [c for c in self.calls if c.name == name]


def prefix_of(call: Call) -> Path:
    """The --prefix value of a configure call."""
    for arg in call.args:
        if arg.startswith("--prefix="):
            return Path(arg.split("=", 1)[1])
    raise AssertionError(f"no --prefix in {call}")


def make_executable(path: Path, content: str = "#!/bin/sh\necho 'libprotoc 3.21.12'\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(0o755)
    return path


class FakeAutotools:
    """Simulates configure + make install by writing files into the prefix.

    Attributes:
        files: Prefix-relative files written by `make install`
        tool: Prefix-relative executable written by `make install`
        tree_files: Source-relative files written by plain `make`
    """

    def __init__(self, runner: FakeRunner, files=(), tool=None, tree_files=()):
        self.files = list(files)
        self.tool = tool
        self.tree_files = list(tree_files)
        self.prefix = None
        runner.on("configure", effect=self._configure)
        runner.on("make", effect=self._make)
        runner.on("make", "install", effect=self._install)
        runner.on("make", "distclean")

    def _configure(self, call: Call) -> None:
        self.prefix = prefix_of(call)
        (Path(call.cwd) / "Makefile").write_text("all:\n")

    def _make(self, call: Call) -> None:
        for rel in self.tree_files:
            path = Path(call.cwd) / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"!<arch>\n")

    def _install(self, call: Call) -> None:
        for rel in self.files:
            path = self.prefix / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"!<arch>\n")
        if self.tool:
            make_executable(self.prefix / self.tool)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("XCFORGE_OUTPUT_DIR", raising=False)
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def layout(project_dir):
    return WorkspaceLayout(project_dir)


def cross_descriptor(arch: str, platform, sdk_root: Path = Path("/sdk")) -> ToolchainDescriptor:
    """A cross descriptor with fixed tool paths."""
    triple = {"arm64": "aarch64-apple-darwin", "x86_64": "x86_64-apple-darwin"}[arch]
    return ToolchainDescriptor(
        arch=arch,
        platform=platform,
        mode=BuildMode.CROSS,
        cc=Path("/xc/clang"),
        cxx=Path("/xc/clang++"),
        ar=Path("/xc/ar"),
        ranlib=Path("/xc/ranlib"),
        libtool=Path("/xc/libtool"),
        sdk_root=sdk_root / platform.sdk,
        min_version_flag=f"{platform.min_version_flag}=17.0",
        triple=triple,
    )


@pytest.fixture
def cross_toolchain():
    """Factory resolving a TargetPair to a fixed cross descriptor."""
    return lambda pair: cross_descriptor(pair.arch, pair.platform)


@pytest.fixture
def device_arm64():
    return cross_descriptor("arm64", DEVICE)


@pytest.fixture
def sim_arm64():
    return cross_descriptor("arm64", SIMULATOR)


@pytest.fixture
def sim_x86_64():
    return cross_descriptor("x86_64", SIMULATOR)


@pytest.fixture
def autotools(runner):
    """Factory installing FakeAutotools rules on the runner."""

    def factory(files=(), tool=None, tree_files=()):
        return FakeAutotools(runner, files=files, tool=tool, tree_files=tree_files)

    return factory


@pytest.fixture
def executable():
    """Factory writing an executable script."""
    return make_executable


@pytest.fixture
def configure_prefix():
    return prefix_of
