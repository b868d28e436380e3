"""Target definitions.

A TargetSpec describes one buildable library: where its source comes from,
which (architecture, platform) pairs it is built for, how its autotools
build is configured, and which other targets it needs first.

Built-in targets:
    - protobuf: Protobuf C++ runtime, downloaded from GitHub releases. Built
      once in host mode to produce protoc, then cross-compiled.
    - mosh: Mosh iOS controller library from a pre-populated checkout. Needs
      protobuf's host protoc and its cross-built libprotobuf.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from .platforms import DEVICE, SIMULATOR, TargetPair

DEFAULT_DEPLOYMENT_TARGET = "17.0"

# Target whose version the CLI's positional VERSION argument overrides
VERSIONED_TARGET = "protobuf"

DEFAULT_PAIRS: Tuple[TargetPair, ...] = (
    TargetPair("arm64", DEVICE),
    TargetPair("arm64", SIMULATOR),
    TargetPair("x86_64", SIMULATOR),
)


@dataclass(frozen=True)
class SourceLocator:
    """Where a target's source tree comes from.

    Exactly one of url or checkout is set. Both url and archive_root are
    templates expanded with the target version.

    Attributes:
        url: Download URL template for a source archive
        archive_root: Directory name the archive is expected to extract to
        checksum: Optional SHA256 checksum of the archive
        checkout: Project-relative path of a pre-populated checkout
        marker: File that must exist inside a valid checkout
        hint: Operator hint shown when a checkout is missing
    """

    url: Optional[str] = None
    archive_root: Optional[str] = None
    checksum: Optional[str] = None
    checkout: Optional[str] = None
    marker: str = "configure.ac"
    hint: str = ""

    @property
    def is_download(self) -> bool:
        return self.url is not None

    def resolve_url(self, version: str) -> str:
        return (self.url or "").format(version=version)

    def resolve_archive_root(self, version: str) -> str:
        return (self.archive_root or "").format(version=version)


@dataclass(frozen=True)
class HostToolSpec:
    """A code-generator tool built in host mode.

    Attributes:
        name: Tool name (e.g. 'protoc')
        path: Path of the tool relative to the host install prefix
        configure_arg: Template passing the tool to this target's own cross
            builds, e.g. '--with-protoc={tool}'
        publish: Whether the tool is copied to the consumer's bin directory
    """

    name: str
    path: str
    configure_arg: Optional[str] = None
    publish: bool = False


@dataclass(frozen=True)
class Dependency:
    """A build-time edge to another target, with a typed handoff.

    Attributes:
        target: Name of the target depended upon
        tool: Name of the dependency's host tool this target needs, if any
        tool_env: Environment variable receiving the tool path
        tool_configure_arg: Configure argument template receiving the tool
        libs_env: Environment variable receiving the dependency's library
        cflags_env: Environment variable receiving '-I<headers>'
    """

    target: str
    tool: Optional[str] = None
    tool_env: Optional[str] = None
    tool_configure_arg: Optional[str] = None
    libs_env: Optional[str] = None
    cflags_env: Optional[str] = None

    @property
    def needs_artifact(self) -> bool:
        return bool(self.libs_env or self.cflags_env)


@dataclass(frozen=True)
class HeaderRule:
    """Copy a header (file or directory) from the source tree into the
    artifact's include directory."""

    source: str
    dest: str


@dataclass(frozen=True)
class TargetSpec:
    """One buildable unit. Immutable once defined."""

    name: str
    version: str
    source: SourceLocator
    package_name: str
    bundle_identifier: str
    library: str
    pairs: Tuple[TargetPair, ...] = DEFAULT_PAIRS
    short_version: str = "{version}"
    dependencies: Tuple[Dependency, ...] = ()
    host_tool: Optional[HostToolSpec] = None
    host_configure_args: Tuple[str, ...] = ()
    configure_args: Tuple[str, ...] = ()
    cache_variables: Dict[str, str] = field(default_factory=dict)
    extra_cflags: Tuple[str, ...] = ()
    cxx_flags: Tuple[str, ...] = ("-std=c++17", "-stdlib=libc++")
    stub_headers: Dict[str, str] = field(default_factory=dict)
    make_install: bool = True
    combine_libraries: Tuple[str, ...] = ()
    headers: Tuple[HeaderRule, ...] = ()
    framework_headers: str = ""
    legacy_package_names: Tuple[str, ...] = ()
    required_commands: Tuple[str, ...] = ()
    required_sdk_tools: Tuple[str, ...] = ()

    def __hash__(self) -> int:
        return hash((self.name, self.version))

    @property
    def display_version(self) -> str:
        """CFBundleShortVersionString value (e.g. '3.21.12')."""
        return self.short_version.format(version=self.version)

    @property
    def library_name(self) -> str:
        """File name of the static library (e.g. 'libprotobuf.a')."""
        return self.library.rsplit("/", 1)[-1]

    def with_overrides(
        self,
        version: Optional[str] = None,
        url: Optional[str] = None,
        checksum: Optional[str] = None,
    ) -> "TargetSpec":
        """Return a copy with version and/or source overrides applied."""
        spec = self
        if version:
            spec = replace(spec, version=version)
        if url or checksum:
            spec = replace(
                spec,
                source=replace(
                    spec.source,
                    url=url or spec.source.url,
                    checksum=checksum or spec.source.checksum,
                ),
            )
        return spec


PROTOBUF = TargetSpec(
    name="protobuf",
    version="21.12",
    source=SourceLocator(
        url=(
            "https://github.com/protocolbuffers/protobuf/releases/download/"
            "v{version}/protobuf-cpp-3.{version}.tar.gz"
        ),
        archive_root="protobuf-3.{version}",
    ),
    package_name="Protobuf",
    bundle_identifier="com.google.protobuf",
    short_version="3.{version}",
    library="lib/libprotobuf.a",
    host_tool=HostToolSpec(
        name="protoc",
        path="bin/protoc",
        configure_arg="--with-protoc={tool}",
        publish=True,
    ),
    host_configure_args=("--disable-shared",),
    configure_args=("--disable-shared",),
    framework_headers="",
    legacy_package_names=("Protobuf_C_",),
    required_commands=("autoconf", "automake", "libtool", "make", "xcrun"),
)

MOSH_STUB_HEADERS = {
    "ncurses.h": (
        "#ifndef _NCURSES_H\n"
        "#define _NCURSES_H\n"
        "// Minimal ncurses header for iOS cross-compilation\n"
        "typedef char* TERMINAL;\n"
        "#define OK 0\n"
        "#define ERR (-1)\n"
        "#endif\n"
    ),
    "curses.h": (
        "#ifndef _CURSES_H\n"
        "#define _CURSES_H\n"
        '#include "ncurses.h"\n'
        "#endif\n"
    ),
    "term.h": (
        "#ifndef _TERM_H\n"
        "#define _TERM_H\n"
        "#endif\n"
    ),
}

MOSH = TargetSpec(
    name="mosh",
    version="1.4.0",
    source=SourceLocator(
        checkout="mosh",
        marker="configure.ac",
        hint="Run: git submodule update --init --recursive",
    ),
    package_name="mosh",
    bundle_identifier="org.mosh.mosh",
    library="lib/libmosh.a",
    dependencies=(
        Dependency(
            target="protobuf",
            tool="protoc",
            tool_env="ac_cv_path_PROTOC",
            libs_env="protobuf_LIBS",
            cflags_env="protobuf_CFLAGS",
        ),
    ),
    configure_args=(
        "--disable-server",
        "--disable-client",
        "--enable-ios-controller",
    ),
    cache_variables={
        "ac_cv_lib_z_compress": "yes",
        "ac_cv_func_gettimeofday": "yes",
        "ac_cv_func_forkpty": "yes",
        "ac_cv_func_cfmakeraw": "yes",
        "ac_cv_func_posix_memalign": "yes",
        "ac_cv_func_pselect": "yes",
    },
    # iOS has forkpty and cfmakeraw; skips pty_compat.cc
    extra_cflags=("-DHAVE_FORKPTY=1", "-DHAVE_CFMAKERAW=1"),
    stub_headers=MOSH_STUB_HEADERS,
    make_install=False,
    combine_libraries=(
        "src/crypto/libmoshcrypto.a",
        "src/network/libmoshnetwork.a",
        "src/protobufs/libmoshprotos.a",
        "src/statesync/libmoshstatesync.a",
        "src/terminal/libmoshterminal.a",
        "src/frontend/libmoshiosclient.a",
        "src/util/libmoshutil.a",
    ),
    headers=(HeaderRule("src/frontend/moshiosbridge.h", "mosh/moshiosbridge.h"),),
    framework_headers="mosh",
    required_commands=("autoconf", "automake", "make", "xcrun"),
    required_sdk_tools=("libtool",),
)

BUILTIN_TARGETS: Dict[str, TargetSpec] = {t.name: t for t in (PROTOBUF, MOSH)}
