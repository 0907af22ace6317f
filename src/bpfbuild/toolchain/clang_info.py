"""BPF Toolchain Probe.

This module discovers the clang used to compile BPF programs and derives
the baseline compiler flags for it.

Probe Process:
    1. Resolve the compiler name (BPF_CLANG, default "clang")
    2. Run `clang --version` to get the version and the host target triple
    3. Map the triple's architecture to the kernel architecture name used by
       the bundled vmlinux headers (x86_64 -> x86, aarch64 -> arm64, ...)
    4. Run `clang -v -E -` to collect the system include directories
    5. Build the baseline flags:
       -g -O2 -Wall -Wno-compare-distinct-pointer-types
       -D__TARGET_ARCH_<arch> -mcpu=v3 -m<endian>-endian
       -idirafter <sys include>...

BPF programs are compiled with `-target bpf`, which has no system include
path of its own. The host's system headers are appended with -idirafter so
that they are only consulted after the bundled kernel headers.
"""

import logging
import re
import sys
from dataclasses import dataclass
from typing import Optional

from ..config import EnvConfig
from ..errors import ToolchainNotFoundError
from ..subprocess_utils import run_tool

logger = logging.getLogger(__name__)

# Oldest clang known to produce BPF objects the skeleton generator accepts
MIN_CLANG_MAJOR = 16

# Target triple architecture -> kernel architecture; every value has arch/<name> in the bundle
KERNEL_TARGETS = {
    "x86_64": "x86",
    "aarch64": "arm64",
    "s390x": "s390",
    "riscv64": "riscv",
    "powerpc64le": "powerpc",
}

_VERSION_RE = re.compile(r"clang version (\S+)")
_TARGET_RE = re.compile(r"^Target:\s*(\S+)")

SEARCH_LIST_START = "#include <...> search starts here:"
SEARCH_LIST_END = "End of search list."


@dataclass(frozen=True)
class ClangInfo:
    """Probed BPF compiler.

    Attributes:
        clang: Compiler executable name or path
        version: Version string (e.g. "17.0.6")
        arch: Architecture part of the host target triple (e.g. "x86_64")
        kernel_target: Kernel architecture name (e.g. "x86")
        baseline_flags: Derived flags for compiling against kernel headers
    """

    clang: str
    version: str
    arch: str
    kernel_target: str
    baseline_flags: tuple[str, ...]

    @property
    def major(self) -> Optional[int]:
        """Major version number, or None if the version is not numeric."""
        match = re.match(r"(\d+)", self.version)
        return int(match.group(1)) if match else None

    def describe(self) -> str:
        """One-line summary used in build logs."""
        return f"{self.clang} {self.version} {self.arch}"


def parse_version_output(output: str) -> tuple[Optional[str], Optional[str]]:
    """Parse `clang --version` output.

    Distributions prefix the version line (e.g. "Ubuntu clang version ...",
    "Homebrew clang version ..."), and some builds follow the version with
    a repository URL and hash. Only the first word after "clang version" is
    kept.

    Returns:
        Tuple of (version, arch); either may be None if not found
    """
    version = None
    arch = None
    for line in output.splitlines():
        if version is None:
            match = _VERSION_RE.search(line)
            if match:
                version = match.group(1)
                continue
        match = _TARGET_RE.match(line)
        if match and arch is None:
            arch = match.group(1).split("-")[0]
    return version, arch


def kernel_target_for(arch: str) -> str:
    """Map a target triple architecture to its kernel architecture name.

    Raises:
        ToolchainNotFoundError: If the architecture is not supported
    """
    try:
        return KERNEL_TARGETS[arch]
    except KeyError:
        raise ToolchainNotFoundError(f"Unsupported architecture {arch}") from None


def parse_system_includes(output: str) -> Optional[list[str]]:
    """Extract the `#include <...>` search list from `clang -v -E -` output.

    Returns:
        List of include directories, or None if the search list is missing
    """
    includes: Optional[list[str]] = None
    for line in output.splitlines():
        if line == SEARCH_LIST_START:
            includes = []
            continue
        if includes is None:
            continue
        if line == SEARCH_LIST_END:
            return includes
        includes.append(line.strip())
    return None


def host_endian() -> str:
    """Return "little" or "big" for the host byte order."""
    return sys.byteorder


def baseline_flags(kernel_target: str, sys_includes: list[str], endian: str) -> list[str]:
    """Build the baseline BPF compiler flags."""
    flags = [
        "-g",
        "-O2",
        "-Wall",
        "-Wno-compare-distinct-pointer-types",
        f"-D__TARGET_ARCH_{kernel_target}",
        "-mcpu=v3",
        f"-m{endian}-endian",
    ]
    for include in sys_includes:
        flags.extend(["-idirafter", include])
    return flags


def probe(env: Optional[EnvConfig] = None) -> ClangInfo:
    """Discover the BPF compiler and derive its baseline flags.

    Args:
        env: Environment configuration (read from os.environ if None)

    Returns:
        Probed ClangInfo

    Raises:
        ToolchainNotFoundError: If clang can't be run or its output can't be
            parsed into a supported architecture
    """
    if env is None:
        env = EnvConfig.from_env()
    clang = env.clang

    result = run_tool([clang, "--version"], ToolchainNotFoundError, f"probe {clang}")
    version, arch = parse_version_output(result.stdout)
    if version is None:
        raise ToolchainNotFoundError(f"Failed to find clang version in `{clang} --version` output", cmd=[clang, "--version"])
    if arch is None:
        raise ToolchainNotFoundError(f"Failed to find target architecture in `{clang} --version` output", cmd=[clang, "--version"])

    kernel_target = kernel_target_for(arch)

    # clang -v prints the search list on stderr
    cmd = [clang, "-v", "-E", "-"]
    result = run_tool(cmd, ToolchainNotFoundError, f"query system includes of {clang}", input="")
    sys_includes = parse_system_includes(result.stderr)
    if sys_includes is None:
        raise ToolchainNotFoundError("Failed to find system includes", cmd=cmd)

    logger.debug("Probed %s %s (%s -> %s), %d system include dirs", clang, version, arch, kernel_target, len(sys_includes))

    return ClangInfo(
        clang=clang,
        version=version,
        arch=arch,
        kernel_target=kernel_target,
        baseline_flags=tuple(baseline_flags(kernel_target, sys_includes, host_endian())),
    )
