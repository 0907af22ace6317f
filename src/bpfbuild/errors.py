"""Error taxonomy for bpfbuild.

Every stage raises a subclass of BpfBuildError. None of them are recovered
from locally: the builder adds stage context and lets them propagate, and the
CLI turns them into a nonzero exit.
"""

from typing import Optional, Sequence


class BpfBuildError(Exception):
    """Base class for all bpfbuild failures."""

    pass


class ToolError(BpfBuildError):
    """Raised when an external tool fails.

    Attributes:
        cmd: Command line that was executed (None if not launched)
        returncode: Exit code of the tool (None if it could not be launched)
        stderr: Captured diagnostic output of the tool
    """

    def __init__(
        self,
        message: str,
        cmd: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.cmd = list(cmd) if cmd is not None else None
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        message = super().__str__()
        if self.stderr:
            message += f"\nstderr: {self.stderr.rstrip()}"
        return message


class ToolchainNotFoundError(ToolError):
    """Raised when no usable BPF compiler can be probed."""

    pass


class OutputDirectoryError(BpfBuildError):
    """Raised when the build output directory cannot be created."""

    pass


class ArchiveInstallError(BpfBuildError):
    """Raised when the bundled header archive cannot be installed."""

    pass


class PathEncodingError(BpfBuildError):
    """Raised when a filesystem path cannot be represented as text."""

    pass


class CompilationError(ToolError):
    """Raised when compiling a BPF source fails."""

    pass


class LinkError(ToolError):
    """Raised when linking BPF objects fails."""

    pass


class BindingGenerationError(ToolError):
    """Raised when a binding generator fails."""

    pass


class DependencyDiscoveryError(BpfBuildError):
    """Raised when scanning source directories for dependencies fails."""

    pass


class BuilderClosedError(BpfBuildError):
    """Raised when a builder is reconfigured after build() started."""

    pass
