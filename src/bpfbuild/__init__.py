"""bpfbuild - build helper for BPF programs with generated userspace bindings."""

from .build.build_context import BuildContext, LayoutTarget, SkeletonTarget
from .build.builder import BpfBuilder, BuildResult
from .build.flags import FlagSet, resolve_flags
from .errors import (
    ArchiveInstallError,
    BindingGenerationError,
    BpfBuildError,
    BuilderClosedError,
    CompilationError,
    DependencyDiscoveryError,
    LinkError,
    OutputDirectoryError,
    PathEncodingError,
    ToolchainNotFoundError,
)
from .events import BuildEvent, DirectiveSink, EventKind, RecordingSink

__version__ = "0.3.0"

__all__ = [
    "ArchiveInstallError",
    "BindingGenerationError",
    "BpfBuildError",
    "BpfBuilder",
    "BuildContext",
    "BuildEvent",
    "BuildResult",
    "BuilderClosedError",
    "CompilationError",
    "DependencyDiscoveryError",
    "DirectiveSink",
    "EventKind",
    "FlagSet",
    "LayoutTarget",
    "LinkError",
    "OutputDirectoryError",
    "PathEncodingError",
    "RecordingSink",
    "SkeletonTarget",
    "ToolchainNotFoundError",
    "resolve_flags",
]
