"""Build Context - resolved build configuration.

This module defines:
- LayoutTarget / SkeletonTarget: the two optional binding outputs
- BuildContext: everything a stage needs, resolved once per build

Design:
    BpfBuilder collects targets and sources, then at the start of build()
    probes the toolchain, installs the header bundle and resolves the flags.
    The result is frozen into a BuildContext that flows, read-only, through
    the compiler, linker, binding generators and rebuild tracker.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import EnvConfig
from ..errors import BpfBuildError
from ..events import BuildEventSink
from ..toolchain.clang_info import ClangInfo
from .flags import FlagSet


def _is_text(value: object) -> bool:
    return isinstance(value, str) and bool(value)


@dataclass(frozen=True)
class LayoutTarget:
    """Data-layout binding: header in, binding file out.

    Attributes:
        input_header: Header declaring the shared constants and types
        output_name: File name of the binding, relative to the output directory
    """

    input_header: str
    output_name: str

    def __post_init__(self) -> None:
        if not _is_text(self.input_header) or not _is_text(self.output_name):
            raise BpfBuildError("Data-layout binding needs both an input header and an output name")


@dataclass(frozen=True)
class SkeletonTarget:
    """Program skeleton: BPF source in, linked object and skeleton out.

    Attributes:
        input_source: Main BPF source file
        name: Program name; outputs are <name>.bpf.o and <name>.skel.h
    """

    input_source: str
    name: str

    def __post_init__(self) -> None:
        if not _is_text(self.input_source) or not _is_text(self.name):
            raise BpfBuildError("Skeleton generation needs both an input source and a program name")

    @property
    def object_name(self) -> str:
        return f"{self.name}.bpf.o"

    @property
    def skeleton_name(self) -> str:
        return f"{self.name}.skel.h"


@dataclass(frozen=True)
class BuildContext:
    """Resolved configuration shared by every stage of one build.

    Attributes:
        out_dir: Build-scoped output directory
        env: Environment snapshot the build was resolved from
        toolchain: Probed compiler
        bundle_dir: Where the header bundle was installed
        flags: Resolved compiler flags
        sink: Receiver of build events
        sources: Registered sources, sorted
        layout: Data-layout binding target, if enabled
        skeleton: Skeleton target, if enabled
        verbose: Whether to enable verbose console output
    """

    out_dir: Path
    env: EnvConfig
    toolchain: ClangInfo
    bundle_dir: Path
    flags: FlagSet
    sink: BuildEventSink
    sources: tuple[str, ...]
    layout: Optional[LayoutTarget]
    skeleton: Optional[SkeletonTarget]
    verbose: bool = False

    @property
    def clang(self) -> str:
        return self.toolchain.clang

    @property
    def linked_object(self) -> Optional[Path]:
        """Path of the program object, None if skeleton generation is off."""
        if self.skeleton is None:
            return None
        return self.out_dir / self.skeleton.object_name

    @property
    def objects_dir(self) -> Optional[Path]:
        """Directory for per-source objects of a multi-source program."""
        if self.skeleton is None:
            return None
        return self.out_dir / f"{self.skeleton.name}.objs"
