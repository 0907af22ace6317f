"""
BPF build orchestration.

BpfBuilder drives the whole build of a BPF program and its userspace
bindings. It is meant to be called from the host project's build script:

    BpfBuilder(out_dir) \\
        .enable_intf("src/bpf/intf.h", "bpf_intf.rs") \\
        .enable_skel("src/bpf/main.bpf.c", "bpf") \\
        .build()

Build phases (strictly sequential, the first failure aborts the build):
    1. Probe the BPF toolchain
    2. Install the bundled headers into <out>/bpfbuild-bpf_h
    3. Resolve the compiler flags
    4. Generate the data-layout binding (if enabled)
    5. Compile the registered sources (if skeleton generation is enabled)
    6. Link the objects into <out>/<name>.bpf.o (multi-source programs only)
    7. Generate the skeleton <out>/<name>.skel.h (if enabled)
    8. Emit rebuild triggers

Already written artifacts are not cleaned up on failure; the next successful
build overwrites them.
"""

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from ..bindings.layout import DEFAULT_BINDGEN, LayoutBindingGenerator
from ..bindings.skeleton import SkeletonGenerator
from ..config import EnvConfig
from ..errors import BpfBuildError, BuilderClosedError, OutputDirectoryError
from ..events import BuildEvent, BuildEventSink, DirectiveSink
from ..headers.bundle import BUNDLE_DIR_NAME, HeaderBundle
from ..output import is_verbose, log_detail, log_phase, log_warning, set_verbose
from ..toolchain import clang_info
from .build_context import BuildContext, LayoutTarget, SkeletonTarget
from .compiler import BpfCompiler
from .flags import FlagSet, resolve_flags
from .linker import DEFAULT_BPFTOOL, BpfLinker
from .rebuild_tracker import RebuildTracker

logger = logging.getLogger(__name__)

TOTAL_PHASES = 8


@dataclass(frozen=True)
class BuildResult:
    """Outputs of a successful build.

    Attributes:
        object_path: Linked BPF object (None if skeleton generation is off)
        skeleton_path: Generated skeleton (None if skeleton generation is off)
        layout_path: Generated data-layout binding (None if not enabled)
        flags: Flags every compilation used
        dependencies: Files tracked as rebuild triggers
        build_time: Wall-clock build time in seconds
    """

    object_path: Optional[Path]
    skeleton_path: Optional[Path]
    layout_path: Optional[Path]
    flags: FlagSet
    dependencies: tuple[str, ...]
    build_time: float


def _path_arg(value: Any) -> Any:
    """Return path objects as text; anything else is passed through for validation."""
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    return value


@contextmanager
def _stage(name: str) -> Iterator[None]:
    """Annotate a failing stage's error without changing its type."""
    try:
        yield
    except BpfBuildError as e:
        e.add_note(f"bpfbuild stage: {name}")
        raise


class BpfBuilder:
    """Builds a BPF program and generates its bindings.

    Configure with enable_intf(), enable_skel() and add_source(), then call
    build(). Configuration is closed once build() starts.
    """

    def __init__(
        self,
        out_dir: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        sink: Optional[BuildEventSink] = None,
        bpftool: str = DEFAULT_BPFTOOL,
        bindgen: str = DEFAULT_BINDGEN,
        header_archive: Optional[Path] = None,
        verbose: bool = False,
    ):
        """Initialize the builder.

        Args:
            out_dir: Build-scoped output directory (defaults to $OUT_DIR)
            env: Environment to read overrides from (defaults to os.environ)
            sink: Receiver of build events (defaults to directives on stdout)
            bpftool: bpftool executable used to link and generate skeletons
            bindgen: bindgen executable used for the data-layout binding
            header_archive: Header archive to install (defaults to the packaged one)
            verbose: Enable verbose console output for the duration of build()

        Raises:
            BpfBuildError: If no output directory is given and OUT_DIR is unset
        """
        self.env = EnvConfig.from_env(env)
        resolved_out = out_dir if out_dir is not None else self.env.out_dir
        if resolved_out is None:
            raise BpfBuildError("No output directory: pass out_dir or set OUT_DIR")
        self.out_dir = Path(resolved_out)
        self.sink = sink if sink is not None else DirectiveSink()
        self.bpftool = bpftool
        self.bindgen = bindgen
        self.bundle = HeaderBundle(header_archive)
        self.verbose = verbose

        self._sources: set[str] = set()
        self._layout: Optional[LayoutTarget] = None
        self._skeleton: Optional[SkeletonTarget] = None
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise BuilderClosedError("BpfBuilder can't be reconfigured after build() started")

    def enable_intf(self, input_header: str, output: str) -> "BpfBuilder":
        """Enable the data-layout binding.

        Args:
            input_header: `.h` file declaring the shared constants and types
            output: Binding file to generate, relative to the output directory
        """
        self._check_open()
        self._layout = LayoutTarget(_path_arg(input_header), _path_arg(output))
        return self

    def enable_skel(self, input_source: str, name: str) -> "BpfBuilder":
        """Enable compilation and skeleton generation.

        Also registers input_source as a source.

        Args:
            input_source: Main `.bpf.c` file
            name: Program name; produces <name>.bpf.o and <name>.skel.h
        """
        self._check_open()
        self._skeleton = SkeletonTarget(_path_arg(input_source), name)
        self._sources.add(self._skeleton.input_source)
        return self

    def add_source(self, source: str) -> "BpfBuilder":
        """Register an additional BPF source to compile and link in."""
        self._check_open()
        source = _path_arg(source)
        if not isinstance(source, str) or not source:
            raise BpfBuildError(f"Invalid BPF source: {source!r}")
        self._sources.add(source)
        return self

    @property
    def sources(self) -> tuple[str, ...]:
        """Registered sources in sorted order."""
        return tuple(sorted(self._sources))

    @property
    def bundle_dir(self) -> Path:
        return self.out_dir / BUNDLE_DIR_NAME

    def resolve(self) -> BuildContext:
        """Probe the toolchain, install the headers and resolve the flags.

        Returns:
            The resolved BuildContext for this build
        """
        log_phase(1, TOTAL_PHASES, "Probing BPF toolchain...", verbose_only=True)
        with _stage("probe toolchain"):
            toolchain = clang_info.probe(self.env)
        log_detail(f"{toolchain.clang} {toolchain.version} ({toolchain.arch} -> {toolchain.kernel_target})", verbose_only=True)
        if toolchain.major is not None and toolchain.major < clang_info.MIN_CLANG_MAJOR:
            message = f"clang {toolchain.version} is older than {clang_info.MIN_CLANG_MAJOR}, BPF compilation may fail"
            log_warning(message)
            self.sink.emit(BuildEvent.warning(message))

        log_phase(2, TOTAL_PHASES, "Installing bundled headers...", verbose_only=True)
        with _stage(f"install headers into {self.bundle_dir}"):
            self.bundle.install(self.bundle_dir)
            if not self.bundle.manifest().supports(toolchain.kernel_target):
                message = f"Header bundle has no arch/{toolchain.kernel_target} headers"
                log_warning(message)
                self.sink.emit(BuildEvent.warning(message))

        log_phase(3, TOTAL_PHASES, "Resolving compiler flags...", verbose_only=True)
        with _stage("resolve flags"):
            flags = resolve_flags(toolchain, self.bundle_dir, self.env)
        log_detail(f"{len(flags)} flags ({flags.source})", verbose_only=True)

        self.sink.emit(BuildEvent.info("clang", toolchain.describe()))
        self.sink.emit(BuildEvent.info("cflags", " ".join(flags)))

        return BuildContext(
            out_dir=self.out_dir,
            env=self.env,
            toolchain=toolchain,
            bundle_dir=self.bundle_dir,
            flags=flags,
            sink=self.sink,
            sources=self.sources,
            layout=self._layout,
            skeleton=self._skeleton,
            verbose=self.verbose,
        )

    def build(self) -> BuildResult:
        """Build and generate the enabled bindings.

        Returns:
            BuildResult describing the produced artifacts

        Raises:
            BpfBuildError: If any stage fails
        """
        self._closed = True
        previous_verbose = is_verbose()
        if self.verbose:
            set_verbose(True)
        try:
            return self._build()
        finally:
            set_verbose(previous_verbose)

    def _build(self) -> BuildResult:
        start_time = time.time()
        with _stage("prepare output directory"):
            try:
                self.out_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise OutputDirectoryError(f"Failed to create output directory {self.out_dir}: {e}") from e

        context = self.resolve()

        layout_path = None
        layout_deps: list[str] = []
        if context.layout is not None:
            log_phase(4, TOTAL_PHASES, f"Generating data-layout binding {context.layout.output_name}...", verbose_only=True)
            with _stage(f"data-layout binding {context.layout.input_header}"):
                generator = LayoutBindingGenerator(self.sink, self.bindgen)
                layout_deps = generator.generate(context.layout, context.flags, context.out_dir)
            layout_path = context.out_dir / context.layout.output_name

        object_path = None
        skeleton_path = None
        if context.skeleton is not None:
            object_path, skeleton_path = self._build_program(context)

        log_phase(8, TOTAL_PHASES, "Emitting rebuild triggers...", verbose_only=True)
        tracker = RebuildTracker(self.sink)
        with _stage("dependency discovery"):
            deps = tracker.compute_dependencies(
                context.sources,
                context.layout.input_header if context.layout is not None else None,
                layout_deps,
            )
        tracker.emit(deps)

        build_time = time.time() - start_time
        logger.debug("BPF build finished in %.2fs", build_time)
        return BuildResult(
            object_path=object_path,
            skeleton_path=skeleton_path,
            layout_path=layout_path,
            flags=context.flags,
            dependencies=tuple(deps),
            build_time=build_time,
        )

    def _build_program(self, context: BuildContext) -> tuple[Path, Path]:
        """Compile, link and generate the skeleton for the program."""
        linked = context.linked_object
        if context.skeleton is None or linked is None:
            raise BpfBuildError("Skeleton generation is not enabled")
        compiler = BpfCompiler(context)

        log_phase(5, TOTAL_PHASES, f"Compiling {len(context.sources)} BPF source(s)...", verbose_only=True)
        with _stage("compile"):
            objects = compiler.compile_all(context.sources)

        if len(objects) > 1:
            log_phase(6, TOTAL_PHASES, f"Linking {len(objects)} objects into {linked.name}...", verbose_only=True)
            with _stage(f"link {linked.name}"):
                BpfLinker(self.sink, self.bpftool).link(objects, linked)

        log_phase(7, TOTAL_PHASES, f"Generating skeleton {context.skeleton.skeleton_name}...", verbose_only=True)
        with _stage(f"skeleton {context.skeleton.name}"):
            skeleton = SkeletonGenerator(self.sink, self.bpftool).generate(
                linked, context.skeleton.name, context.out_dir / context.skeleton.skeleton_name
            )
        return linked, skeleton
