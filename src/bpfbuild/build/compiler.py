"""BPF Compiler.

This module compiles BPF C sources into relocatable objects for the `bpf`
target.

Compilation Process:
    1. Map every registered source to its object path
    2. Compile each source in sorted order:
       clang <resolved flags> -target bpf -c <source> -o <object>
    3. Forward the compiler's diagnostics as build warnings

Object Naming:
    - A single-source program compiles straight to <out>/<name>.bpf.o
    - A multi-source program compiles each `foo.bpf.c` (or `foo.c`) to
      <out>/<name>.objs/foo.bpf.o, and the linker merges them into
      <out>/<name>.bpf.o
    - Two sources mapping to the same object name are rejected
"""

import logging
from pathlib import Path
from typing import Sequence

from ..errors import CompilationError
from ..events import forward_diagnostics
from ..output import log_detail
from ..paths import object_name_for, path_to_str
from ..subprocess_utils import run_tool
from .build_context import BuildContext

logger = logging.getLogger(__name__)


class BpfCompiler:
    """Compiles BPF sources with the resolved flags of one build."""

    def __init__(self, context: BuildContext):
        """Initialize the compiler.

        Args:
            context: Resolved build context
        """
        self.context = context

    def command_for(self, source: Path, output: Path) -> list[str]:
        """Build the compiler command line for one source."""
        return [
            self.context.clang,
            *self.context.flags.with_target("bpf"),
            "-c",
            path_to_str(source),
            "-o",
            path_to_str(output),
        ]

    def compile_source(self, source: Path, output: Path) -> Path:
        """Compile a single source file to a relocatable BPF object.

        Args:
            source: BPF C source file
            output: Object file to produce

        Returns:
            Path to the object file

        Raises:
            CompilationError: If the source is missing or the compiler fails
        """
        if not source.exists():
            raise CompilationError(f"Source file not found: {source}")

        try:
            output.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CompilationError(f"Failed to create object directory {output.parent}: {e}") from e
        cmd = self.command_for(source, output)
        result = run_tool(cmd, CompilationError, f"compile {source}")
        forward_diagnostics(self.context.sink, result.stderr)

        if not output.exists():
            raise CompilationError(f"Compiler reported success but did not produce {output}", cmd=cmd)

        log_detail(f"[bpf] {source.name} -> {output.name}", verbose_only=True)
        return output

    def object_paths(self, sources: Sequence[str]) -> dict[str, Path]:
        """Map each source to the object it compiles to.

        Args:
            sources: Registered sources, sorted

        Returns:
            Mapping from source to object path, in source order

        Raises:
            CompilationError: If two sources map to the same object name
        """
        linked = self.context.linked_object
        objects_dir = self.context.objects_dir
        if linked is None or objects_dir is None:
            return {}

        if len(sources) == 1:
            return {sources[0]: linked}

        mapping: dict[str, Path] = {}
        seen: dict[str, str] = {}
        for source in sources:
            name = object_name_for(source)
            if name in seen:
                raise CompilationError(f"Sources {seen[name]} and {source} both compile to {name}")
            seen[name] = source
            mapping[source] = objects_dir / name
        return mapping

    def compile_all(self, sources: Sequence[str]) -> list[Path]:
        """Compile every source, in order, stopping at the first failure.

        Returns:
            Object paths in source order
        """
        objects = []
        for source, output in self.object_paths(sources).items():
            objects.append(self.compile_source(Path(source), output))
        logger.debug("Compiled %d BPF objects", len(objects))
        return objects
