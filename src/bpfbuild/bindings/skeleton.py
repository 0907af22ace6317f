"""Program skeleton generation.

Generates the loader skeleton for a linked BPF object:

    bpftool gen skeleton <out>/<name>.bpf.o name <name> > <out>/<name>.skel.h

The skeleton embeds the object and exposes open/load/attach helpers for
every program and map in it, so the userspace side needs no hand-written
loader code. bpftool's diagnostics are forwarded line by line as build
warnings.
"""

import logging
from pathlib import Path

from ..errors import BindingGenerationError
from ..events import BuildEventSink, forward_diagnostics
from ..paths import path_to_str
from ..subprocess_utils import run_tool
from ..build.linker import DEFAULT_BPFTOOL

logger = logging.getLogger(__name__)


class SkeletonGenerator:
    """Generates a loadable-program skeleton from a BPF object."""

    def __init__(self, sink: BuildEventSink, bpftool: str = DEFAULT_BPFTOOL):
        self.sink = sink
        self.bpftool = bpftool

    def generate(self, obj: Path, name: str, output: Path) -> Path:
        """Generate the skeleton for obj.

        Args:
            obj: Linked BPF object
            name: Program name used for the skeleton's identifiers
            output: Skeleton file to write

        Returns:
            Path to the skeleton file

        Raises:
            BindingGenerationError: If the object is missing or bpftool fails
        """
        if not obj.exists():
            raise BindingGenerationError(f"BPF object not found: {obj}")

        cmd = [self.bpftool, "gen", "skeleton", path_to_str(obj), "name", name]
        result = run_tool(cmd, BindingGenerationError, f"generate skeleton for {obj.name}")
        forward_diagnostics(self.sink, result.stderr)

        if not result.stdout:
            raise BindingGenerationError(f"bpftool produced an empty skeleton for {obj}", cmd=cmd)

        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(result.stdout, encoding="utf-8")
        except OSError as e:
            raise BindingGenerationError(f"Failed to write skeleton {output}: {e}", cmd=cmd) from e

        logger.debug("Wrote skeleton %s (%d bytes)", output, len(result.stdout))
        return output
