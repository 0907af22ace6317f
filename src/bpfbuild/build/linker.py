"""BPF object linker.

Merges the relocatable objects of a multi-source BPF program into one
object with the libbpf static linker, driven through bpftool:

    bpftool gen object <out>/<name>.bpf.o <obj1> <obj2> ...

Inputs are passed in the order given, which the builder keeps sorted so the
linked object is reproducible.
"""

import logging
from pathlib import Path
from typing import Sequence

from ..errors import LinkError
from ..events import BuildEventSink, forward_diagnostics
from ..paths import path_to_str
from ..subprocess_utils import run_tool

logger = logging.getLogger(__name__)

DEFAULT_BPFTOOL = "bpftool"


class BpfLinker:
    """Links BPF objects into a single relocatable object."""

    def __init__(self, sink: BuildEventSink, bpftool: str = DEFAULT_BPFTOOL):
        """Initialize the linker.

        Args:
            sink: Receiver of forwarded linker diagnostics
            bpftool: bpftool executable name or path
        """
        self.sink = sink
        self.bpftool = bpftool

    def link(self, objects: Sequence[Path], output: Path) -> Path:
        """Link objects into output.

        Args:
            objects: Relocatable BPF objects, in link order
            output: Combined object to produce

        Returns:
            Path to the combined object

        Raises:
            LinkError: If there is nothing to link or bpftool fails
        """
        if not objects:
            raise LinkError(f"No objects to link into {output}")

        try:
            output.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LinkError(f"Failed to create output directory {output.parent}: {e}") from e
        cmd = [self.bpftool, "gen", "object", path_to_str(output), *(path_to_str(obj) for obj in objects)]
        result = run_tool(cmd, LinkError, f"link {output.name}")
        forward_diagnostics(self.sink, result.stderr)

        if not output.exists():
            raise LinkError(f"Linker reported success but did not produce {output}", cmd=cmd)

        logger.debug("Linked %d objects into %s", len(objects), output)
        return output
