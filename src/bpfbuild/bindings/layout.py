"""Data-layout binding generation.

Runs bindgen on the header that declares the constants and types shared by
the BPF program and its userspace loader:

    bindgen <header> -o <out>/<output> --depfile <out>/<output>.d \
        -- <resolved flags> -target bpf

The header is parsed with the same flags used to compile the BPF program
so that both sides agree on every type layout. The depfile lists every
header bindgen actually read; those paths become rebuild triggers.
"""

import logging
import re
from pathlib import Path

from ..errors import BindingGenerationError
from ..events import BuildEventSink, forward_diagnostics
from ..paths import path_to_str
from ..subprocess_utils import run_tool
from ..build.build_context import LayoutTarget
from ..build.flags import FlagSet

logger = logging.getLogger(__name__)

DEFAULT_BINDGEN = "bindgen"

# Unescaped whitespace separates depfile entries
_DEPFILE_SPLIT_RE = re.compile(r"(?<!\\)\s+")


def parse_depfile(text: str) -> list[str]:
    """Parse a Make-style depfile into its prerequisite paths.

    Args:
        text: Depfile contents ("target: dep dep \\\\\\n dep")

    Returns:
        Prerequisites in file order, without duplicates
    """
    joined = text.replace("\\\n", " ")
    deps: list[str] = []
    for line in joined.splitlines():
        # "target: deps"; a Windows drive letter colon is never followed by a space
        _, sep, rest = line.partition(": ")
        if not sep:
            continue
        for token in _DEPFILE_SPLIT_RE.split(rest.strip()):
            token = token.replace("\\ ", " ")
            if token and token not in deps:
                deps.append(token)
    return deps


class LayoutBindingGenerator:
    """Generates the data-layout binding for a LayoutTarget."""

    def __init__(self, sink: BuildEventSink, bindgen: str = DEFAULT_BINDGEN):
        self.sink = sink
        self.bindgen = bindgen

    def generate(self, target: LayoutTarget, flags: FlagSet, out_dir: Path) -> list[str]:
        """Generate the binding.

        Args:
            target: Input header and output file name
            flags: Resolved compiler flags
            out_dir: Build output directory

        Returns:
            Headers read by the generator (empty if it wrote no depfile)

        Raises:
            BindingGenerationError: If the header is missing or bindgen fails
        """
        header = Path(target.input_header)
        if not header.exists():
            raise BindingGenerationError(f"Data-layout header not found: {header}")

        output = out_dir / target.output_name
        depfile = output.with_name(output.name + ".d")
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BindingGenerationError(f"Failed to create output directory {output.parent}: {e}") from e

        cmd = [
            self.bindgen,
            path_to_str(header),
            "-o",
            path_to_str(output),
            "--depfile",
            path_to_str(depfile),
            "--",
            *flags.with_target("bpf"),
        ]
        result = run_tool(cmd, BindingGenerationError, f"generate bindings for {header}")
        forward_diagnostics(self.sink, result.stderr)

        if not output.exists():
            raise BindingGenerationError(f"bindgen reported success but did not produce {output}", cmd=cmd)

        if not depfile.exists():
            return []
        try:
            deps = parse_depfile(depfile.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise BindingGenerationError(f"Failed to read depfile {depfile}: {e}", cmd=cmd) from e
        logger.debug("Data-layout binding %s depends on %d headers", output.name, len(deps))
        return deps
