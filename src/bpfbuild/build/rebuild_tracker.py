"""Rebuild tracking.

Tells the host build system which files and environment variables the build
output depends on. The skeleton generator and the compiler may include any
header next to a registered source, so every `*.h` and `*.c` sibling of a
source is tracked, not only the registered files themselves.

The dependency set is recomputed from scratch on every build.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

from ..config import TRACKED_ENV_VARS
from ..errors import DependencyDiscoveryError, PathEncodingError
from ..events import BuildEvent, BuildEventSink
from ..paths import path_to_str

logger = logging.getLogger(__name__)

SIBLING_PATTERNS = ("*.h", "*.c")


def sibling_sources(source: str) -> list[str]:
    """Return every header/source file in source's directory (non-recursive).

    Raises:
        DependencyDiscoveryError: If the directory can't be scanned or a
            path in it can't be represented as text
    """
    directory = Path(source).parent
    found: set[str] = set()
    try:
        for pattern in SIBLING_PATTERNS:
            for path in directory.glob(pattern):
                if path.is_file():
                    found.add(path_to_str(path))
    except OSError as e:
        raise DependencyDiscoveryError(f"Failed to scan {directory} for dependencies of {source}: {e}") from e
    except PathEncodingError as e:
        raise DependencyDiscoveryError(f"Dependency of {source} has a non-UTF-8 path: {e}") from e
    return sorted(found)


class RebuildTracker:
    """Computes and emits the rebuild triggers of one build."""

    def __init__(self, sink: BuildEventSink, env_vars: Iterable[str] = TRACKED_ENV_VARS):
        self.sink = sink
        self.env_vars = tuple(env_vars)

    def compute_dependencies(
        self,
        sources: Iterable[str],
        layout_input: Optional[str] = None,
        extra: Iterable[str] = (),
    ) -> list[str]:
        """Compute the sorted dependency set.

        Args:
            sources: Registered sources
            layout_input: Data-layout binding header, if enabled
            extra: Additional paths discovered by earlier stages

        Returns:
            Sorted, de-duplicated dependency paths

        Raises:
            DependencyDiscoveryError: If scanning a source directory fails
        """
        deps: set[str] = set()
        for source in sources:
            deps.add(source)
            deps.update(sibling_sources(source))
        if layout_input is not None:
            deps.add(layout_input)
        deps.update(extra)
        logger.debug("Computed %d rebuild dependencies", len(deps))
        return sorted(deps)

    def emit(self, deps: Iterable[str]) -> None:
        """Emit the rebuild directives.

        Environment variables come first, then every dependency path. Write
        errors propagate: a partially written dependency set causes stale
        builds.
        """
        for name in self.env_vars:
            self.sink.emit(BuildEvent.rerun_if_env_changed(name))
        for dep in deps:
            self.sink.emit(BuildEvent.rerun_if_changed(dep))
