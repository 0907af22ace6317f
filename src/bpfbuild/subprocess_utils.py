"""Subprocess utilities for invoking external build tools.

All compiler, linker and generator invocations go through this module so
that every child process gets the same treatment:
- stdin redirected to DEVNULL (tools never wait on the terminal)
- platform creation flags (no console window flashing on Windows)
- text capture of stdout/stderr for diagnostics forwarding
"""

import logging
import subprocess
import sys
from typing import Any, Sequence, Type

from .errors import ToolError

logger = logging.getLogger(__name__)


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def safe_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """Execute subprocess.run with platform-specific flags.

    Args:
        cmd: Command and arguments (same as subprocess.run)
        **kwargs: Additional arguments passed to subprocess.run

    Returns:
        CompletedProcess result from subprocess.run

    Note:
        - An explicit 'creationflags' is OR'd with the platform defaults.
        - An explicit 'stdin' or 'input' is used as-is, otherwise stdin
          is DEVNULL.
    """
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs and "input" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL

    return subprocess.run(cmd, **kwargs)


def run_tool(
    cmd: Sequence[str],
    error_cls: Type[ToolError],
    what: str,
    **kwargs: Any,
) -> subprocess.CompletedProcess:
    """Run an external tool and raise error_cls if it fails.

    Output is captured as text; bytes that are not valid UTF-8 are replaced
    with U+FFFD. The tool's own diagnostics are never
    reinterpreted; they travel in the raised error's stderr attribute.

    Args:
        cmd: Command and arguments
        error_cls: ToolError subclass to raise on failure
        what: Short description used in the error message (e.g. "compile main.bpf.c")
        **kwargs: Additional arguments passed to safe_run

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        error_cls: If the tool cannot be launched or exits nonzero
    """
    cmd = [str(part) for part in cmd]
    logger.debug("Running: %s", " ".join(cmd))

    kwargs.setdefault("capture_output", True)
    kwargs.setdefault("text", True)
    # Tool diagnostics may quote source text in any encoding
    kwargs.setdefault("errors", "replace")

    try:
        result = safe_run(cmd, **kwargs)
    except OSError as e:
        raise error_cls(f"Failed to {what}: cannot run {cmd[0]}: {e}", cmd=cmd) from e

    if result.returncode != 0:
        raise error_cls(
            f"Failed to {what}: {cmd[0]} exited with status {result.returncode}",
            cmd=cmd,
            returncode=result.returncode,
            stderr=result.stderr or "",
        )

    return result
