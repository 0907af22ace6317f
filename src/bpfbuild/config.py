"""Environment-driven configuration.

bpfbuild has no configuration file. Everything that can be overridden comes
from environment variables, which are read once per build into an EnvConfig.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

ENV_CLANG = "BPF_CLANG"
ENV_CFLAGS = "BPF_CFLAGS"
ENV_BASE_CFLAGS = "BPF_BASE_CFLAGS"
ENV_EXTRA_CFLAGS_PRE_INCL = "BPF_EXTRA_CFLAGS_PRE_INCL"
ENV_EXTRA_CFLAGS_POST_INCL = "BPF_EXTRA_CFLAGS_POST_INCL"
ENV_OUT_DIR = "OUT_DIR"

DEFAULT_CLANG = "clang"

# Variables whose change must invalidate the build even if no file changed.
TRACKED_ENV_VARS = (
    ENV_CLANG,
    ENV_CFLAGS,
    ENV_BASE_CFLAGS,
    ENV_EXTRA_CFLAGS_PRE_INCL,
    ENV_EXTRA_CFLAGS_POST_INCL,
)


def split_flags(value: Optional[str]) -> Optional[list[str]]:
    """Split a flag variable on whitespace.

    Returns None when the variable is unset. A set but empty variable yields
    an empty list, which still counts as an override.
    """
    if value is None:
        return None
    return value.split()


@dataclass(frozen=True)
class EnvConfig:
    """Snapshot of the environment variables bpfbuild reacts to.

    Attributes:
        clang: Compiler executable name or path
        cflags: Full flag override (BPF_CFLAGS), None if unset
        base_cflags: Base flag override (BPF_BASE_CFLAGS), None if unset
        extra_cflags_pre_incl: Flags placed before the bundled includes
        extra_cflags_post_incl: Flags placed after the bundled includes
        out_dir: Default output directory (OUT_DIR), None if unset
    """

    clang: str = DEFAULT_CLANG
    cflags: Optional[tuple[str, ...]] = None
    base_cflags: Optional[tuple[str, ...]] = None
    extra_cflags_pre_incl: Optional[tuple[str, ...]] = None
    extra_cflags_post_incl: Optional[tuple[str, ...]] = None
    out_dir: Optional[Path] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EnvConfig":
        """Read the configuration from env (defaults to os.environ)."""
        if env is None:
            env = os.environ

        def flags(name: str) -> Optional[tuple[str, ...]]:
            tokens = split_flags(env.get(name))
            return tuple(tokens) if tokens is not None else None

        out_dir = env.get(ENV_OUT_DIR)
        return cls(
            clang=env.get(ENV_CLANG) or DEFAULT_CLANG,
            cflags=flags(ENV_CFLAGS),
            base_cflags=flags(ENV_BASE_CFLAGS),
            extra_cflags_pre_incl=flags(ENV_EXTRA_CFLAGS_PRE_INCL),
            extra_cflags_post_incl=flags(ENV_EXTRA_CFLAGS_POST_INCL),
            out_dir=Path(out_dir) if out_dir else None,
        )
