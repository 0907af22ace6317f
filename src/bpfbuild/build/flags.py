"""BPF compiler flag resolution.

The flags used for every compilation and for the data-layout binding are
derived once per build from the probed toolchain, the installed header
bundle and the override environment variables.

Precedence (first matching rule wins):
    1. BPF_CFLAGS set: its whitespace-split tokens are the whole flag set.
    2. Layered derivation, in this exact order:
       base     BPF_BASE_CFLAGS, or the toolchain's baseline flags
       pre      BPF_EXTRA_CFLAGS_PRE_INCL
       bundled  -I<bundle>/arch/<arch> -I<bundle> -I<bundle>/bpf-compat
       post     BPF_EXTRA_CFLAGS_POST_INCL

The order matters: clang searches -I directories in command line order, so
pre-include flags can shadow bundled headers and post-include flags are only
a fallback.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from ..config import (
    ENV_BASE_CFLAGS,
    ENV_CFLAGS,
    ENV_EXTRA_CFLAGS_POST_INCL,
    ENV_EXTRA_CFLAGS_PRE_INCL,
    EnvConfig,
)
from ..headers.bundle import include_dirs
from ..paths import path_to_str
from ..toolchain.clang_info import ClangInfo


@dataclass(frozen=True)
class FlagSet:
    """Ordered, immutable compiler flags.

    Attributes:
        flags: The flags in command line order
        source: Rule that produced them ("full-override" or "layered")
    """

    flags: tuple[str, ...]
    source: str = "layered"

    def __iter__(self) -> Iterator[str]:
        return iter(self.flags)

    def __len__(self) -> int:
        return len(self.flags)

    def as_list(self) -> list[str]:
        return list(self.flags)

    def with_target(self, target: str = "bpf") -> list[str]:
        """Flags followed by a `-target` override."""
        return [*self.flags, "-target", target]


@dataclass(frozen=True)
class FlagLayer:
    """One layer of the layered derivation.

    Attributes:
        name: Layer name used in diagnostics
        env_var: Variable overriding the layer, None if not overridable
        default: Produces the layer's flags when the variable is unset
    """

    name: str
    env_var: Optional[str]
    default: Callable[[], Sequence[str]]


def bundled_include_flags(bundle_dir: Path, kernel_target: str) -> list[str]:
    """Return the -I flags for the installed header bundle, in search order."""
    return [f"-I{path_to_str(path)}" for path in include_dirs(bundle_dir, kernel_target)]


def _env_override(env: EnvConfig, name: Optional[str]) -> Optional[tuple[str, ...]]:
    overrides = {
        ENV_CFLAGS: env.cflags,
        ENV_BASE_CFLAGS: env.base_cflags,
        ENV_EXTRA_CFLAGS_PRE_INCL: env.extra_cflags_pre_incl,
        ENV_EXTRA_CFLAGS_POST_INCL: env.extra_cflags_post_incl,
    }
    if name is None:
        return None
    return overrides[name]


def flag_layers(toolchain: ClangInfo, bundle_dir: Path) -> list[FlagLayer]:
    """Return the layers of the layered derivation in order."""
    return [
        FlagLayer("base", ENV_BASE_CFLAGS, lambda: toolchain.baseline_flags),
        FlagLayer("pre-include", ENV_EXTRA_CFLAGS_PRE_INCL, lambda: ()),
        FlagLayer("bundled", None, lambda: bundled_include_flags(bundle_dir, toolchain.kernel_target)),
        FlagLayer("post-include", ENV_EXTRA_CFLAGS_POST_INCL, lambda: ()),
    ]


def resolve_flags(toolchain: ClangInfo, bundle_dir: Path, env: Optional[EnvConfig] = None) -> FlagSet:
    """Resolve the final flag set.

    Args:
        toolchain: Probed compiler
        bundle_dir: Directory the header bundle is installed in
        env: Environment configuration (read from os.environ if None)

    Returns:
        Resolved FlagSet

    Raises:
        PathEncodingError: If bundle_dir can't be represented as text
    """
    if env is None:
        env = EnvConfig.from_env()

    full = _env_override(env, ENV_CFLAGS)
    if full is not None:
        return FlagSet(tuple(full), source="full-override")

    flags: list[str] = []
    for layer in flag_layers(toolchain, bundle_dir):
        override = _env_override(env, layer.env_var)
        flags.extend(override if override is not None else layer.default())
    return FlagSet(tuple(flags))
