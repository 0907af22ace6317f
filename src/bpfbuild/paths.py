"""Path helpers.

Flags, directives and diagnostics are all text, so every path that ends up
in one of them has to survive a round trip through UTF-8. Paths containing
undecodable bytes (carried by Python as surrogate escapes) do not.
"""

import os
from pathlib import Path
from typing import Union

from .errors import PathEncodingError

PathLike = Union[str, os.PathLike]


def path_to_str(path: PathLike) -> str:
    """Return path as text, raising PathEncodingError if it is not valid UTF-8.

    Args:
        path: Filesystem path

    Returns:
        The path as a str

    Raises:
        PathEncodingError: If the path contains bytes that are not valid UTF-8
    """
    text = os.fspath(path)
    if isinstance(text, bytes):
        try:
            return text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PathEncodingError(f"{text!r} can't be converted to str") from e
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise PathEncodingError(f"{text!r} can't be converted to str") from e
    return text


def object_name_for(source: PathLike) -> str:
    """Return the object file name for a BPF source file.

    `foo.bpf.c` and `foo.c` both map to `foo.bpf.o`; any other name keeps its
    stem, so `foo.S` maps to `foo.bpf.o` as well.
    """
    name = Path(source).name
    for suffix in (".bpf.c", ".c"):
        if name.endswith(suffix):
            return name[: -len(suffix)] + ".bpf.o"
    return Path(name).stem + ".bpf.o"
