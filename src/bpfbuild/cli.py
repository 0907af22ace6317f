"""
Command-line interface for bpfbuild.

This module provides the `bpfbuild` CLI for host build systems that can't
call BpfBuilder from Python directly (Make, Meson custom targets, ...).

Examples:
    bpfbuild build --out-dir build/bpf --skel src/bpf/main.bpf.c sched
    bpfbuild build --out-dir build/bpf --intf src/bpf/intf.h bpf_intf.rs
    bpfbuild info --out-dir build/bpf
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table

from . import __version__
from .build.builder import BpfBuilder
from .errors import BpfBuildError
from .events import DirectiveSink, EventKind, RecordingSink, TeeSink
from .output import log_detail, log_error, log_header, set_verbose


@dataclass
class BuildArgs:
    """Arguments for the build command."""

    out_dir: Optional[Path] = None
    intf: Optional[tuple[str, str]] = None
    skel: Optional[tuple[str, str]] = None
    sources: list[str] = field(default_factory=list)
    bpftool: str = "bpftool"
    bindgen: str = "bindgen"
    verbose: bool = False


@dataclass
class InfoArgs:
    """Arguments for the info command."""

    out_dir: Optional[Path] = None
    verbose: bool = False


def build_command(args: BuildArgs) -> int:
    """Build a BPF program and its bindings.

    Returns:
        Process exit code
    """
    log_header("bpfbuild", __version__)
    recorder = RecordingSink()
    sink = TeeSink([DirectiveSink(), recorder])
    try:
        builder = BpfBuilder(args.out_dir, sink=sink, bpftool=args.bpftool, bindgen=args.bindgen, verbose=args.verbose)
        if args.intf:
            builder.enable_intf(*args.intf)
        if args.skel:
            builder.enable_skel(*args.skel)
        for source in args.sources:
            builder.add_source(source)
        result = builder.build()
    except BpfBuildError as e:
        _report(e)
        return 1

    for label, path in (
        ("Object", result.object_path),
        ("Skeleton", result.skeleton_path),
        ("Bindings", result.layout_path),
    ):
        if path is not None:
            log_detail(f"{label}: {path}")
    warnings = recorder.values(EventKind.WARNING)
    if warnings:
        log_detail(f"Warnings: {len(warnings)}")
    log_detail(f"Build time: {result.build_time:.2f}s")
    return 0


def info_command(args: InfoArgs, console: Optional[Console] = None) -> int:
    """Show the probed toolchain, bundle contents and resolved flags.

    Returns:
        Process exit code
    """
    console = console if console is not None else Console()
    try:
        builder = BpfBuilder(args.out_dir, sink=RecordingSink(), verbose=args.verbose)
        context = builder.resolve()
        manifest = builder.bundle.manifest()
    except BpfBuildError as e:
        _report(e)
        return 1

    toolchain = Table(title="BPF toolchain", show_header=False)
    toolchain.add_row("clang", context.toolchain.clang)
    toolchain.add_row("version", context.toolchain.version)
    toolchain.add_row("arch", f"{context.toolchain.arch} -> {context.toolchain.kernel_target}")
    toolchain.add_row("headers", str(context.bundle_dir))
    console.print(toolchain)

    bundle = Table(title="Bundled vmlinux.h")
    bundle.add_column("arch")
    bundle.add_column("kernel")
    bundle.add_column("commit")
    for header in manifest.vmlinux_headers:
        style = "bold green" if header.arch == context.toolchain.kernel_target else None
        bundle.add_row(header.arch, header.kernel_version, header.sha1, style=style)
    console.print(bundle)

    flags = Table(title=f"Resolved flags ({context.flags.source})")
    flags.add_column("#", justify="right")
    flags.add_column("flag")
    for i, flag in enumerate(context.flags, start=1):
        flags.add_row(str(i), flag)
    console.print(flags)
    return 0


def _report(error: BpfBuildError) -> None:
    log_error(str(error))
    for note in getattr(error, "__notes__", ()):
        log_detail(note)
    cause = error.__cause__
    while cause is not None:
        log_detail(f"caused by: {cause}")
        cause = cause.__cause__


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bpfbuild", description="Build BPF programs and their userspace bindings")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Compile, link and generate bindings")
    build.add_argument("--out-dir", type=Path, help="Output directory (default: $OUT_DIR)")
    build.add_argument("--intf", nargs=2, metavar=("HEADER", "OUTPUT"), help="Generate the data-layout binding")
    build.add_argument("--skel", nargs=2, metavar=("SOURCE", "NAME"), help="Compile SOURCE and generate the skeleton NAME")
    build.add_argument("--source", action="append", default=[], dest="sources", help="Additional BPF source (repeatable)")
    build.add_argument("--bpftool", default="bpftool", help="bpftool executable")
    build.add_argument("--bindgen", default="bindgen", help="bindgen executable")
    build.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    info = subparsers.add_parser("info", help="Show the resolved toolchain and flags")
    info.add_argument("--out-dir", type=Path, help="Output directory (default: $OUT_DIR)")
    info.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of the bpfbuild console script."""
    parsed = make_parser().parse_args(argv)
    set_verbose(parsed.verbose)

    if parsed.command == "build":
        return build_command(
            BuildArgs(
                out_dir=parsed.out_dir,
                intf=tuple(parsed.intf) if parsed.intf else None,
                skel=tuple(parsed.skel) if parsed.skel else None,
                sources=parsed.sources,
                bpftool=parsed.bpftool,
                bindgen=parsed.bindgen,
                verbose=parsed.verbose,
            )
        )
    return info_command(InfoArgs(out_dir=parsed.out_dir, verbose=parsed.verbose))


if __name__ == "__main__":
    sys.exit(main())
