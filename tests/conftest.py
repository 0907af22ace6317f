"""Pytest configuration and fixtures for bpfbuild tests.

External tools (clang, bpftool, bindgen) are never executed. The fake_tools
fixture replaces bpfbuild.subprocess_utils.safe_run with a FakeTools
instance that answers the probe commands, writes the files each tool would
write and records every invocation.
"""

import subprocess
from pathlib import Path
from typing import Any, Optional

import pytest

CLANG_VERSION_OUTPUT = """\
Ubuntu clang version 17.0.6 (++20231209124227+6009708b4367-1~exp1~20231209124336.77)
Target: x86_64-pc-linux-gnu
Thread model: posix
InstalledDir: /usr/lib/llvm-17/bin
"""

CLANG_INCLUDES_OUTPUT = """\
Ubuntu clang version 17.0.6
Target: x86_64-pc-linux-gnu
ignoring nonexistent directory "/include"
#include "..." search starts here:
#include <...> search starts here:
 /usr/lib/llvm-17/lib/clang/17/include
 /usr/local/include
 /usr/include/x86_64-linux-gnu
 /usr/include
End of search list.
"""

SYS_INCLUDES = [
    "/usr/lib/llvm-17/lib/clang/17/include",
    "/usr/local/include",
    "/usr/include/x86_64-linux-gnu",
    "/usr/include",
]

SKELETON_TEXT = "/* THIS FILE IS AUTOGENERATED BY BPFTOOL! */\n#ifndef __SCHED_SKEL_H__\n#define __SCHED_SKEL_H__\n#endif\n"


class FakeTools:
    """Stand-in for subprocess execution of the BPF toolchain.

    Attributes:
        calls: Every command line received, in order
        failures: Tool kind -> (returncode, stderr) for tools that should fail
        diagnostics: Tool kind -> stderr text emitted on success
        version_output: What `clang --version` prints
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.failures: dict[str, tuple[int, str]] = {}
        self.diagnostics: dict[str, str] = {}
        self.version_output = CLANG_VERSION_OUTPUT
        self.includes_output = CLANG_INCLUDES_OUTPUT
        self.sys_includes = list(SYS_INCLUDES)
        self.bindgen_deps: list[str] = []
        self.depfile_bytes: Optional[bytes] = None

    @staticmethod
    def kind_of(cmd: list[str]) -> str:
        tool = Path(cmd[0]).name
        if tool == "bpftool":
            return "link" if cmd[1:3] == ["gen", "object"] else "skeleton"
        if tool == "bindgen":
            return "bindgen"
        if "--version" in cmd:
            return "version"
        if cmd[1:] == ["-v", "-E", "-"]:
            return "includes"
        return "compile"

    def calls_of(self, kind: str) -> list[list[str]]:
        return [cmd for cmd in self.calls if self.kind_of(cmd) == kind]

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append(list(cmd))
        kind = self.kind_of(cmd)

        if kind in self.failures:
            returncode, stderr = self.failures[kind]
            return subprocess.CompletedProcess(cmd, returncode, "", stderr)

        stdout = ""
        stderr = self.diagnostics.get(kind, "")
        if kind == "version":
            stdout = self.version_output
        elif kind == "includes":
            stderr = self.includes_output
        elif kind == "compile":
            Path(cmd[cmd.index("-o") + 1]).write_bytes(b"\x7fELF fake bpf object")
        elif kind == "link":
            Path(cmd[3]).write_bytes(b"\x7fELF fake linked object")
        elif kind == "skeleton":
            stdout = SKELETON_TEXT
        elif kind == "bindgen":
            output = Path(cmd[cmd.index("-o") + 1])
            output.write_text("/* automatically generated by rust-bindgen */\npub const MAX_CPUS: u32 = 512;\n")
            depfile = Path(cmd[cmd.index("--depfile") + 1])
            if self.depfile_bytes is not None:
                depfile.write_bytes(self.depfile_bytes)
            else:
                depfile.write_text(f"{output}: {cmd[1]} " + " ".join(self.bindgen_deps) + "\n")
        return subprocess.CompletedProcess(cmd, 0, stdout, stderr)


@pytest.fixture
def fake_tools(monkeypatch) -> FakeTools:
    """Route every external tool invocation to a FakeTools instance."""
    tools = FakeTools()
    monkeypatch.setattr("bpfbuild.subprocess_utils.safe_run", tools)
    return tools


@pytest.fixture
def bpf_project(tmp_path) -> dict[str, Path]:
    """Create a scheduler source tree:

    project/src/bpf/{main.bpf.c, intf.h, helpers.bpf.c, util.h, README.md}
    """
    bpf_dir = tmp_path / "project" / "src" / "bpf"
    bpf_dir.mkdir(parents=True)
    (bpf_dir / "main.bpf.c").write_text('#include <scx/common.bpf.h>\n#include "intf.h"\n')
    (bpf_dir / "helpers.bpf.c").write_text('#include "util.h"\n')
    (bpf_dir / "intf.h").write_text("#define MAX_CPUS 512\n")
    (bpf_dir / "util.h").write_text("static inline int one(void) { return 1; }\n")
    (bpf_dir / "README.md").write_text("not a dependency\n")

    out_dir = tmp_path / "out"
    return {
        "bpf_dir": bpf_dir,
        "main": bpf_dir / "main.bpf.c",
        "helpers": bpf_dir / "helpers.bpf.c",
        "intf": bpf_dir / "intf.h",
        "util": bpf_dir / "util.h",
        "out": out_dir,
    }


@pytest.fixture(autouse=True)
def isolate_output_globals():
    """Reset bpfbuild.output globals before and after each test."""
    from bpfbuild import output

    saved = (output._start_time, output._output_stream, output._verbose)
    output._start_time = None
    output._output_stream = None
    output._verbose = False
    yield
    output._start_time, output._output_stream, output._verbose = saved

