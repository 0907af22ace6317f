"""Tests for environment configuration and path helpers."""

from pathlib import Path

import pytest

from bpfbuild.config import TRACKED_ENV_VARS, EnvConfig, split_flags
from bpfbuild.errors import PathEncodingError
from bpfbuild.paths import path_to_str


class TestEnvConfig:
    """Test reading overrides from the environment."""

    def test_defaults(self):
        config = EnvConfig.from_env({})

        assert config.clang == "clang"
        assert config.cflags is None
        assert config.base_cflags is None
        assert config.extra_cflags_pre_incl is None
        assert config.extra_cflags_post_incl is None
        assert config.out_dir is None

    def test_all_variables(self):
        config = EnvConfig.from_env(
            {
                "BPF_CLANG": "/opt/llvm/bin/clang",
                "BPF_CFLAGS": "-O2 -g",
                "BPF_BASE_CFLAGS": "-O3",
                "BPF_EXTRA_CFLAGS_PRE_INCL": "-I/pre",
                "BPF_EXTRA_CFLAGS_POST_INCL": "-I/post -DX",
                "OUT_DIR": "/build/out",
            }
        )

        assert config.clang == "/opt/llvm/bin/clang"
        assert config.cflags == ("-O2", "-g")
        assert config.base_cflags == ("-O3",)
        assert config.extra_cflags_pre_incl == ("-I/pre",)
        assert config.extra_cflags_post_incl == ("-I/post", "-DX")
        assert config.out_dir == Path("/build/out")

    def test_empty_variable_is_an_override(self):
        config = EnvConfig.from_env({"BPF_CFLAGS": ""})

        assert config.cflags == ()

    def test_empty_clang_uses_default(self):
        assert EnvConfig.from_env({"BPF_CLANG": ""}).clang == "clang"

    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("BPF_CLANG", "clang-18")

        assert EnvConfig.from_env().clang == "clang-18"

    def test_tracked_variables(self):
        assert TRACKED_ENV_VARS == (
            "BPF_CLANG",
            "BPF_CFLAGS",
            "BPF_BASE_CFLAGS",
            "BPF_EXTRA_CFLAGS_PRE_INCL",
            "BPF_EXTRA_CFLAGS_POST_INCL",
        )


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, None),
        ("", []),
        ("  ", []),
        ("-O2", ["-O2"]),
        ("-O2\t-g\n -Wall", ["-O2", "-g", "-Wall"]),
    ],
)
def test_split_flags(value, expected):
    assert split_flags(value) == expected


class TestPathToStr:
    """Test path-to-text conversion."""

    def test_plain_path(self):
        assert path_to_str(Path("/build/out/sched.bpf.o")) == "/build/out/sched.bpf.o"

    def test_surrogate_escape_rejected(self):
        with pytest.raises(PathEncodingError, match="can't be converted to str"):
            path_to_str(Path("/build/\udcff/intf.h"))

    def test_bytes_path(self):
        assert path_to_str(b"/build/out") == "/build/out"

    def test_undecodable_bytes_rejected(self):
        with pytest.raises(PathEncodingError):
            path_to_str(b"/build/\xff/out")
