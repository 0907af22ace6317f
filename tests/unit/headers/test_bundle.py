"""Unit tests for the bundled header archive."""

import io
import tarfile

import pytest

from bpfbuild.errors import ArchiveInstallError
from bpfbuild.headers.bundle import HeaderBundle, default_archive_path, include_dirs


def _snapshot(root):
    """Map every file under root to its contents."""
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


def _make_archive(path, files):
    with tarfile.open(path, "w") as tar:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


def test_packaged_archive_exists():
    assert default_archive_path().is_file()


def test_packaged_manifest_architectures():
    """Test that the packaged bundle carries the mainstream architectures."""
    manifest = HeaderBundle().manifest()

    for arch in ("x86", "arm64", "s390", "riscv", "powerpc"):
        assert manifest.supports(arch)
    assert any(name.startswith("bpf-compat/") for name in manifest.members)


def test_packaged_vmlinux_versions():
    """Test that every vmlinux header follows vmlinux-v<ver>-g<sha1>.h."""
    manifest = HeaderBundle().manifest()

    assert manifest.vmlinux_headers
    for header in manifest.vmlinux_headers:
        assert header.kernel_version[0].isdigit()
        assert len(header.sha1) == 12
    assert manifest.vmlinux_for("x86") is not None
    assert manifest.vmlinux_for("mips") is None


def test_install_creates_tree(tmp_path):
    dest = tmp_path / "out" / "bpfbuild-bpf_h"
    HeaderBundle().install(dest)

    assert (dest / "arch" / "x86" / "vmlinux.h").is_file()
    assert (dest / "scx" / "common.bpf.h").is_file()
    assert (dest / "bpf-compat" / "gnu" / "stubs.h").is_file()


def test_install_is_idempotent(tmp_path):
    """Test that installing twice leaves the same tree as installing once."""
    once = tmp_path / "once"
    twice = tmp_path / "twice"
    bundle = HeaderBundle()

    bundle.install(once)
    bundle.install(twice)
    bundle.install(twice)

    assert _snapshot(once) == _snapshot(twice)


def test_install_overwrites_modified_files(tmp_path):
    dest = tmp_path / "bundle"
    bundle = HeaderBundle()
    bundle.install(dest)
    original = (dest / "scx" / "common.bpf.h").read_bytes()

    (dest / "scx" / "common.bpf.h").write_text("/* stale */\n")
    bundle.install(dest)

    assert (dest / "scx" / "common.bpf.h").read_bytes() == original


def test_install_custom_archive(tmp_path):
    archive = _make_archive(
        tmp_path / "custom.tar",
        {"arch/arm64/vmlinux-v6.12-g0123456789ab.h": "/* arm64 */\n", "bpf-compat/gnu/stubs.h": ""},
    )
    bundle = HeaderBundle(archive)
    bundle.install(tmp_path / "dest")

    manifest = bundle.manifest()
    assert manifest.architectures == ("arm64",)
    assert manifest.vmlinux_for("arm64").kernel_version == "6.12"
    assert (tmp_path / "dest" / "arch" / "arm64" / "vmlinux-v6.12-g0123456789ab.h").is_file()


def test_install_missing_archive(tmp_path):
    with pytest.raises(ArchiveInstallError, match="Failed to open header archive"):
        HeaderBundle(tmp_path / "missing.tar").install(tmp_path / "dest")


def test_install_corrupt_archive(tmp_path):
    archive = tmp_path / "corrupt.tar"
    archive.write_bytes(b"this is not a tar archive" * 40)

    with pytest.raises(ArchiveInstallError):
        HeaderBundle(archive).install(tmp_path / "dest")


def test_install_unwritable_destination(tmp_path):
    """Test that a destination blocked by a regular file is fatal."""
    blocker = tmp_path / "blocker"
    blocker.write_text("")

    with pytest.raises(ArchiveInstallError):
        HeaderBundle().install(blocker / "bundle")


def test_include_dirs_order(tmp_path):
    arch_dir, root, compat = include_dirs(tmp_path, "x86")

    assert arch_dir == tmp_path / "arch" / "x86"
    assert root == tmp_path
    assert compat == tmp_path / "bpf-compat"
