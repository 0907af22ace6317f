"""Bundled BPF header installation.

BPF programs are compiled against kernel type definitions (vmlinux.h) and a
few common headers rather than the host's installed headers. bpfbuild ships
them as a tar archive inside the package and unpacks it into the build's
output directory on every build.

Bundle Structure (after installation):
    <out_dir>/bpfbuild-bpf_h/
    ├── arch/
    │   ├── x86/
    │   │   ├── vmlinux.h                         # includes the versioned file
    │   │   └── vmlinux-v6.9-g5e0e5d94bb8b.h
    │   ├── arm64/
    │   └── ...
    ├── scx/                                      # generic headers (bundle root)
    │   ├── common.bpf.h
    │   └── user_exit_info.h
    └── bpf-compat/                               # last-resort stand-ins
        └── gnu/stubs.h

Installation overwrites existing files, so installing twice into the same
directory leaves the same tree as installing once.
"""

import logging
import re
import tarfile
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Optional

from ..errors import ArchiveInstallError

logger = logging.getLogger(__name__)

BUNDLE_DIR_NAME = "bpfbuild-bpf_h"
ARCHIVE_NAME = "bpf_h.tar"
COMPAT_DIR_NAME = "bpf-compat"

# arch/<arch>/vmlinux-v<kernel version>-g<12 hex digit commit>.h
_VMLINUX_RE = re.compile(r"^arch/([^/]+)/vmlinux-v(.+)-g([0-9a-z]{12})\.h$")


@dataclass(frozen=True)
class VmlinuxHeader:
    """A versioned vmlinux.h carried by the bundle."""

    arch: str
    kernel_version: str
    sha1: str
    member: str


@dataclass(frozen=True)
class BundleManifest:
    """Contents of a header archive.

    Attributes:
        members: All member names in archive order
        architectures: Sorted architecture names under arch/
        vmlinux_headers: Versioned vmlinux headers, one per architecture
    """

    members: tuple[str, ...]
    architectures: tuple[str, ...]
    vmlinux_headers: tuple[VmlinuxHeader, ...]

    def supports(self, kernel_target: str) -> bool:
        return kernel_target in self.architectures

    def vmlinux_for(self, kernel_target: str) -> Optional[VmlinuxHeader]:
        for header in self.vmlinux_headers:
            if header.arch == kernel_target:
                return header
        return None


def default_archive_path() -> Path:
    """Return the path of the header archive shipped with the package."""
    return Path(str(resources.files(__package__).joinpath(ARCHIVE_NAME)))


def include_dirs(bundle_dir: Path, kernel_target: str) -> tuple[Path, Path, Path]:
    """Return the bundled include directories in search order.

    Architecture-specific headers shadow generic ones and the compat
    subtree is searched last.
    """
    return (
        bundle_dir / "arch" / kernel_target,
        bundle_dir,
        bundle_dir / COMPAT_DIR_NAME,
    )


class HeaderBundle:
    """Installs the versioned header archive into a build directory."""

    def __init__(self, archive_path: Optional[Path] = None):
        """Initialize the bundle.

        Args:
            archive_path: Header archive to install (defaults to the packaged one)
        """
        self.archive_path = archive_path if archive_path is not None else default_archive_path()

    def _open(self) -> tarfile.TarFile:
        try:
            return tarfile.open(self.archive_path, "r:*")
        except (OSError, tarfile.TarError) as e:
            raise ArchiveInstallError(f"Failed to open header archive {self.archive_path}: {e}") from e

    def manifest(self) -> BundleManifest:
        """Read the archive's member list.

        Raises:
            ArchiveInstallError: If the archive can't be read
        """
        with self._open() as tar:
            try:
                members = tuple(name.removeprefix("./") for name in tar.getnames())
            except tarfile.TarError as e:
                raise ArchiveInstallError(f"Corrupt header archive {self.archive_path}: {e}") from e

        architectures = set()
        vmlinux = []
        for name in members:
            parts = name.split("/")
            if len(parts) >= 2 and parts[0] == "arch" and parts[1]:
                architectures.add(parts[1])
            match = _VMLINUX_RE.match(name)
            if match:
                vmlinux.append(VmlinuxHeader(match.group(1), match.group(2), match.group(3), name))

        return BundleManifest(
            members=members,
            architectures=tuple(sorted(architectures)),
            vmlinux_headers=tuple(sorted(vmlinux, key=lambda h: h.arch)),
        )

    def install(self, dest_dir: Path) -> None:
        """Unpack the archive into dest_dir, overwriting existing files.

        Args:
            dest_dir: Destination directory (created if missing)

        Raises:
            ArchiveInstallError: If the archive is corrupt or dest_dir is not writable
        """
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveInstallError(f"Failed to create {dest_dir}: {e}") from e

        with self._open() as tar:
            try:
                for member in tar.getmembers():
                    tar.extract(member, dest_dir, filter="data")
            except (OSError, tarfile.TarError) as e:
                raise ArchiveInstallError(f"Failed to unpack {self.archive_path} into {dest_dir}: {e}") from e

        logger.debug("Installed %s into %s", self.archive_path, dest_dir)
