"""BPF toolchain discovery."""

from .clang_info import ClangInfo, KERNEL_TARGETS, probe

__all__ = ["ClangInfo", "KERNEL_TARGETS", "probe"]
