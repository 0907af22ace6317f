"""Binding generators for the userspace side of a BPF program."""

from .layout import LayoutBindingGenerator, parse_depfile
from .skeleton import SkeletonGenerator

__all__ = ["LayoutBindingGenerator", "SkeletonGenerator", "parse_depfile"]
