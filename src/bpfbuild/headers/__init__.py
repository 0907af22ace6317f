"""Bundled kernel and BPF headers."""

from .bundle import BUNDLE_DIR_NAME, BundleManifest, HeaderBundle, include_dirs

__all__ = ["BUNDLE_DIR_NAME", "BundleManifest", "HeaderBundle", "include_dirs"]
