"""Pyramid pipeline: scan, read, compose, gate, and fold level by level."""

from .backends import (
    VIPSBackend,
    get_vips_import_error,
    is_vips_available,
)
from .builder import (
    PyramidBuilder,
    build_pyramid,
)
from .compositor import compose_quad
from .gate import ConcurrencyGate
from .level import LevelBuilder
from .scanner import MalformedNamePolicy, scan_area
from .tileio import TileStore, ensure_placeholder, load_placeholder

__all__ = [
    "ConcurrencyGate",
    "LevelBuilder",
    "MalformedNamePolicy",
    "PyramidBuilder",
    "TileStore",
    "VIPSBackend",
    "build_pyramid",
    "compose_quad",
    "ensure_placeholder",
    "get_vips_import_error",
    "is_vips_available",
    "load_placeholder",
    "scan_area",
]
