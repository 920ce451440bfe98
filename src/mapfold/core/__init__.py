"""Core types and workspace layout for mapfold."""

from .paths import (
    discover_finest_level,
    level_dir,
    parse_tile_name,
    placeholder_path,
    tile_path,
)
from .types import BoundingBox, LevelResult, Point, TileCoord, TileImage

__all__ = [
    "BoundingBox",
    "LevelResult",
    "Point",
    "TileCoord",
    "TileImage",
    "discover_finest_level",
    "level_dir",
    "parse_tile_name",
    "placeholder_path",
    "tile_path",
]
