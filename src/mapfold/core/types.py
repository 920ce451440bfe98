"""Shared type definitions for the mapfold core module."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NamedTuple


class Point(NamedTuple):
    """Integer coordinate within one zoom level's grid (may be negative)."""

    x: int
    y: int


class TileCoord(NamedTuple):
    """Coordinate of a tile in the pyramid.

    Attributes:
        level: Zoom level (0 = coarsest)
        x: Column, may be negative
        y: Row, may be negative
    """

    level: int
    x: int
    y: int

    @property
    def parent(self) -> TileCoord:
        """The tile one level coarser that this tile folds into.

        Floor division keeps negative children in the right quad:
        (-1, -1) folds into (-1, -1), not (0, 0).
        """
        return TileCoord(self.level - 1, self.x // 2, self.y // 2)

    @property
    def children(self) -> tuple[TileCoord, TileCoord, TileCoord, TileCoord]:
        """The four finer tiles in row-major order (TL, TR, BL, BR)."""
        z, x, y = self.level + 1, self.x * 2, self.y * 2
        return (
            TileCoord(z, x, y),
            TileCoord(z, x + 1, y),
            TileCoord(z, x, y + 1),
            TileCoord(z, x + 1, y + 1),
        )


@dataclass(frozen=True)
class TileImage:
    """A decoded tile.

    Attributes:
        image: pyvips.Image holding the pixels
        is_placeholder: True only for the shared "no content here" image
    """

    image: Any
    is_placeholder: bool = False

    @property
    def size(self) -> tuple[int, int]:
        return self.image.width, self.image.height


def _fold_span(low: int, high: int) -> int:
    """Parents spanned by children ``low..high`` along one axis."""
    first, last = low // 2, high // 2
    if first == -1 and last == 0:
        return 1
    return last - first + 1


@dataclass(frozen=True)
class BoundingBox:
    """Quad-aligned inclusive box around the present tiles of a level.

    Attributes:
        top_left: Smallest (x, y), each rounded down to an even value
        bottom_right: Largest (x, y) of any present tile
        tile_count: Number of tiles that contributed; 0 for an empty level
    """

    top_left: Point
    bottom_right: Point
    tile_count: int = 0

    @classmethod
    def empty(cls) -> BoundingBox:
        return cls(Point(0, 0), Point(0, 0), 0)

    @property
    def is_empty(self) -> bool:
        return self.tile_count == 0

    @property
    def width(self) -> int:
        """Inclusive span in tiles along x."""
        if self.is_empty:
            return 0
        return self.bottom_right.x - self.top_left.x + 1

    @property
    def height(self) -> int:
        """Inclusive span in tiles along y."""
        if self.is_empty:
            return 0
        return self.bottom_right.y - self.top_left.y + 1

    @property
    def quad_count(self) -> int:
        """Quads covering the box: ceil(w / 2) * ceil(h / 2)."""
        return ((self.width + 1) // 2) * ((self.height + 1) // 2)

    @property
    def destination_count(self) -> int:
        """Tiles the next coarser level needs before the pyramid is complete.

        Equal to ``quad_count``, except that an axis whose parents are
        exactly -1 and 0 counts as one. Floor division never merges those
        two, so a map straddling the origin settles on that pair.
        """
        if self.is_empty:
            return 0
        return _fold_span(self.top_left.x, self.bottom_right.x) * _fold_span(
            self.top_left.y, self.bottom_right.y
        )

    def quad_origins(self) -> list[Point]:
        """Top-left child of every quad covering the box, stepping by 2."""
        if self.is_empty:
            return []
        return [
            Point(x, y)
            for x in range(self.top_left.x, self.bottom_right.x + 1, 2)
            for y in range(self.top_left.y, self.bottom_right.y + 1, 2)
        ]


@dataclass(frozen=True)
class LevelResult:
    """Outcome of building one zoom level.

    Attributes:
        level: Destination zoom level that was written
        box: Bounding box of the source level (level + 1)
        destination_count: Tiles still needed at this level; 1 or less ends the build
        written: Tiles written
        skipped: Quads whose four children were all absent
    """

    level: int
    box: BoundingBox
    destination_count: int
    written: int = 0
    skipped: int = 0

    @property
    def has_more_levels(self) -> bool:
        return self.destination_count > 1
