"""Bounding-box derivation for one zoom level from the tile files on disk."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from mapfold.config import MALFORMED_NAME_POLICY, TILE_SUFFIX
from mapfold.core.paths import level_dir, parse_tile_name
from mapfold.core.types import BoundingBox, Point

logger = logging.getLogger(__name__)


class MalformedNamePolicy(Enum):
    """What to do with a tile file whose name is not ``<int>x<int>.jpg``."""

    IGNORE = "ignore"  # Drop silently
    WARN = "warn"  # Drop and log a warning
    FAIL = "fail"  # Abort the run

    @classmethod
    def default(cls) -> MalformedNamePolicy:
        return cls(MALFORMED_NAME_POLICY)


def _floor_even(n: int) -> int:
    # Python's % is non-negative for a positive modulus, so -3 -> -4
    return n - (n % 2)


def scan_area(
    workdir: Path,
    level: int,
    policy: MalformedNamePolicy | None = None,
) -> BoundingBox:
    """Compute the bounding box of the tiles present at ``level``.

    The top-left corner is rounded down to even coordinates so the box
    always starts on a quad boundary. A missing or empty level directory
    yields ``BoundingBox.empty()``; that is "nothing to do", not an error.

    Args:
        workdir: Working directory containing tiles/
        level: Zoom level to scan
        policy: Handling of unparseable filenames (default from config)

    Returns:
        BoundingBox over the present tiles

    Raises:
        ValueError: If a filename does not parse and policy is FAIL
    """
    if policy is None:
        policy = MalformedNamePolicy.default()

    directory = level_dir(workdir, level)
    logger.debug("Determining area for zoom level %d", level)
    if not directory.is_dir():
        return BoundingBox.empty()

    min_x = min_y = max_x = max_y = 0
    count = 0
    for path in directory.glob(f"*{TILE_SUFFIX}"):
        point = parse_tile_name(path.name)
        if point is None:
            if policy is MalformedNamePolicy.FAIL:
                raise ValueError(f"Malformed tile filename: {path}")
            if policy is MalformedNamePolicy.WARN:
                logger.warning("Ignoring malformed tile filename %s", path)
            continue

        left, top = _floor_even(point.x), _floor_even(point.y)
        if count == 0:
            min_x, min_y, max_x, max_y = left, top, point.x, point.y
        else:
            min_x = min(min_x, left)
            min_y = min(min_y, top)
            max_x = max(max_x, point.x)
            max_y = max(max_y, point.y)
        count += 1

    if count == 0:
        return BoundingBox.empty()

    return BoundingBox(Point(min_x, min_y), Point(max_x, max_y), count)
