"""Fold a 2x2 quad of tiles into one tile of the next coarser level."""

from __future__ import annotations

import logging

from mapfold.config import MAX_TILE_SIZE

from .backends import VIPSBackend
from .tileio import TileStore

logger = logging.getLogger(__name__)


def compose_quad(
    store: TileStore,
    level: int,
    x: int,
    y: int,
    max_size: int = MAX_TILE_SIZE,
) -> bool:
    """Compose the quad whose top-left child is (level + 1, x, y).

    The children (x, y), (x+1, y), (x, y+1), (x+1, y+1) are joined into a
    2x2 grid, shrunk to fit ``max_size`` and written at
    (level, x // 2, y // 2). When all four children are absent nothing is
    written, so empty regions drop out of the pyramid instead of becoming
    solid placeholder tiles.

    Args:
        store: Tile store of the working directory
        level: Destination zoom level
        x: Column of the top-left child at level + 1
        y: Row of the top-left child at level + 1
        max_size: Largest allowed side of the written tile

    Returns:
        True if a tile was written, False if the quad was blank
    """
    source = level + 1
    children = [
        store.read_tile(source, x, y),
        store.read_tile(source, x + 1, y),
        store.read_tile(source, x, y + 1),
        store.read_tile(source, x + 1, y + 1),
    ]

    if all(child.is_placeholder for child in children):
        logger.debug("Skipping (%d, %d)@%d: no source tiles", x // 2, y // 2, level)
        return False

    grid = VIPSBackend.composite_2x2([child.image for child in children])
    tile = VIPSBackend.shrink_to_fit(grid, max_size)
    store.write_tile(level, x // 2, y // 2, tile)
    logger.debug(
        "Wrote (%d, %d)@%d from (%d, %d)..(%d, %d)@%d",
        x // 2, y // 2, level, x, y, x + 1, y + 1, source,
    )
    return True
