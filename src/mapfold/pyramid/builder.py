"""Pyramid generation: fold the finest level down until one tile is left."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from mapfold.config import (
    JPEG_QUALITY,
    MAX_IN_FLIGHT,
    MAX_TILE_SIZE,
    MAX_ZOOM,
    WORKER_THREADS,
)
from mapfold.core.paths import discover_finest_level, placeholder_path
from mapfold.core.types import LevelResult

from .gate import ConcurrencyGate
from .level import LevelBuilder
from .scanner import MalformedNamePolicy
from .tileio import TileStore, load_placeholder

logger = logging.getLogger(__name__)


class PyramidBuilder:
    """Builds every coarser zoom level from the leaf tiles of a working directory.

    The working directory must contain ``empty.jpg`` and a populated
    ``tiles/<finest>/`` directory. Levels are built strictly in order, from
    ``finest - 1`` down to 0, and the build stops as soon as a level needed
    at most one tile.

    Output layout:
        - tiles/<z>/<x>x<y>.jpg for every level below the finest
        - Level 0 = coarsest; higher numbers are finer
    """

    def __init__(
        self,
        finest_level: int | None = None,
        max_in_flight: int = MAX_IN_FLIGHT,
        workers: int = WORKER_THREADS,
        max_size: int = MAX_TILE_SIZE,
        quality: int = JPEG_QUALITY,
        policy: MalformedNamePolicy | None = None,
        show_progress: bool = False,
    ) -> None:
        self.finest_level = finest_level
        self.gate = ConcurrencyGate(max_in_flight)
        self.workers = workers
        self.max_size = max_size
        self.quality = quality
        self.policy = policy
        self.show_progress = show_progress

    def build(
        self,
        workdir: Path,
        progress_callback: Callable[[str, int, int], None] | None = None,
    ) -> list[LevelResult]:
        """Build the pyramid in ``workdir``.

        Args:
            workdir: Working directory (empty.jpg + tiles/)
            progress_callback: Optional callback(stage, current, total)

        Returns:
            One LevelResult per level built, finest first

        Raises:
            FileNotFoundError: If the placeholder asset is missing
            RuntimeError: If any tile or the placeholder cannot be decoded or written
        """
        workdir = Path(workdir)

        placeholder = load_placeholder(placeholder_path(workdir))
        store = TileStore(workdir, placeholder, quality=self.quality)

        finest = self._resolve_finest_level(workdir)
        logger.info("Building pyramid in %s from zoom level %d", workdir, finest)

        level_builder = LevelBuilder(
            store,
            gate=self.gate,
            workers=self.workers,
            max_size=self.max_size,
            policy=self.policy,
            progress_callback=progress_callback,
            show_progress=self.show_progress,
        )

        results: list[LevelResult] = []
        for level in range(finest - 1, -1, -1):
            result = level_builder.build(level)
            results.append(result)
            if not result.has_more_levels:
                break

        logger.info("Generated %d pyramid levels in %s", len(results), workdir)
        return results

    def _resolve_finest_level(self, workdir: Path) -> int:
        """Explicit finest level, else the highest level directory, else MAX_ZOOM."""
        if self.finest_level is not None:
            return self.finest_level
        found = discover_finest_level(workdir)
        if found is None:
            logger.warning(
                "No level directories under %s, assuming zoom level %d", workdir, MAX_ZOOM
            )
            return MAX_ZOOM
        return found


def build_pyramid(
    workdir: Path,
    finest_level: int | None = None,
    max_in_flight: int = MAX_IN_FLIGHT,
    workers: int = WORKER_THREADS,
    policy: MalformedNamePolicy | None = None,
    progress_callback: Callable[[str, int, int], None] | None = None,
    show_progress: bool = False,
) -> list[LevelResult]:
    """Build a tile pyramid using PyramidBuilder.

    Args:
        workdir: Working directory containing empty.jpg and tiles/
        finest_level: Leaf level; defaults to the highest level on disk
        max_in_flight: Admission gate capacity
        workers: Worker threads per level
        policy: Handling of unparseable tile filenames
        progress_callback: Progress callback function
        show_progress: Show tqdm progress bars

    Returns:
        One LevelResult per level built, finest first
    """
    builder = PyramidBuilder(
        finest_level=finest_level,
        max_in_flight=max_in_flight,
        workers=workers,
        policy=policy,
        show_progress=show_progress,
    )
    return builder.build(workdir, progress_callback)
