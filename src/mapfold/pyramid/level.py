"""Build one zoom level of the pyramid from the level above it."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from tqdm import tqdm

from mapfold.config import MAX_TILE_SIZE, WORKER_THREADS
from mapfold.core.types import LevelResult

from .compositor import compose_quad
from .gate import ConcurrencyGate
from .scanner import MalformedNamePolicy, scan_area
from .tileio import TileStore

logger = logging.getLogger(__name__)

ComposeFn = Callable[[TileStore, int, int, int, int], bool]
ProgressCallback = Callable[[str, int, int], None]


class LevelBuilder:
    """Folds source level z + 1 into destination level z.

    Every quad of the source bounding box becomes one task on a thread
    pool. A task takes a gate slot before reading anything and gives it
    back when done, whether it succeeded or not. The first failure cancels
    the tasks that have not started and is re-raised.

    Args:
        store: Tile store of the working directory
        gate: Admission gate shared by all tasks
        workers: Thread pool size per level
        max_size: Largest allowed side of a composed tile
        policy: Handling of unparseable filenames while scanning
        compose: Quad composition function (store, level, x, y, max_size) -> written
        progress_callback: Optional callback(stage, current, total)
        show_progress: Show a tqdm progress bar
    """

    def __init__(
        self,
        store: TileStore,
        gate: ConcurrencyGate | None = None,
        workers: int = WORKER_THREADS,
        max_size: int = MAX_TILE_SIZE,
        policy: MalformedNamePolicy | None = None,
        compose: ComposeFn = compose_quad,
        progress_callback: ProgressCallback | None = None,
        show_progress: bool = False,
    ) -> None:
        self.store = store
        self.gate = gate if gate is not None else ConcurrencyGate()
        self.workers = max(1, workers)
        self.max_size = max_size
        self.policy = policy
        self.compose = compose
        self.progress_callback = progress_callback
        self.show_progress = show_progress
        self._progress_lock = threading.Lock()

    def build(self, level: int) -> LevelResult:
        """Build destination level ``level`` from ``level + 1``.

        Returns:
            LevelResult; ``has_more_levels`` is False once at most one
            destination tile was needed
        """
        logger.info("Making zoom level %d", level)

        box = scan_area(self.store.workdir, level + 1, self.policy)
        total = box.quad_count
        logger.info(
            "  topleft: %s; bottomright: %s; total: %d",
            tuple(box.top_left), tuple(box.bottom_right), total,
        )

        if box.is_empty:
            logger.info("No source tiles at zoom level %d, nothing to do", level + 1)
            return LevelResult(level=level, box=box, destination_count=0)

        written, skipped = self._dispatch(level, box.quad_origins(), total)

        logger.info(
            "Completed zoom level %d: %d written, %d blank", level, written, skipped
        )
        return LevelResult(
            level=level,
            box=box,
            destination_count=box.destination_count,
            written=written,
            skipped=skipped,
        )

    def _dispatch(self, level: int, origins, total: int) -> tuple[int, int]:
        """Run one composition per quad origin and wait for all of them.

        Returns:
            Tuple of (written_count, skipped_count)
        """
        written = 0
        skipped = 0
        done = 0

        with tqdm(
            total=total,
            desc=f"Zoom level {level}",
            unit="tile",
            disable=not self.show_progress,
        ) as pbar:

            def task(x: int, y: int) -> bool:
                nonlocal done
                with self.gate:
                    try:
                        return self.compose(self.store, level, x, y, self.max_size)
                    finally:
                        # Held across the callback so ``current`` arrives in order
                        with self._progress_lock:
                            done += 1
                            pbar.update(1)
                            if self.progress_callback:
                                self.progress_callback(f"level_{level}", done, total)

            with ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix=f"mapfold-z{level}"
            ) as executor:
                futures = [
                    executor.submit(task, origin.x, origin.y) for origin in origins
                ]
                try:
                    for future in as_completed(futures):
                        if future.result():
                            written += 1
                        else:
                            skipped += 1
                except BaseException:
                    for future in futures:
                        future.cancel()
                    raise

        return written, skipped
