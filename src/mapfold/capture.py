"""Run the external leaf-tile renderer and harvest its output.

The renderer is an opaque process that writes leaf tiles into
``<output_dir>/tiles/<leaf>/`` and, once it knows how many it will produce,
a ``rendered-tiles`` marker holding that count. It never exits on its own
when it is done, so two watchers race:

- the process watcher posts when the renderer exits (always abnormal here)
- the marker watcher posts once the expected number of tiles exists

The first post wins; later posts are ignored. The renderer is then
terminated exactly once, whichever watcher won.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from mapfold.config import (
    CAPTURE_MARKER_NAME,
    CAPTURE_POLL_INTERVAL,
    CAPTURE_STARTUP_DELAY,
    MAX_ZOOM,
)
from mapfold.core.paths import copy_tree, level_dir, tiles_root

logger = logging.getLogger(__name__)

PROCESS = "process"
MARKER = "marker"


@dataclass(frozen=True)
class Completion:
    """The winning completion signal.

    Attributes:
        source: Which watcher posted (``"process"`` or ``"marker"``)
        error: Error message from that watcher, None on success
        returncode: Renderer exit code when the process watcher won
    """

    source: str
    error: str | None = None
    returncode: int | None = None


class CompletionSignal:
    """One-shot completion slot shared by independent watchers.

    Only the first ``post`` is recorded; every later one returns False and
    changes nothing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._completion: Completion | None = None

    def post(
        self,
        source: str,
        error: str | None = None,
        returncode: int | None = None,
    ) -> bool:
        """Offer a completion.

        Returns:
            True if this post won, False if another post came first
        """
        with self._lock:
            if self._completion is not None:
                logger.debug(
                    "Ignoring %s signal, %s already won", source, self._completion.source
                )
                return False
            self._completion = Completion(source, error, returncode)
        self._event.set()
        return True

    @property
    def completion(self) -> Completion | None:
        with self._lock:
            return self._completion

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> Completion:
        """Block until a watcher posts.

        Raises:
            TimeoutError: If nothing was posted within ``timeout`` seconds
        """
        if not self._event.wait(timeout):
            raise TimeoutError(f"No completion signal within {timeout}s")
        return self._completion


def once(action: Callable[[], None]) -> Callable[[], bool]:
    """Wrap ``action`` so it runs at most once across all threads.

    Returns:
        Callable returning True for the call that ran the action
    """
    lock = threading.Lock()
    done = False

    def guarded() -> bool:
        nonlocal done
        with lock:
            if done:
                return False
            done = True
        action()
        return True

    return guarded


def watch_process(proc: subprocess.Popen, signal: CompletionSignal) -> None:
    """Post ``"process"`` when the renderer exits."""
    returncode = proc.wait()
    signal.post(PROCESS, returncode=returncode)


def read_expected_count(marker: Path) -> int | None:
    """Read the expected tile count from the marker file.

    Returns:
        The count, or None if the marker does not exist yet

    Raises:
        ValueError: If the marker does not hold an integer
    """
    try:
        text = marker.read_text().strip()
    except FileNotFoundError:
        return None
    return int(text)


def watch_marker(
    output_dir: Path,
    signal: CompletionSignal,
    leaf_level: int = MAX_ZOOM,
    startup_delay: float = CAPTURE_STARTUP_DELAY,
    poll_interval: float = CAPTURE_POLL_INTERVAL,
) -> None:
    """Post ``"marker"`` once the renderer has written every promised tile.

    Gives up silently if another watcher has already posted.
    """
    output_dir = Path(output_dir)
    marker = output_dir / CAPTURE_MARKER_NAME
    leaves = level_dir(output_dir, leaf_level)

    if startup_delay > 0 and _sleep_unless_done(signal, startup_delay):
        return

    expected = None
    while expected is None:
        try:
            expected = read_expected_count(marker)
        except (OSError, ValueError) as e:
            signal.post(MARKER, error=f"Unreadable marker {marker}: {e}")
            return
        if expected is None:
            logger.debug("Marker %s not written yet", marker)
            if _sleep_unless_done(signal, poll_interval):
                return

    logger.info("Expecting to find %d tiles", expected)

    while True:
        found = len(list(leaves.glob("*"))) if leaves.is_dir() else 0
        if found >= expected:
            logger.info("Found the expected number of tiles")
            signal.post(MARKER)
            return
        logger.debug("Found %d of %d tiles, waiting for more", found, expected)
        if _sleep_unless_done(signal, poll_interval):
            return


def _sleep_unless_done(signal: CompletionSignal, seconds: float) -> bool:
    """Sleep up to ``seconds``; True if the signal was posted meanwhile."""
    deadline = time.monotonic() + seconds
    while not signal.is_set():
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        time.sleep(min(remaining, 0.05))
    return True


def _terminate(proc: subprocess.Popen) -> None:
    if proc.poll() is None:
        logger.info("Stopping renderer (pid %d)", proc.pid)
        proc.kill()
    proc.wait()


def run_capture(
    command: Sequence[str],
    output_dir: Path,
    leaf_level: int = MAX_ZOOM,
    startup_delay: float = CAPTURE_STARTUP_DELAY,
    poll_interval: float = CAPTURE_POLL_INTERVAL,
) -> Completion:
    """Run the renderer until it has produced every leaf tile.

    Args:
        command: Renderer command line
        output_dir: Directory the renderer writes its marker and tiles/ into
        leaf_level: Level directory the leaf tiles appear in
        startup_delay: Seconds before the marker is first polled
        poll_interval: Seconds between polls

    Returns:
        The winning Completion (always from the marker watcher)

    Raises:
        RuntimeError: If the renderer exited first or the marker was unreadable
    """
    output_dir = Path(output_dir)
    logger.info("Running renderer: %s", " ".join(command))
    proc = subprocess.Popen(list(command))

    signal = CompletionSignal()
    terminate = once(lambda: _terminate(proc))

    watchers = [
        threading.Thread(
            target=watch_process, args=(proc, signal), name="mapfold-process", daemon=True
        ),
        threading.Thread(
            target=watch_marker,
            args=(output_dir, signal, leaf_level, startup_delay, poll_interval),
            name="mapfold-marker",
            daemon=True,
        ),
    ]
    for watcher in watchers:
        watcher.start()

    try:
        completion = signal.wait()
    finally:
        terminate()

    if completion.source == PROCESS:
        # Even a clean exit means the renderer stopped before all tiles existed
        raise RuntimeError(
            f"Renderer exited abnormally (exit code {completion.returncode})"
        )
    if completion.error:
        logger.error("Capture failed: %s", completion.error)
        raise RuntimeError(completion.error)
    return completion


def harvest_tiles(output_dir: Path, workdir: Path) -> int:
    """Copy the renderer's tiles/ tree into the working directory.

    Returns:
        Number of files copied
    """
    source = tiles_root(output_dir)
    target = tiles_root(workdir)
    copied = copy_tree(source, target)
    logger.info("Copied %d tiles from %s to %s", copied, source, target)
    return copied
