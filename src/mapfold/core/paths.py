"""Path utilities for the working-directory tile layout.

Tiles live at ``<workdir>/tiles/<z>/<x>x<y>.jpg``; the placeholder at
``<workdir>/empty.jpg``. The same naming is used for reading and writing.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from mapfold.config import COORD_SEPARATOR, PLACEHOLDER_NAME, TILE_SUFFIX, TILES_DIRNAME

from .types import Point

logger = logging.getLogger(__name__)

_TILE_NAME_RE = re.compile(
    rf"^(-?\d+){re.escape(COORD_SEPARATOR)}(-?\d+){re.escape(TILE_SUFFIX)}$"
)


def tiles_root(workdir: Path) -> Path:
    return Path(workdir) / TILES_DIRNAME


def level_dir(workdir: Path, level: int) -> Path:
    return tiles_root(workdir) / str(level)


def tile_filename(x: int, y: int) -> str:
    """Filename of the tile at (x, y), e.g. ``-3x12.jpg``."""
    return f"{x}{COORD_SEPARATOR}{y}{TILE_SUFFIX}"


def tile_path(workdir: Path, level: int, x: int, y: int) -> Path:
    return level_dir(workdir, level) / tile_filename(x, y)


def placeholder_path(workdir: Path) -> Path:
    return Path(workdir) / PLACEHOLDER_NAME


def parse_tile_name(name: str) -> Point | None:
    """Parse ``<int>x<int>.jpg`` into a Point.

    Only the canonical spelling produced by ``tile_filename`` is accepted;
    ``01x00.jpg`` or ``-0x0.jpg`` would never be found again by
    ``tile_path``.

    Returns:
        The coordinate, or None if the name does not follow the contract
    """
    match = _TILE_NAME_RE.match(name)
    if match is None:
        return None
    point = Point(int(match.group(1)), int(match.group(2)))
    if tile_filename(point.x, point.y) != name:
        return None
    return point


def discover_finest_level(workdir: Path) -> int | None:
    """Find the highest numeric level directory under tiles/.

    Returns:
        The finest level number, or None if there is no level directory
    """
    root = tiles_root(workdir)
    if not root.is_dir():
        return None

    finest = None
    for entry in root.iterdir():
        if not entry.is_dir():
            continue
        try:
            level = int(entry.name)
        except ValueError:
            continue
        if level >= 0 and (finest is None or level > finest):
            finest = level
    return finest


def copy_tree(src: Path, dst: Path) -> int:
    """Recursively copy ``src`` into ``dst``, overwriting existing files.

    Symlinks are skipped. ``dst`` may already exist.

    Returns:
        Number of files copied
    """
    src = Path(src)
    dst = Path(dst)
    if not src.is_dir():
        raise NotADirectoryError(f"Source is not a directory: {src}")

    dst.mkdir(parents=True, exist_ok=True)
    copied = 0
    for entry in sorted(src.iterdir()):
        if entry.is_symlink():
            logger.debug("Skipping symlink %s", entry)
            continue
        target = dst / entry.name
        if entry.is_dir():
            copied += copy_tree(entry, target)
        else:
            shutil.copy2(entry, target)
            copied += 1
    return copied
