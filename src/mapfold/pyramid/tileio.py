"""Tile decode/encode with placeholder substitution for absent tiles."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from mapfold.config import (
    JPEG_QUALITY,
    PLACEHOLDER_COLOR,
    PLACEHOLDER_TILE_SIZE,
)
from mapfold.core.paths import level_dir, placeholder_path, tile_path
from mapfold.core.types import TileImage

from .backends import get_backend

logger = logging.getLogger(__name__)


def load_placeholder(path: Path) -> TileImage:
    """Load the shared "no content here" image.

    Args:
        path: Path to the placeholder JPEG (usually ``<workdir>/empty.jpg``)

    Returns:
        TileImage flagged as the placeholder

    Raises:
        FileNotFoundError: If the asset is missing
        RuntimeError: If the asset cannot be decoded
    """
    backend = get_backend()
    path = Path(path).absolute()
    logger.info("Using placeholder asset %s", path)
    if not path.is_file():
        raise FileNotFoundError(f"Placeholder asset not found: {path}")
    try:
        image = backend.load_jpeg(path)
    except Exception as e:
        raise RuntimeError(f"Failed to decode placeholder {path}: {e}") from e
    return TileImage(image=image, is_placeholder=True)


def ensure_placeholder(
    workdir: Path,
    source: Path | None = None,
    size: int = PLACEHOLDER_TILE_SIZE,
    color: tuple[int, int, int] = PLACEHOLDER_COLOR,
) -> Path:
    """Make sure ``<workdir>/empty.jpg`` exists.

    Copies ``source`` in when given; otherwise keeps an existing asset, or
    generates a solid-colour tile if there is none.

    Returns:
        Path to the placeholder in the working directory
    """
    target = placeholder_path(workdir)
    target.parent.mkdir(parents=True, exist_ok=True)

    if source is not None:
        source = Path(source)
        if source.resolve() != target.resolve():
            shutil.copyfile(source, target)
            logger.info("Copied placeholder %s -> %s", source, target)
        return target

    if target.exists():
        return target

    backend = get_backend()
    backend.save_jpeg(backend.new_rgb(size, size, color), target, quality=JPEG_QUALITY)
    logger.info("Generated %dx%d placeholder at %s", size, size, target)
    return target


class TileStore:
    """Reads and writes the tiles of one working directory.

    Args:
        workdir: Working directory containing tiles/
        placeholder: Shared placeholder returned for absent tiles
        quality: JPEG quality for written tiles
    """

    def __init__(
        self,
        workdir: Path,
        placeholder: TileImage,
        quality: int = JPEG_QUALITY,
    ) -> None:
        if not placeholder.is_placeholder:
            raise ValueError("placeholder must be flagged is_placeholder=True")
        self.workdir = Path(workdir)
        self.placeholder = placeholder
        self.quality = quality
        self._backend = get_backend()

    def read_tile(self, level: int, x: int, y: int) -> TileImage:
        """Decode the tile at (level, x, y).

        Returns:
            The decoded tile, or the placeholder if the file does not exist

        Raises:
            RuntimeError: If the file exists but cannot be read or decoded
        """
        path = tile_path(self.workdir, level, x, y)
        if not path.exists():
            return self.placeholder
        try:
            image = self._backend.load_jpeg(path)
        except FileNotFoundError:
            # Raced with a removal; absent is absent
            return self.placeholder
        except Exception as e:
            raise RuntimeError(f"Failed to decode tile {path}: {e}") from e
        return TileImage(image=image)

    def write_tile(self, level: int, x: int, y: int, image) -> Path:
        """Encode ``image`` as JPEG at (level, x, y).

        Returns:
            Path of the written file

        Raises:
            RuntimeError: If the tile cannot be encoded or written
        """
        level_dir(self.workdir, level).mkdir(parents=True, exist_ok=True)
        path = tile_path(self.workdir, level, x, y)
        try:
            self._backend.save_jpeg(image, path, quality=self.quality)
        except Exception as e:
            raise RuntimeError(f"Failed to write tile {path}: {e}") from e
        return path
