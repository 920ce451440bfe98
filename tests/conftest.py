"""Test fixtures for mapfold tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable, Generator, Iterable

import numpy as np
import pytest

from mapfold.core.paths import level_dir, parse_tile_name, placeholder_path, tile_path
from mapfold.pyramid.backends import VIPSBackend

TILE_SIZE = 32


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_rgb_array() -> np.ndarray:
    """Create a simple RGB test image as numpy array with colored quadrants."""
    img = np.full((64, 64, 3), 255, dtype=np.uint8)

    # Top-left: red
    img[0:32, 0:32] = [200, 50, 50]

    # Top-right: green
    img[0:32, 32:64] = [50, 200, 50]

    # Bottom-left: blue
    img[32:64, 0:32] = [50, 50, 200]

    # Bottom-right: purple
    img[32:64, 32:64] = [150, 50, 150]

    return img


def _write_solid_jpeg(
    path: Path,
    color: tuple[int, int, int],
    size: int = TILE_SIZE,
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    image = VIPSBackend.new_rgb(size, size, color)
    VIPSBackend.save_jpeg(image, path, quality=95)
    return path


def _present_coords(workdir: Path, level: int) -> set[tuple[int, int]]:
    directory = level_dir(workdir, level)
    if not directory.is_dir():
        return set()
    coords = set()
    for path in directory.iterdir():
        point = parse_tile_name(path.name)
        if point is not None:
            coords.add((point.x, point.y))
    return coords


@pytest.fixture
def write_solid_jpeg() -> Callable[..., Path]:
    """Factory writing a solid-colour JPEG, creating parent directories.

    Usage:
        write_solid_jpeg(path, (255, 0, 0), size=64)
    """
    return _write_solid_jpeg


@pytest.fixture
def present_coords() -> Callable[[Path, int], set[tuple[int, int]]]:
    """Factory returning the (x, y) of every tile present at a level."""
    return _present_coords


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    """A working directory holding only a black placeholder."""
    workdir = temp_dir / "map"
    _write_solid_jpeg(placeholder_path(workdir), (0, 0, 0))
    return workdir


@pytest.fixture
def add_tiles(workspace: Path) -> Callable[..., list[Path]]:
    """Factory writing leaf tiles into the workspace.

    Usage:
        add_tiles(10, [(0, 0), (1, 0)], color=(200, 50, 50))
    """

    def _add(
        level: int,
        coords: Iterable[tuple[int, int]],
        color: tuple[int, int, int] = (200, 120, 40),
        size: int = TILE_SIZE,
    ) -> list[Path]:
        return [
            _write_solid_jpeg(tile_path(workspace, level, x, y), color, size)
            for x, y in coords
        ]

    return _add
