"""Image processing backend using PyVIPS.

This module provides the handful of image operations the pyramid needs,
implemented with PyVIPS (libvips):
- JPEG decode/encode
- 2x2 grid composition with ``arrayjoin``
- bicubic shrink-to-fit

Usage:
    from mapfold.pyramid.backends import VIPSBackend

    img = VIPSBackend.load_jpeg(Path("tiles/10/0x0.jpg"))
    grid = VIPSBackend.composite_2x2([img, img, img, img])
    VIPSBackend.save_jpeg(VIPSBackend.shrink_to_fit(grid, 1024), Path("out.jpg"))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np

# pyvips is first imported (quietly) in mapfold/__init__.py
_HAS_VIPS = False
_vips_import_error: str | None = None
pyvips: Any = None

try:
    import pyvips
    _HAS_VIPS = True
except (ImportError, OSError) as e:
    _vips_import_error = str(e)


def is_vips_available() -> bool:
    """Check if PyVIPS is available.

    Returns:
        True if pyvips is installed and working
    """
    return _HAS_VIPS


def get_vips_import_error() -> str | None:
    """Get the error message if PyVIPS failed to import.

    Returns:
        Error message string, or None if pyvips is available
    """
    return _vips_import_error


def _require_vips() -> None:
    if not _HAS_VIPS:
        raise RuntimeError(f"PyVIPS is not available: {_vips_import_error}")


class VIPSBackend:
    """PyVIPS-based image processing backend.

    All methods are static and thread-safe; pyvips images are immutable, so a
    single decoded image (the placeholder) can be shared by every worker.

    Requires pyvips to be installed: pip install "pyvips[binary]"
    """

    @staticmethod
    def from_numpy(arr: np.ndarray) -> "pyvips.Image":
        """Convert a numpy array to pyvips format.

        Args:
            arr: numpy array (H, W, 3) RGB uint8, or (H, W) grayscale

        Returns:
            pyvips.Image
        """
        _require_vips()

        height, width = arr.shape[:2]
        bands = arr.shape[2] if arr.ndim == 3 else 1

        arr = np.ascontiguousarray(arr, dtype=np.uint8)

        return pyvips.Image.new_from_memory(
            arr.tobytes(),
            width,
            height,
            bands,
            "uchar"
        )

    @staticmethod
    def to_numpy(img: "pyvips.Image") -> np.ndarray:
        """Convert a pyvips image to numpy array.

        Args:
            img: pyvips.Image

        Returns:
            numpy array (H, W, 3) RGB uint8
        """
        img = VIPSBackend.ensure_rgb(img)
        data = img.write_to_memory()
        return np.ndarray(
            buffer=data,
            dtype=np.uint8,
            shape=(img.height, img.width, img.bands)
        )

    @staticmethod
    def ensure_rgb(img: "pyvips.Image") -> "pyvips.Image":
        """Normalise an image to 3-band uchar RGB."""
        if img.bands == 4:
            img = img.extract_band(0, n=3)
        elif img.bands == 1:
            # bandjoin joins self + list, so [img, img] gives 3 bands
            img = img.bandjoin([img, img])
        if img.format != "uchar":
            img = img.cast("uchar")
        return img

    @staticmethod
    def load_jpeg(path: Path) -> "pyvips.Image":
        """Decode a JPEG fully into memory.

        Decoding is forced here so that a corrupt or truncated file raises
        now, with the path at hand, rather than later inside an encode.

        Args:
            path: Path to the JPEG file

        Returns:
            pyvips.Image backed by memory

        Raises:
            FileNotFoundError: If the file does not exist
            pyvips.Error: If the file cannot be decoded
        """
        _require_vips()

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"No such tile: {path}")

        image = pyvips.Image.new_from_file(
            str(path), access="sequential", fail_on="error"
        )
        return image.copy_memory()

    @staticmethod
    def save_jpeg(img: "pyvips.Image", path: Path, quality: int = 75) -> None:
        """Save an image as JPEG.

        Args:
            img: pyvips.Image to save
            path: Output path (suffix selects the JPEG saver)
            quality: JPEG quality (1-100)
        """
        img.jpegsave(str(path), Q=quality)

    @staticmethod
    def resize(img: "pyvips.Image", size: tuple[int, int]) -> "pyvips.Image":
        """Resize an image to an exact size using Lanczos3 resampling.

        Args:
            img: pyvips.Image to resize
            size: Target size as (width, height)

        Returns:
            Resized pyvips.Image
        """
        target_width, target_height = size
        h_scale = target_width / img.width
        v_scale = target_height / img.height

        return img.resize(h_scale, vscale=v_scale, kernel="lanczos3")

    @staticmethod
    def shrink_to_fit(img: "pyvips.Image", max_size: int) -> "pyvips.Image":
        """Shrink an image so neither side exceeds ``max_size``.

        Aspect ratio is kept and images that already fit are returned
        untouched (never upscaled). Uses a bicubic kernel.

        Args:
            img: pyvips.Image to shrink
            max_size: Largest allowed width and height in pixels

        Returns:
            pyvips.Image no larger than max_size x max_size
        """
        scale = min(1.0, max_size / img.width, max_size / img.height)
        if scale >= 1.0:
            return img
        return img.resize(scale, kernel="cubic")

    @staticmethod
    def composite_2x2(tiles: list["pyvips.Image"]) -> "pyvips.Image":
        """Composite 4 tiles into a 2x2 grid using vips arrayjoin.

        Args:
            tiles: List of 4 tiles [top-left, top-right, bottom-left, bottom-right].
                   Tiles whose size differs from the first are resized to match.

        Returns:
            Combined pyvips.Image of size (2 * width, 2 * height) of the first tile
        """
        _require_vips()

        if len(tiles) != 4:
            raise ValueError(f"Expected 4 tiles, got {len(tiles)}")

        tile_width, tile_height = tiles[0].width, tiles[0].height

        resolved_tiles = []
        for tile in tiles:
            tile = VIPSBackend.ensure_rgb(tile)
            if tile.width != tile_width or tile.height != tile_height:
                tile = VIPSBackend.resize(tile, (tile_width, tile_height))
            resolved_tiles.append(tile)

        # arrayjoin expects tiles in row-major order
        return pyvips.Image.arrayjoin(resolved_tiles, across=2)

    @staticmethod
    def new_rgb(width: int, height: int, color: tuple[int, int, int]) -> "pyvips.Image":
        """Create a new RGB image filled with a solid color.

        Args:
            width: Image width
            height: Image height
            color: RGB tuple (0-255 each)

        Returns:
            pyvips.Image filled with the color
        """
        _require_vips()

        return (
            pyvips.Image.black(width, height, bands=3)
            .add(list(color))
            .cast("uchar")
        )


def get_backend() -> type[VIPSBackend]:
    """Get the image processing backend.

    Returns:
        VIPSBackend class

    Raises:
        RuntimeError: If PyVIPS is not available
    """
    if not _HAS_VIPS:
        raise RuntimeError(
            f"PyVIPS is required but not available: {_vips_import_error}\n"
            "Install pyvips and libvips: pip install \"pyvips[binary]\""
        )
    return VIPSBackend
