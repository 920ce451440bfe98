"""Tests for the PyVIPS image backend."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from mapfold.pyramid.backends import (
    VIPSBackend,
    get_backend,
    get_vips_import_error,
    is_vips_available,
)


class TestVIPSBackend:
    """Tests for the PyVIPS backend."""

    def test_from_numpy_conversion(self, sample_rgb_array: np.ndarray):
        """Should convert numpy to vips format."""
        import pyvips

        result = VIPSBackend.from_numpy(sample_rgb_array)
        assert isinstance(result, pyvips.Image)
        assert result.width == sample_rgb_array.shape[1]
        assert result.height == sample_rgb_array.shape[0]
        assert result.bands == 3

    def test_to_numpy_conversion(self, sample_rgb_array: np.ndarray):
        """Should convert vips back to numpy without loss."""
        vips_img = VIPSBackend.from_numpy(sample_rgb_array)
        result = VIPSBackend.to_numpy(vips_img)

        assert result.shape == sample_rgb_array.shape
        np.testing.assert_array_equal(result, sample_rgb_array)

    def test_to_numpy_expands_grayscale(self):
        gray = np.full((8, 8), 77, dtype=np.uint8)
        result = VIPSBackend.to_numpy(VIPSBackend.from_numpy(gray))
        assert result.shape == (8, 8, 3)
        assert (result == 77).all()

    def test_save_and_load_jpeg(self, sample_rgb_array: np.ndarray, temp_dir: Path):
        """Should save and load JPEG correctly."""
        jpeg_path = temp_dir / "0x0.jpg"
        VIPSBackend.save_jpeg(VIPSBackend.from_numpy(sample_rgb_array), jpeg_path, quality=95)
        assert jpeg_path.exists()

        loaded = VIPSBackend.load_jpeg(jpeg_path)
        assert loaded.width == sample_rgb_array.shape[1]
        assert loaded.height == sample_rgb_array.shape[0]

    def test_load_missing_raises_file_not_found(self, temp_dir: Path):
        with pytest.raises(FileNotFoundError):
            VIPSBackend.load_jpeg(temp_dir / "absent.jpg")

    def test_load_garbage_raises(self, temp_dir: Path):
        import pyvips

        bad = temp_dir / "bad.jpg"
        bad.write_bytes(b"definitely not a jpeg")
        with pytest.raises(pyvips.Error):
            VIPSBackend.load_jpeg(bad)

    def test_resize(self, sample_rgb_array: np.ndarray):
        """Should resize using Lanczos3."""
        result = VIPSBackend.resize(VIPSBackend.from_numpy(sample_rgb_array), (16, 24))
        assert (result.width, result.height) == (16, 24)

    def test_composite_2x2(self, sample_rgb_array: np.ndarray):
        """Should composite 4 tiles into a 2x2 grid in row-major order."""
        colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)]
        tiles = [VIPSBackend.new_rgb(16, 16, c) for c in colors]

        result = VIPSBackend.composite_2x2(tiles)
        assert (result.width, result.height) == (32, 32)

        arr = VIPSBackend.to_numpy(result)
        assert tuple(arr[4, 4]) == colors[0]
        assert tuple(arr[4, 20]) == colors[1]
        assert tuple(arr[20, 4]) == colors[2]
        assert tuple(arr[20, 20]) == colors[3]

    def test_composite_2x2_mismatched_sizes(self):
        """Tiles differing from the first are resized to match it."""
        big = VIPSBackend.new_rgb(32, 32, (10, 10, 10))
        small = VIPSBackend.new_rgb(8, 8, (200, 200, 200))

        result = VIPSBackend.composite_2x2([big, small, small, big])
        assert (result.width, result.height) == (64, 64)

    def test_composite_2x2_mixed_bands(self):
        rgb = VIPSBackend.new_rgb(16, 16, (10, 20, 30))
        gray = VIPSBackend.from_numpy(np.zeros((16, 16), dtype=np.uint8))

        result = VIPSBackend.composite_2x2([rgb, gray, gray, rgb])
        assert result.bands == 3

    def test_composite_2x2_requires_four(self):
        tile = VIPSBackend.new_rgb(8, 8, (0, 0, 0))
        with pytest.raises(ValueError):
            VIPSBackend.composite_2x2([tile, tile, tile])

    @pytest.mark.parametrize(
        "size, max_size, expected",
        [
            ((2048, 2048), 1024, (1024, 1024)),
            ((2048, 1024), 1024, (1024, 512)),
            ((1024, 1024), 1024, (1024, 1024)),
            ((64, 64), 1024, (64, 64)),
        ],
        ids=["square", "wide", "exact-fit", "never-upscale"],
    )
    def test_shrink_to_fit(self, size, max_size, expected):
        img = VIPSBackend.new_rgb(size[0], size[1], (90, 90, 90))
        result = VIPSBackend.shrink_to_fit(img, max_size)
        assert (result.width, result.height) == expected

    def test_new_rgb(self):
        """Should create a solid color image."""
        color = (128, 64, 192)
        result = VIPSBackend.new_rgb(100, 100, color)
        assert (result.width, result.height, result.bands) == (100, 100, 3)

        arr = VIPSBackend.to_numpy(result)
        assert tuple(arr[0, 0]) == color


class TestBackendSelection:
    """Tests for backend selection logic."""

    def test_is_vips_available_returns_bool(self):
        assert isinstance(is_vips_available(), bool)

    def test_get_backend_returns_vips(self):
        assert get_backend() is VIPSBackend

    def test_no_import_error_when_available(self):
        assert get_vips_import_error() is None
