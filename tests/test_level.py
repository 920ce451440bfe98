"""Tests for building a single zoom level."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from mapfold.core.paths import level_dir, placeholder_path
from mapfold.pyramid.gate import ConcurrencyGate
from mapfold.pyramid.level import LevelBuilder
from mapfold.pyramid.tileio import TileStore, load_placeholder


@pytest.fixture
def store(workspace: Path) -> TileStore:
    return TileStore(workspace, load_placeholder(placeholder_path(workspace)))


def _touch_grid(workdir: Path, level: int, width: int, height: int) -> None:
    """Create empty tile files; only their names matter to the scanner."""
    directory = level_dir(workdir, level)
    directory.mkdir(parents=True, exist_ok=True)
    for x in range(width):
        for y in range(height):
            (directory / f"{x}x{y}.jpg").write_bytes(b"")


class TestLevelScenarios:
    """End-to-end behaviour of one level against real tiles."""

    def test_full_quad_gives_one_tile(
        self, store: TileStore, workspace: Path, add_tiles, present_coords
    ):
        add_tiles(10, [(0, 0), (1, 0), (0, 1), (1, 1)])

        result = LevelBuilder(store).build(9)

        assert result.destination_count == 1
        assert not result.has_more_levels
        assert result.written == 1
        assert present_coords(workspace, 9) == {(0, 0)}

    def test_only_populated_quads_are_written(
        self, store: TileStore, workspace: Path, add_tiles, present_coords
    ):
        add_tiles(10, [(4, 4), (5, 4)])

        result = LevelBuilder(store).build(9)

        assert present_coords(workspace, 9) == {(2, 2)}
        assert not (level_dir(workspace, 9) / "0x0.jpg").exists()
        assert result.written == 1

    def test_blank_quads_inside_box_are_skipped(
        self, store: TileStore, workspace: Path, add_tiles, present_coords
    ):
        add_tiles(10, [(0, 0), (5, 5)])

        result = LevelBuilder(store).build(9)

        assert result.destination_count == 9
        assert result.written == 2
        assert result.skipped == 7
        assert present_coords(workspace, 9) == {(0, 0), (2, 2)}

    def test_no_source_tiles(self, store: TileStore, workspace: Path):
        result = LevelBuilder(store).build(9)

        assert result.box.is_empty
        assert result.destination_count == 0
        assert not result.has_more_levels
        assert not level_dir(workspace, 9).exists()

    def test_negative_coordinates(
        self, store: TileStore, workspace: Path, add_tiles, present_coords
    ):
        add_tiles(10, [(-3, -1), (-1, 2), (2, -5)])

        LevelBuilder(store).build(9)

        assert present_coords(workspace, 9) == {(-2, -1), (-1, 1), (1, -3)}

    def test_progress_callback(self, store: TileStore, workspace: Path):
        _touch_grid(workspace, 10, 16, 16)
        calls = []

        def slow_compose(store, level, x, y, max_size):
            time.sleep(0.001)
            return False

        LevelBuilder(
            store,
            workers=16,
            compose=slow_compose,
            progress_callback=lambda *a: calls.append(a),
        ).build(9)

        assert [c[1] for c in calls] == list(range(1, 65))
        assert all(c[0] == "level_9" and c[2] == 64 for c in calls)

    def test_origin_straddling_pair_ends_the_build(
        self, store: TileStore, workspace: Path, add_tiles, present_coords
    ):
        add_tiles(10, [(-1, 0), (0, 0)])

        result = LevelBuilder(store).build(9)

        assert present_coords(workspace, 9) == {(-1, 0), (0, 0)}
        assert result.written == 2
        assert result.destination_count == 1
        assert not result.has_more_levels


class TestLevelConcurrency:
    """Tests for gating and failure handling with a fake composition."""

    def test_gate_bounds_in_flight_compositions(
        self, store: TileStore, workspace: Path
    ):
        _touch_grid(workspace, 10, 40, 40)  # 400 quads
        gate = ConcurrencyGate(48)
        lock = threading.Lock()
        active = 0
        peak = 0

        def slow_compose(store, level, x, y, max_size):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.002)
            with lock:
                active -= 1
            return True

        result = LevelBuilder(
            store, gate=gate, workers=128, compose=slow_compose
        ).build(9)

        assert result.destination_count == 400
        assert result.written == 400
        assert gate.peak <= 48
        assert peak <= 48
        assert gate.in_flight == 0

    def test_small_gate_with_many_workers(self, store: TileStore, workspace: Path):
        _touch_grid(workspace, 10, 20, 20)
        gate = ConcurrencyGate(3)

        def slow_compose(store, level, x, y, max_size):
            time.sleep(0.001)
            return False

        result = LevelBuilder(store, gate=gate, workers=32, compose=slow_compose).build(9)

        assert result.skipped == 100
        assert 1 <= gate.peak <= 3

    def test_first_failure_aborts_level(self, store: TileStore, workspace: Path):
        _touch_grid(workspace, 10, 10, 10)
        gate = ConcurrencyGate(4)

        def failing_compose(store, level, x, y, max_size):
            if (x, y) == (4, 4):
                raise RuntimeError("Failed to decode tile 4x4.jpg")
            return True

        with pytest.raises(RuntimeError, match="4x4"):
            LevelBuilder(store, gate=gate, workers=4, compose=failing_compose).build(9)

        # Slots are never leaked by the failure
        assert gate.in_flight == 0

    def test_corrupt_source_tile_is_fatal(
        self, store: TileStore, workspace: Path, add_tiles
    ):
        add_tiles(10, [(0, 0), (1, 1)])
        (level_dir(workspace, 10) / "2x2.jpg").write_bytes(b"corrupt")

        with pytest.raises(RuntimeError, match="2x2.jpg"):
            LevelBuilder(store).build(9)
