"""Centralized configuration for mapfold.

All tunable parameters are defined here with sensible defaults.
Values can be overridden via environment variables.

Environment Variables:
    MAPFOLD_MAX_ZOOM: Fallback finest zoom level when none is found on disk (default: 10)
    MAPFOLD_MAX_IN_FLIGHT: Compositions allowed to hold a gate slot at once (default: 48)
    MAPFOLD_WORKER_THREADS: Worker threads per level (default: 48)
    MAPFOLD_MAX_TILE_SIZE: Largest side of a composed tile in pixels (default: 1024)
    MAPFOLD_JPEG_QUALITY: JPEG quality for written tiles (default: 75)
    MAPFOLD_MALFORMED_NAMES: ignore, warn or fail on unparseable tile names (default: warn)
    MAPFOLD_VIPS_CONCURRENCY: VIPS internal thread count (default: 1)
    MAPFOLD_CAPTURE_STARTUP_DELAY: Seconds before polling the renderer marker (default: 15)
    MAPFOLD_CAPTURE_POLL_INTERVAL: Seconds between marker polls (default: 1)
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


def _get_env_int(name: str, default: int) -> int:
    """Get an integer from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Invalid integer for %s: %r, using default %d", name, value, default
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Get a float from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(
                "Invalid number for %s: %r, using default %s", name, value, default
            )
    return default


def _get_env_str(name: str, default: str) -> str:
    """Get a string from environment variable with fallback."""
    return os.environ.get(name, default)


# =============================================================================
# Workspace Layout
# =============================================================================

#: Placeholder asset expected at the root of the working directory
PLACEHOLDER_NAME: str = "empty.jpg"

#: Directory holding one sub-directory per zoom level
TILES_DIRNAME: str = "tiles"

#: Tile file suffix; also the only supported codec
TILE_SUFFIX: str = ".jpg"

#: Separator between the x and y coordinates in a tile filename
COORD_SEPARATOR: str = "x"


# =============================================================================
# Pyramid Generation
# =============================================================================

#: Finest zoom level assumed when tiles/ holds no numeric level directory
MAX_ZOOM: int = _get_env_int("MAPFOLD_MAX_ZOOM", 10)

#: Capacity of the admission gate (compositions holding a slot at once)
MAX_IN_FLIGHT: int = _get_env_int("MAPFOLD_MAX_IN_FLIGHT", 48)

#: Worker threads used to run compositions within one level
WORKER_THREADS: int = _get_env_int("MAPFOLD_WORKER_THREADS", 48)

#: Composed tiles are shrunk so neither side exceeds this many pixels
MAX_TILE_SIZE: int = _get_env_int("MAPFOLD_MAX_TILE_SIZE", 1024)

#: JPEG quality for written tiles
JPEG_QUALITY: int = _get_env_int("MAPFOLD_JPEG_QUALITY", 75)

#: What to do with tile filenames that do not parse: ignore, warn or fail
MALFORMED_NAME_POLICY: str = _get_env_str("MAPFOLD_MALFORMED_NAMES", "warn")

#: VIPS internal concurrency (threads); compositions already run in parallel
VIPS_CONCURRENCY: str = _get_env_str("MAPFOLD_VIPS_CONCURRENCY", "1")

#: Side of a generated placeholder tile
PLACEHOLDER_TILE_SIZE: int = 1024

#: Colour of a generated placeholder tile (black RGB)
PLACEHOLDER_COLOR: tuple[int, int, int] = (0, 0, 0)


# =============================================================================
# Capture (external renderer)
# =============================================================================

#: Marker file the renderer writes with the number of leaf tiles it will produce
CAPTURE_MARKER_NAME: str = "rendered-tiles"

#: Seconds to wait for the renderer to start before polling for the marker
CAPTURE_STARTUP_DELAY: float = _get_env_float("MAPFOLD_CAPTURE_STARTUP_DELAY", 15.0)

#: Seconds between polls of the marker and the leaf tile directory
CAPTURE_POLL_INTERVAL: float = _get_env_float("MAPFOLD_CAPTURE_POLL_INTERVAL", 1.0)


# =============================================================================
# Validation
# =============================================================================

_MALFORMED_NAME_POLICIES = ("ignore", "warn", "fail")


def _validate_config() -> None:
    """Validate configuration values and log warnings for out-of-range settings."""
    global MAX_IN_FLIGHT, WORKER_THREADS, MAX_TILE_SIZE, JPEG_QUALITY
    global MALFORMED_NAME_POLICY, MAX_ZOOM

    if MAX_IN_FLIGHT < 1:
        logger.warning("MAX_IN_FLIGHT=%d is too low, clamping to 1", MAX_IN_FLIGHT)
        MAX_IN_FLIGHT = 1

    if WORKER_THREADS < 1:
        logger.warning("WORKER_THREADS=%d is too low, clamping to 1", WORKER_THREADS)
        WORKER_THREADS = 1

    if MAX_TILE_SIZE < 1:
        logger.warning("MAX_TILE_SIZE=%d is too low, clamping to 1", MAX_TILE_SIZE)
        MAX_TILE_SIZE = 1

    if not 1 <= JPEG_QUALITY <= 100:
        clamped = min(max(JPEG_QUALITY, 1), 100)
        logger.warning(
            "JPEG_QUALITY=%d is out of range, clamping to %d", JPEG_QUALITY, clamped
        )
        JPEG_QUALITY = clamped

    if MAX_ZOOM < 1:
        logger.warning("MAX_ZOOM=%d is too low, clamping to 1", MAX_ZOOM)
        MAX_ZOOM = 1

    MALFORMED_NAME_POLICY = MALFORMED_NAME_POLICY.lower()
    if MALFORMED_NAME_POLICY not in _MALFORMED_NAME_POLICIES:
        logger.warning(
            "MALFORMED_NAME_POLICY=%r is unknown, using 'warn'", MALFORMED_NAME_POLICY
        )
        MALFORMED_NAME_POLICY = "warn"


_validate_config()
