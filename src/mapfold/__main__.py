"""CLI entry point for mapfold."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from mapfold.config import (
    CAPTURE_POLL_INTERVAL,
    CAPTURE_STARTUP_DELAY,
    MALFORMED_NAME_POLICY,
    MAX_IN_FLIGHT,
    MAX_ZOOM,
    WORKER_THREADS,
)
from mapfold.core.types import LevelResult

logger = logging.getLogger(__name__)

from .capture import harvest_tiles, run_capture
from .pyramid import (
    MalformedNamePolicy,
    PyramidBuilder,
    ensure_placeholder,
    get_vips_import_error,
    is_vips_available,
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _check_prerequisites() -> None:
    """Check that pyvips is available.

    Exits the process with an error message if not.
    """
    if not is_vips_available():
        click.echo(click.style(
            f"Error: mapfold requires pyvips ({get_vips_import_error()}). "
            "Install it with: pip install \"pyvips[binary]\"",
            fg="red"
        ), err=True)
        sys.exit(1)


def _fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _print_summary(results: list[LevelResult]) -> None:
    """Print the per-level summary."""
    click.echo()
    click.echo(click.style("=" * 40, fg="cyan"))
    if not results:
        click.echo(click.style("Completed: ", bold=True) + "Nothing to build")
        return

    for result in results:
        click.echo(
            f"  Level {result.level}: "
            + click.style(f"{result.written} written", fg="green")
            + f", {result.skipped} blank"
        )
    coarsest = results[-1].level
    click.echo(
        click.style("Completed: ", bold=True)
        + f"{len(results)} level(s), coarsest zoom level {coarsest}"
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Fold quadtree leaf tiles into a multi-resolution map pyramid."""
    _setup_logging(verbose)


@main.command()
@click.argument(
    "workdir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option(
    "--placeholder",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Placeholder JPEG to copy in as empty.jpg (generated if absent)",
)
@click.option(
    "--finest-level",
    type=click.IntRange(0, None),
    default=None,
    help="Leaf zoom level (default: highest level directory under tiles/)",
)
@click.option(
    "--max-in-flight",
    type=click.IntRange(1, None),
    default=MAX_IN_FLIGHT,
    help=f"Compositions allowed at once (default: {MAX_IN_FLIGHT})",
)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(1, None),
    default=WORKER_THREADS,
    help=f"Worker threads per level (default: {WORKER_THREADS})",
)
@click.option(
    "--malformed-names",
    type=click.Choice([p.value for p in MalformedNamePolicy]),
    default=MALFORMED_NAME_POLICY,
    help="How to treat tile filenames that do not parse",
)
@click.option("--progress/--no-progress", default=True, help="Show progress bars")
def build(
    workdir: Path,
    placeholder: Path | None,
    finest_level: int | None,
    max_in_flight: int,
    workers: int,
    malformed_names: str,
    progress: bool,
) -> None:
    """Build every coarser zoom level in WORKDIR.

    WORKDIR must contain tiles/<z>/<x>x<y>.jpg for the leaf level. The
    placeholder is taken from --placeholder, an existing WORKDIR/empty.jpg,
    or generated as a black tile.

    Examples:

        # Build from the highest level on disk
        python -m mapfold build ./map/

        # Leaf tiles at level 9, fail on stray files
        python -m mapfold build ./map/ --finest-level 9 --malformed-names fail
    """
    _check_prerequisites()

    click.echo(click.style("mapfold pyramid build", fg="cyan", bold=True))
    click.echo(click.style("=" * 40, fg="cyan"))
    click.echo(f"Working directory: {workdir}")
    click.echo(f"Max in flight: {max_in_flight} | Workers: {workers}")
    click.echo()

    try:
        ensure_placeholder(workdir, source=placeholder)
        builder = PyramidBuilder(
            finest_level=finest_level,
            max_in_flight=max_in_flight,
            workers=workers,
            policy=MalformedNamePolicy(malformed_names),
            show_progress=progress,
        )
        results = builder.build(workdir)
    except (OSError, RuntimeError, ValueError) as e:
        logger.error("Pyramid build failed: %s", e)
        _fail(str(e))

    _print_summary(results)


@main.command()
@click.argument(
    "output_dir", type=click.Path(file_okay=False, path_type=Path)
)
@click.argument(
    "workdir", type=click.Path(file_okay=False, path_type=Path)
)
@click.argument("command", nargs=-1, required=True)
@click.option(
    "--leaf-level",
    type=click.IntRange(0, None),
    default=MAX_ZOOM,
    help=f"Level directory the renderer writes leaf tiles to (default: {MAX_ZOOM})",
)
@click.option(
    "--startup-delay",
    type=click.FloatRange(0, None),
    default=CAPTURE_STARTUP_DELAY,
    help=f"Seconds before the marker is first polled (default: {CAPTURE_STARTUP_DELAY:g})",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(0, None, min_open=True),
    default=CAPTURE_POLL_INTERVAL,
    help=f"Seconds between polls (default: {CAPTURE_POLL_INTERVAL:g})",
)
def capture(
    output_dir: Path,
    workdir: Path,
    command: tuple[str, ...],
    leaf_level: int,
    startup_delay: float,
    poll_interval: float,
) -> None:
    """Run a leaf-tile renderer, then copy its tiles into WORKDIR.

    COMMAND is run until OUTPUT_DIR/rendered-tiles names a count and that
    many files exist under OUTPUT_DIR/tiles/<leaf-level>/.

    Example:

        python -m mapfold capture ./script-output ./map -- ./render.sh --zoom 1
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    try:
        run_capture(
            command,
            output_dir,
            leaf_level=leaf_level,
            startup_delay=startup_delay,
            poll_interval=poll_interval,
        )
        copied = harvest_tiles(output_dir, workdir)
    except (OSError, RuntimeError) as e:
        logger.error("Capture failed: %s", e)
        _fail(str(e))

    click.echo(click.style(f"Captured {copied} tile(s) into {workdir}", fg="green"))


if __name__ == "__main__":
    main()
