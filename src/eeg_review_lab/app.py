"""EEGReviewLab command-line entry point.

Registered as the ``eeg-review`` console script in pyproject.toml.
"""
from __future__ import annotations

import sys
from pathlib import Path

import click
from loguru import logger

from eeg_review_lab.config.settings import AppConfig, get_config
from eeg_review_lab.core.data_models import ParsedRecording, RecordingMetadata
from eeg_review_lab.core.event_store import EventStore
from eeg_review_lab.core.exporter import export_filename, write_annotations
from eeg_review_lab.core.file_loader import FormatError, get_loader
from eeg_review_lab.core.importers import load_annotations_csv
from eeg_review_lab.core.timecodes import format_elapsed


def configure_logging(level: str = "INFO", log_file: str | None = "eeg_review_lab.log") -> None:
    """Install the stderr sink and, optionally, a rotating debug log file."""
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level,
    )
    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            retention="7 days",
            level="DEBUG",
        )


def load_review(
    recording_path: Path, table_path: Path, config: AppConfig | None = None
) -> tuple[ParsedRecording, EventStore, RecordingMetadata]:
    """Load a recording and its annotation table into a fresh event store.

    Events are clamped to the recording length on insertion.
    """
    config = config or AppConfig()
    recording = get_loader(recording_path, config.paths).load(recording_path)
    events, metadata = load_annotations_csv(table_path)
    store = EventStore(events, total_duration=recording.total_duration)

    known = set(recording.labels)
    unmatched = sorted({ev.channel for ev in store.all() if ev.channel not in known})
    if unmatched:
        logger.warning(f"Events reference channels not in the recording: {unmatched}")
    return recording, store, metadata


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug messages to stderr.")
@click.option("--no-log-file", is_flag=True, help="Do not write eeg_review_lab.log.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, no_log_file: bool) -> None:
    """Inspect EEG recordings and refine their annotation tables."""
    configure_logging("DEBUG" if verbose else "INFO", None if no_log_file else "eeg_review_lab.log")
    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        ctx.obj["config"] = get_config()


@cli.command()
@click.argument("recording", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def info(ctx: click.Context, recording: Path) -> None:
    """Print the header and channel table of RECORDING."""
    config: AppConfig = ctx.obj["config"]
    try:
        parsed = get_loader(recording, config.paths).load(recording)
    except (FormatError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    header = parsed.header
    click.echo(f"Subject:    {header.subject_id}")
    click.echo(f"Recording:  {header.recording_id}")
    click.echo(f"Start:      {header.start_date} {header.start_time}")
    click.echo(f"Records:    {header.num_data_records} x {header.record_duration}s")
    click.echo(f"Duration:   {format_elapsed(parsed.total_duration)}")
    click.echo(f"Channels:   {parsed.num_channels}")
    shown = {ch.label for ch in parsed.display_channels(config.view.excluded_channels)}
    for channel in parsed.channels:
        rate = channel.sample_rate(header.record_duration)
        hidden = "" if channel.label in shown else "  (hidden)"
        click.echo(
            f"  {channel.label:<16} {rate:>8.1f} Hz  {channel.physical_unit:<6} "
            f"[{channel.physical_min:g}, {channel.physical_max:g}]{hidden}"
        )


@cli.command()
@click.argument("table", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def events(table: Path) -> None:
    """List the per-channel events parsed from TABLE."""
    parsed, metadata = load_annotations_csv(table)
    click.echo(f"Gender: {metadata.gender or '-'}  Age: {metadata.age or '-'}  File start: {metadata.file_start or '-'}")
    for event in parsed:
        click.echo(
            f"{format_elapsed(event.start)} - {format_elapsed(event.end)}  "
            f"{event.channel:<8} {event.label}"
        )
    click.echo(f"{len(parsed)} events")


@cli.command()
@click.argument("recording", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("table", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir", "-o", type=click.Path(file_okay=False, path_type=Path), default=None,
    help="Directory for the refined table (defaults to the configured exports dir).",
)
@click.pass_context
def export(ctx: click.Context, recording: Path, table: Path, output_dir: Path | None) -> None:
    """Re-export TABLE against RECORDING as refined_<name>.csv."""
    config: AppConfig = ctx.obj["config"]
    try:
        _, store, metadata = load_review(recording, table, config)
    except (FormatError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    output_dir = output_dir or config.paths.get_exports_path()
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / export_filename(recording.name, prefix=config.paths.export_prefix)
    write_annotations(store.all(), metadata, output_path)
    click.echo(f"Wrote {len(store)} events to {output_path}")


def main() -> None:
    """Launch the EEGReviewLab command line."""
    cli(obj={})
