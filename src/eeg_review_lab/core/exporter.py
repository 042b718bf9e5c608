"""Export the event store back to the annotation table format.

Relative event times are turned back into absolute clock time using the
file start from the annotation table's metadata. Only the first output row
carries gender, age and file start, mirroring how the table is read.
"""
from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pandas as pd
from loguru import logger

from eeg_review_lab.core.data_models import AnnotationEvent, RecordingMetadata
from eeg_review_lab.core.timecodes import format_clock_time

EXPORT_HEADER = ["Gender", "Age", "File Start", "Start time", "End time", "Channel names", "Comment"]
EXPORT_PREFIX = "refined_"


def to_absolute(relative_seconds: float, metadata: RecordingMetadata) -> str:
    """Render a recording-relative time as an absolute ``HH:MM:SS:mmm`` time code."""
    return format_clock_time(metadata.file_start_seconds + relative_seconds)


def build_export_frame(
    events: Iterable[AnnotationEvent], metadata: RecordingMetadata
) -> pd.DataFrame:
    """Build the export table, one row per event in the given order.

    Args:
        events: Events, normally ``EventStore.all()`` (time-sorted)
        metadata: File-level metadata from the imported table

    Returns:
        DataFrame with the EXPORT_HEADER columns
    """
    rows = []
    for index, event in enumerate(events):
        first = index == 0
        rows.append({
            "Gender": metadata.gender if first else "",
            "Age": metadata.age if first else "",
            "File Start": metadata.file_start if first else "",
            "Start time": to_absolute(event.start, metadata),
            "End time": to_absolute(event.end, metadata),
            "Channel names": event.channel,
            "Comment": event.label,
        })
    return pd.DataFrame(rows, columns=EXPORT_HEADER)


def export_annotations(
    events: Iterable[AnnotationEvent], metadata: RecordingMetadata
) -> str:
    """Serialize events to annotation table text.

    Args:
        events: Events in output order
        metadata: File-level metadata

    Returns:
        CSV text with the literal header row
    """
    df = build_export_frame(events, metadata)
    text = df.to_csv(index=False, lineterminator="\n")
    logger.debug(f"Serialized {len(df)} events to annotation table text")
    return text


def export_filename(recording_name: str | Path, prefix: str = EXPORT_PREFIX) -> str:
    """Output file name for a recording: ``refined_<base>.csv``.

    The base is the file name up to its first dot, so ``night.study.edf``
    becomes ``refined_night.csv``.

    Example:
        >>> export_filename("patient01.edf")
        'refined_patient01.csv'
    """
    return f"{prefix}{Path(recording_name).name.split('.')[0]}.csv"


def write_annotations(
    events: Iterable[AnnotationEvent],
    metadata: RecordingMetadata,
    output_path: Path | str,
) -> Path:
    """Write the annotation table to disk.

    Args:
        events: Events in output order
        metadata: File-level metadata
        output_path: Output CSV path

    Returns:
        Path to created file
    """
    output_path = Path(output_path)
    events = list(events)
    output_path.write_text(export_annotations(events, metadata), encoding="utf-8")

    if not events:
        logger.warning(f"No events to export; wrote header only to {output_path}")
    else:
        logger.info(f"Exported {len(events)} events to {output_path}")
    return output_path
