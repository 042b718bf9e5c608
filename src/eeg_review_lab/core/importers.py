"""Annotation table import.

The annotation table is comma-separated text with a header row and data rows
of seven columns::

    Gender, Age, File Start, Start time, End time, Channel names, Comment

The first data row states the file-level metadata (gender, age and the
absolute clock time at which the recording starts); later rows leave those
columns blank or repeat them, and they are ignored. Row times are absolute
clock times and are converted to seconds relative to the file start.

Each row fans out to one AnnotationEvent per space-separated channel name.
Malformed rows are skipped with a warning, never fatal to the file.
"""
from __future__ import annotations

import csv
import io
from pathlib import Path

import pandas as pd
from loguru import logger

from eeg_review_lab.core.data_models import (
    DEFAULT_CLASSIFICATION,
    AnnotationEvent,
    DetectionRegion,
    RecordingMetadata,
)
from eeg_review_lab.core.timecodes import parse_clock_time

TABLE_COLUMNS = ["gender", "age", "file_start", "start_time", "end_time", "channels", "comment"]

# Label applied when a row carries no comment
IMPORTED_EVENT_LABEL = "Detected"
_METADATA_PLACEHOLDER = "Unknown"
_FILE_START_PLACEHOLDER = "00:00:00"


class AnnotationRowError(ValueError):
    """A data row that cannot be turned into events."""


def _normalize_fields(fields: list[str]) -> list[str]:
    """Pad short rows and fold surplus fields back into the comment column."""
    width = len(TABLE_COLUMNS)
    # Trailing delimiters
    while len(fields) > width and not fields[-1].strip():
        fields = fields[:-1]
    if len(fields) > width:
        fields = fields[:width - 1] + [",".join(fields[width - 1:])]
    fields = [f.strip() for f in fields]
    return fields + [""] * (width - len(fields))


def _read_table(text: str) -> pd.DataFrame:
    """Read the table body (header row dropped) as a frame of stripped strings.

    Rows are ragged in practice, so they are tokenized with the csv module
    and normalized to the seven table columns before building the frame.
    """
    rows = [
        fields for fields in csv.reader(io.StringIO(text))
        if any(f.strip() for f in fields)
    ]
    body = [_normalize_fields(fields) for fields in rows[1:]]
    return pd.DataFrame(body, columns=TABLE_COLUMNS, dtype=str)


def _parse_metadata(row: pd.Series) -> RecordingMetadata:
    """Build RecordingMetadata from the first data row.

    Blank fields fall back to placeholders; an unparseable file start yields
    empty metadata.
    """
    file_start = row["file_start"] or _FILE_START_PLACEHOLDER
    try:
        parse_clock_time(file_start)
    except ValueError as e:
        logger.warning(f"First row has an invalid file start ({e}); metadata left empty")
        return RecordingMetadata()

    return RecordingMetadata(
        gender=row["gender"] or _METADATA_PLACEHOLDER,
        age=row["age"] or _METADATA_PLACEHOLDER,
        file_start=file_start,
    )


def parse_row(
    row: pd.Series, row_number: int, file_start_seconds: float
) -> list[AnnotationEvent]:
    """Turn one data row into per-channel events.

    Args:
        row: Table row with TABLE_COLUMNS
        row_number: 1-based data row number, used in identifiers
        file_start_seconds: Absolute recording start in seconds

    Returns:
        One AnnotationEvent per channel name, empty if the row lacks start,
        end or channels

    Raises:
        AnnotationRowError: If a time code is malformed or end precedes start
    """
    if not row["start_time"] or not row["end_time"] or not row["channels"]:
        return []

    try:
        start = parse_clock_time(row["start_time"]) - file_start_seconds
        end = parse_clock_time(row["end_time"]) - file_start_seconds
    except ValueError as e:
        raise AnnotationRowError(f"row {row_number}: {e}") from e

    if end < start:
        raise AnnotationRowError(f"row {row_number}: end time {row['end_time']} precedes start time {row['start_time']}")

    label = row["comment"] or IMPORTED_EVENT_LABEL
    return [
        AnnotationEvent(
            event_id=f"csv_evt_{row_number}_{index}",
            channel=channel,
            start=start,
            end=end,
            label=label,
            classification=DEFAULT_CLASSIFICATION,
            regions=(DetectionRegion(confidence=1.0, start=start, end=end),),
        )
        for index, channel in enumerate(row["channels"].split())
    ]


def parse_annotations(text: str) -> tuple[list[AnnotationEvent], RecordingMetadata]:
    """Parse annotation table text into events and file-level metadata.

    Args:
        text: Full text of the annotation table

    Returns:
        Tuple of (events sorted by relative start time, metadata)
    """
    df = _read_table(text)
    if df.empty:
        logger.warning("Annotation table has no data rows")
        return [], RecordingMetadata()

    metadata = _parse_metadata(df.iloc[0])
    file_start_seconds = metadata.file_start_seconds

    events: list[AnnotationEvent] = []
    skipped = 0
    for row_number, (_, row) in enumerate(df.iterrows(), start=1):
        try:
            events.extend(parse_row(row, row_number, file_start_seconds))
        except AnnotationRowError as e:
            skipped += 1
            logger.warning(f"Skipping malformed annotation {e}")

    events.sort(key=lambda ev: ev.start)
    logger.info(
        f"Parsed {len(events)} events from {len(df)} rows "
        f"({skipped} skipped, file start {metadata.file_start or 'unset'})"
    )
    return events, metadata


def load_annotations_csv(path: Path | str) -> tuple[list[AnnotationEvent], RecordingMetadata]:
    """Load an annotation table from disk.

    Raises:
        FileNotFoundError: If path does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Annotation file not found: {path}")

    logger.info(f"Loading annotations: {path}")
    return parse_annotations(path.read_text(encoding="utf-8-sig"))
