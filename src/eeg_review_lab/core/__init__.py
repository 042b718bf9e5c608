"""Core data models, decoding, annotation import/export and event storage for EEGReviewLab."""

from .data_models import (
    AnnotationEvent,
    ChannelDescriptor,
    DetectionRegion,
    ParsedRecording,
    RecordingHeader,
    RecordingMetadata,
)
from .event_store import EventStore
from .exporter import export_annotations, export_filename, write_annotations
from .file_loader import EdfLoader, FormatError, decode_recording, get_loader, read_file_bytes
from .importers import AnnotationRowError, load_annotations_csv, parse_annotations
from .timecodes import format_clock_time, parse_clock_time

__all__ = [
    "RecordingHeader",
    "ChannelDescriptor",
    "ParsedRecording",
    "DetectionRegion",
    "AnnotationEvent",
    "RecordingMetadata",
    "EventStore",
    "FormatError",
    "decode_recording",
    "EdfLoader",
    "get_loader",
    "read_file_bytes",
    "AnnotationRowError",
    "parse_annotations",
    "load_annotations_csv",
    "export_annotations",
    "export_filename",
    "write_annotations",
    "parse_clock_time",
    "format_clock_time",
]
