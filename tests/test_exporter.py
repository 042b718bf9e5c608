"""Tests for annotation table export."""
import pytest

from eeg_review_lab.core import (
    AnnotationEvent,
    EventStore,
    RecordingMetadata,
    export_annotations,
    export_filename,
    parse_annotations,
    write_annotations,
)
from eeg_review_lab.core.exporter import build_export_frame, to_absolute

HEADER_LINE = "Gender,Age,File Start,Start time,End time,Channel names,Comment"


@pytest.fixture
def metadata():
    return RecordingMetadata(gender="F", age="34", file_start="10:00:00")


@pytest.fixture
def events():
    return [
        AnnotationEvent.manual("a", "FP1", 1.0, 2.0, label="Seizure"),
        AnnotationEvent.manual("b", "FP2", 1.0, 2.0, label="Seizure"),
        AnnotationEvent.manual("c", "F3", 5.25, 7.5, label="Spike"),
    ]


class TestExportAnnotations:
    def test_header_literal(self, events, metadata):
        text = export_annotations(events, metadata)
        assert text.splitlines()[0] == HEADER_LINE

    def test_metadata_on_first_row_only(self, events, metadata):
        lines = export_annotations(events, metadata).splitlines()

        assert lines[1].startswith("F,34,10:00:00,")
        for line in lines[2:]:
            assert line.startswith(",,,")

    def test_absolute_times(self, events, metadata):
        lines = export_annotations(events, metadata).splitlines()

        assert lines[1] == "F,34,10:00:00,10:00:01:000,10:00:02:000,FP1,Seizure"
        assert lines[3] == ",,,10:00:05:250,10:00:07:500,F3,Spike"

    def test_one_row_per_event_in_order(self, events, metadata):
        df = build_export_frame(events, metadata)

        assert len(df) == 3
        assert list(df["Channel names"]) == ["FP1", "FP2", "F3"]

    def test_empty_metadata_uses_zero_offset(self, events):
        lines = export_annotations(events, RecordingMetadata()).splitlines()
        assert lines[1] == ",,,00:00:01:000,00:00:02:000,FP1,Seizure"

    def test_comment_with_comma_quoted(self, metadata):
        event = AnnotationEvent.manual("a", "FP1", 1.0, 2.0, label="spike, then slowing")
        lines = export_annotations([event], metadata).splitlines()
        assert lines[1].endswith('"spike, then slowing"')

    def test_no_events(self, metadata):
        assert export_annotations([], metadata) == HEADER_LINE + "\n"

    def test_to_absolute(self, metadata):
        assert to_absolute(3723.5, metadata) == "11:02:03:500"


class TestExportFilename:
    def test_prefix_and_extension(self):
        assert export_filename("patient01.edf") == "refined_patient01.csv"

    def test_path_input(self, tmp_path):
        assert export_filename(tmp_path / "patient01.edf") == "refined_patient01.csv"

    def test_base_name_stops_at_first_dot(self, tmp_path):
        assert export_filename("night.study.edf") == "refined_night.csv"
        assert export_filename(tmp_path / "a.b.c.edf") == "refined_a.csv"

    def test_custom_prefix(self):
        assert export_filename("x.edf", prefix="reviewed_") == "reviewed_x.csv"


class TestWriteAnnotations:
    def test_write(self, events, metadata, tmp_path):
        output = write_annotations(events, metadata, tmp_path / "refined_patient01.csv")

        assert output.exists()
        assert output.read_text(encoding="utf-8").splitlines()[0] == HEADER_LINE


class TestRoundTrip:
    def test_export_then_reimport(self, annotation_table):
        """Exported tables parse back to the same per-channel events."""
        events, metadata = parse_annotations(annotation_table)
        store = EventStore(events)

        reparsed, remetadata = parse_annotations(export_annotations(store.all(), metadata))

        assert remetadata == metadata
        assert len(reparsed) == len(events)
        for original, again in zip(store.all(), reparsed):
            assert again.channel == original.channel
            assert again.label == original.label
            assert again.start == pytest.approx(original.start, abs=1e-3)
            assert again.end == pytest.approx(original.end, abs=1e-3)

    def test_sub_millisecond_times_round(self, metadata):
        event = AnnotationEvent.manual("a", "FP1", 1.2344, 2.0006)
        reparsed, _ = parse_annotations(export_annotations([event], metadata))

        assert reparsed[0].start == pytest.approx(1.234, abs=1e-9)
        assert reparsed[0].end == pytest.approx(2.001, abs=1e-9)
