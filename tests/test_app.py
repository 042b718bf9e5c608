"""Tests for the command-line interface."""
import sys

import pytest
from click.testing import CliRunner
from loguru import logger

from eeg_review_lab.app import cli
from eeg_review_lab.config import AppConfig


@pytest.fixture(autouse=True)
def restore_logger():
    """The CLI swaps loguru sinks; put a plain stderr sink back afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def files(tmp_path, two_channel_bytes, annotation_table):
    recording = tmp_path / "night.edf"
    recording.write_bytes(two_channel_bytes)
    table = tmp_path / "night.csv"
    table.write_text(annotation_table)
    return recording, table


def invoke(runner, args):
    return runner.invoke(cli, ["--no-log-file", *args], obj={"config": AppConfig()})


class TestInfo:
    def test_info(self, runner, files):
        result = invoke(runner, ["info", str(files[0])])

        assert result.exit_code == 0, result.output
        assert "Channels:   2" in result.output
        assert "FP1" in result.output
        assert "Duration:   00:00:03" in result.output

    def test_info_marks_excluded_channels(self, runner, files):
        config = AppConfig()
        config.view.excluded_channels = ["fp2"]
        result = runner.invoke(cli, ["--no-log-file", "info", str(files[0])], obj={"config": config})

        assert result.exit_code == 0, result.output
        fp2_line = [line for line in result.output.splitlines() if line.strip().startswith("FP2")][0]
        assert fp2_line.endswith("(hidden)")
        assert "(hidden)" not in [line for line in result.output.splitlines() if line.strip().startswith("FP1")][0]

    def test_corrupt_recording(self, runner, tmp_path):
        path = tmp_path / "broken.edf"
        path.write_bytes(b"0" * 40)
        result = invoke(runner, ["info", str(path)])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_unsupported_extension(self, runner, tmp_path):
        path = tmp_path / "night.txt"
        path.write_text("x")
        result = invoke(runner, ["info", str(path)])

        assert result.exit_code == 1
        assert "No loader available" in result.output


class TestEvents:
    def test_events(self, runner, files):
        result = invoke(runner, ["events", str(files[1])])

        assert result.exit_code == 0, result.output
        assert "Gender: F  Age: 34  File start: 10:00:00" in result.output
        assert "4 events" in result.output


class TestExport:
    def test_export(self, runner, files, tmp_path):
        out_dir = tmp_path / "out"
        result = invoke(runner, ["export", str(files[0]), str(files[1]), "-o", str(out_dir)])

        assert result.exit_code == 0, result.output
        output = out_dir / "refined_night.csv"
        assert output.exists()
        assert "Wrote 4 events" in result.output

        lines = output.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "Gender,Age,File Start,Start time,End time,Channel names,Comment"
        assert len(lines) == 5

    def test_export_uses_configured_dir(self, runner, files, tmp_path):
        config = AppConfig()
        config.paths.exports_dir = str(tmp_path / "exports")
        result = runner.invoke(
            cli,
            ["--no-log-file", "export", str(files[0]), str(files[1])],
            obj={"config": config},
        )

        assert result.exit_code == 0, result.output
        assert (tmp_path / "exports" / "refined_night.csv").exists()
