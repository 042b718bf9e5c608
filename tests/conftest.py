"""Shared fixtures: synthetic recordings and annotation tables."""
from __future__ import annotations

import numpy as np
import pytest

DEFAULT_CHANNEL = {
    "label": "FP1",
    "transducer": "AgAgCl electrode",
    "physical_unit": "uV",
    "physical_min": -200,
    "physical_max": 200,
    "digital_min": -2048,
    "digital_max": 2047,
    "prefiltering": "HP:0.1Hz LP:75Hz",
    "samples_per_record": 4,
}


def _ascii(value, width: int) -> bytes:
    text = str(value)
    if len(text) > width:
        raise ValueError(f"{text!r} does not fit in {width} bytes")
    return text.ljust(width).encode("ascii")


def build_recording_bytes(
    channels: list[dict],
    data: list[np.ndarray],
    record_duration: float | str = 1,
    num_records: int | str | None = None,
    header_bytes: int | str | None = None,
    start_date: str = "01.02.24",
    start_time: str = "10.00.00",
) -> bytes:
    """Assemble a recording file from channel dicts and per-channel digital samples.

    ``data[i]`` holds all samples of channel ``i`` (num_records * samples_per_record).
    """
    channels = [{**DEFAULT_CHANNEL, **ch} for ch in channels]
    ns = len(channels)
    if num_records is None:
        spr = int(channels[0]["samples_per_record"]) if channels else 1
        num_records = len(data[0]) // spr if channels and spr else 0
    if header_bytes is None:
        header_bytes = 256 + 256 * ns

    header = b"".join([
        _ascii("0", 8),
        _ascii("X F 01-JAN-1980 Subject", 80),
        _ascii("Startdate 01-FEB-2024 EEG01", 80),
        _ascii(start_date, 8),
        _ascii(start_time, 8),
        _ascii(header_bytes, 8),
        _ascii("", 44),
        _ascii(num_records, 8),
        _ascii(record_duration, 8),
        _ascii(ns, 4),
    ])

    widths = [
        ("label", 16), ("transducer", 80), ("physical_unit", 8),
        ("physical_min", 8), ("physical_max", 8), ("digital_min", 8), ("digital_max", 8),
        ("prefiltering", 80), ("samples_per_record", 8),
    ]
    channel_header = b"".join(
        _ascii(ch[name], width) for name, width in widths for ch in channels
    ) + b" " * (32 * ns)

    body = b""
    if channels:
        n_records = int(num_records)
        for r in range(n_records):
            for ch, samples in zip(channels, data):
                spr = int(ch["samples_per_record"])
                body += np.asarray(samples[r * spr:(r + 1) * spr], dtype="<i2").tobytes()

    return header + channel_header + body


@pytest.fixture
def recording_builder():
    """Expose build_recording_bytes to tests."""
    return build_recording_bytes


@pytest.fixture
def two_channel_bytes():
    """Three 1-second records: FP1 at 4 Hz and FP2 at 2 Hz with distinct calibrations."""
    channels = [
        {"label": "FP1", "samples_per_record": 4},
        {
            "label": "FP2",
            "samples_per_record": 2,
            "physical_min": 0,
            "physical_max": 100,
            "digital_min": 0,
            "digital_max": 1000,
        },
    ]
    data = [
        np.array([0, 1, 2, 3, 10, 11, 12, 13, 20, 21, 22, 23]),
        np.array([100, 200, 300, 400, 500, 600]),
    ]
    return build_recording_bytes(channels, data)


@pytest.fixture
def annotation_table():
    """Annotation table with metadata in the first data row and a two-channel row."""
    return (
        "Gender,Age,File Start,Start time,End time,Channel names,Comment\n"
        "F,34,10:00:00,10:00:05,10:00:07:500,FP1,Spike\n"
        ",,,10:00:01,10:00:02,FP1 FP2,Seizure\n"
        ",,,10:00:10:250,10:00:12,F3,\n"
    )
