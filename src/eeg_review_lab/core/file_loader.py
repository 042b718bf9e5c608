"""Recording file loading with Protocol-based architecture for extensibility.

The recording format is a self-describing multi-channel layout:

- a fixed 256-byte ASCII header,
- nine per-channel field blocks (each holding one fixed-width field for every
  channel in channel order) followed by a 32-byte reserved tail per channel,
- ``num_data_records`` data records of little-endian int16 samples, where each
  record holds ``samples_per_record`` contiguous samples for every channel in
  declared order.

Decoding is a pure function of the input bytes. Every failure is reported as
a single FormatError carrying the byte offset of the offending field.
"""
from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Protocol

import numpy as np
from loguru import logger

from eeg_review_lab.config.settings import PathConfig
from eeg_review_lab.core.data_models import ChannelDescriptor, ParsedRecording, RecordingHeader

HEADER_SIZE = 256
CHANNEL_HEADER_SIZE = 256
SAMPLE_DTYPE = np.dtype("<i2")

# (name, offset, width, kind) of the fixed header fields
_HEADER_FIELDS = (
    ("version", 0, 8, str),
    ("subject_id", 8, 80, str),
    ("recording_id", 88, 80, str),
    ("start_date", 168, 8, str),
    ("start_time", 176, 8, str),
    ("header_bytes", 184, 8, int),
    ("reserved", 192, 44, str),
    ("num_data_records", 236, 8, int),
    ("record_duration", 244, 8, float),
    ("num_channels", 252, 4, int),
)

# (name, width, kind) of the per-channel blocks, in file order
_CHANNEL_FIELDS = (
    ("label", 16, str),
    ("transducer", 80, str),
    ("physical_unit", 8, str),
    ("physical_min", 8, float),
    ("physical_max", 8, float),
    ("digital_min", 8, float),
    ("digital_max", 8, float),
    ("prefiltering", 80, str),
    ("samples_per_record", 8, int),
)
_CHANNEL_RESERVED_WIDTH = 32

# Plain decimal text only: no exponents, digit separators, inf or nan
_INTEGER_PATTERN = re.compile(r"[+-]?\d+")
_DECIMAL_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


class FormatError(ValueError):
    """Malformed, truncated or uncalibratable recording bytes.

    Attributes:
        offset: Byte offset of the failing field (buffer length when truncated)
    """

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} (at byte offset {offset})")
        self.offset = offset


def _read_text(buffer: bytes, offset: int, width: int) -> str:
    """Read a right-padded ASCII field and strip the padding."""
    if offset + width > len(buffer):
        raise FormatError(f"Truncated field: need {width} bytes", offset=len(buffer))
    return buffer[offset:offset + width].decode("ascii", errors="replace").strip()


def _read_float(buffer: bytes, offset: int, width: int, name: str) -> float:
    text = _read_text(buffer, offset, width)
    if not _DECIMAL_PATTERN.fullmatch(text):
        raise FormatError(f"Non-numeric {name}: {text!r}", offset=offset)
    return float(text)


def _read_int(buffer: bytes, offset: int, width: int, name: str) -> int:
    text = _read_text(buffer, offset, width)
    if _INTEGER_PATTERN.fullmatch(text):
        return int(text)
    # Some writers emit integral fields as "256.0"
    value = _read_float(buffer, offset, width, name)
    if not value.is_integer():
        raise FormatError(f"Non-integer {name}: {text!r}", offset=offset)
    return int(value)


def _read_field(buffer: bytes, offset: int, width: int, kind: type, name: str):
    if kind is int:
        return _read_int(buffer, offset, width, name)
    if kind is float:
        return _read_float(buffer, offset, width, name)
    return _read_text(buffer, offset, width)


def _decode_header(buffer: bytes) -> RecordingHeader:
    """Parse and validate the fixed 256-byte header."""
    if len(buffer) < HEADER_SIZE:
        raise FormatError(
            f"Truncated header: {len(buffer)} of {HEADER_SIZE} bytes", offset=len(buffer)
        )

    values = {
        name: _read_field(buffer, offset, width, kind, name)
        for name, offset, width, kind in _HEADER_FIELDS
    }

    if values["num_data_records"] < 0:
        raise FormatError(
            f"Record count must be >= 0, got {values['num_data_records']}", offset=236
        )
    if values["record_duration"] <= 0:
        raise FormatError(
            f"Record duration must be positive, got {values['record_duration']}", offset=244
        )
    if values["num_channels"] < 0:
        raise FormatError(f"Channel count must be >= 0, got {values['num_channels']}", offset=252)

    expected_header_bytes = HEADER_SIZE + values["num_channels"] * CHANNEL_HEADER_SIZE
    if values["header_bytes"] < expected_header_bytes:
        raise FormatError(
            f"Declared header size {values['header_bytes']} is smaller than the "
            f"{expected_header_bytes} bytes required for {values['num_channels']} channels",
            offset=184,
        )

    return RecordingHeader(**values)


def _decode_channels(buffer: bytes, num_channels: int) -> list[ChannelDescriptor]:
    """Parse the per-channel field blocks that follow the fixed header."""
    end = HEADER_SIZE + num_channels * CHANNEL_HEADER_SIZE
    if len(buffer) < end:
        raise FormatError(
            f"Truncated channel header: {len(buffer)} of {end} bytes", offset=len(buffer)
        )

    columns: dict[str, list] = {}
    field_offsets: dict[str, int] = {}
    cursor = HEADER_SIZE
    for name, width, kind in _CHANNEL_FIELDS:
        field_offsets[name] = cursor
        columns[name] = [
            _read_field(buffer, cursor + i * width, width, kind, f"{name} of channel {i}")
            for i in range(num_channels)
        ]
        cursor += num_channels * width
    # Reserved tail is skipped
    cursor += num_channels * _CHANNEL_RESERVED_WIDTH

    channels = []
    for i in range(num_channels):
        if columns["samples_per_record"][i] < 0:
            raise FormatError(
                f"Channel {i}: samples per record must be >= 0",
                offset=field_offsets["samples_per_record"] + i * 8,
            )
        if columns["digital_max"][i] == columns["digital_min"][i]:
            raise FormatError(
                f"Channel {i} ('{columns['label'][i]}'): digital max equals digital min "
                f"({columns['digital_min'][i]}), cannot calibrate",
                offset=field_offsets["digital_max"] + i * 8,
            )
        channels.append(ChannelDescriptor(**{name: columns[name][i] for name, _, _ in _CHANNEL_FIELDS}))

    labels = [ch.label for ch in channels]
    duplicates = sorted({label for label in labels if labels.count(label) > 1})
    if duplicates:
        logger.warning(f"Duplicate channel labels {duplicates}; lookups use the first match")

    return channels


def _decode_samples(
    buffer: bytes, header: RecordingHeader, channels: list[ChannelDescriptor]
) -> list[np.ndarray]:
    """Demultiplex the record region into calibrated per-channel arrays.

    Each record holds, for every channel in order, ``samples_per_record``
    contiguous int16 samples. Viewing the region as a (records x samples per
    record) matrix puts each channel in a fixed column range; flattening that
    range row by row yields sample ``record * samples_per_record + k``.
    """
    per_record = sum(ch.samples_per_record for ch in channels)
    n_records = header.num_data_records
    required = header.header_bytes + n_records * per_record * SAMPLE_DTYPE.itemsize
    if len(buffer) < required:
        raise FormatError(
            f"Truncated sample data: {len(buffer)} of {required} bytes", offset=len(buffer)
        )

    if n_records * per_record == 0:
        raw = np.zeros((n_records, per_record), dtype=SAMPLE_DTYPE)
    else:
        raw = np.frombuffer(
            buffer, dtype=SAMPLE_DTYPE, count=n_records * per_record, offset=header.header_bytes
        ).reshape(n_records, per_record)

    samples = []
    column = 0
    for channel in channels:
        block = raw[:, column:column + channel.samples_per_record]
        column += channel.samples_per_record
        # Scale and bias computed once per channel
        scale = channel.scale
        bias = channel.bias
        physical = block.reshape(-1).astype(np.float64) * scale + bias
        physical.setflags(write=False)
        samples.append(physical)

    trailing = len(buffer) - required
    if trailing:
        logger.debug(f"Ignoring {trailing} trailing bytes after the last data record")
    return samples


def decode_recording(data: bytes | bytearray | memoryview) -> ParsedRecording:
    """Decode recording bytes into calibrated per-channel samples.

    Args:
        data: Entire recording file contents

    Returns:
        ParsedRecording with header, channel descriptors and calibrated samples

    Raises:
        FormatError: If the header or channel blocks are malformed, the data is
            truncated, or a channel has digital_max == digital_min
    """
    buffer = bytes(data)
    header = _decode_header(buffer)
    channels = _decode_channels(buffer, header.num_channels)
    samples = _decode_samples(buffer, header, channels)

    recording = ParsedRecording(header=header, channels=channels, samples=samples)
    logger.info(
        f"Decoded recording: {recording.num_channels} channels, "
        f"{header.num_data_records} records x {header.record_duration}s "
        f"({recording.total_duration:.1f}s total)"
    )
    return recording


async def read_file_bytes(path: Path | str) -> bytes:
    """Read a whole file off the event loop.

    This is the only suspension point of a load: it yields once with the full
    buffer or raises the read failure.
    """
    return await asyncio.to_thread(Path(path).read_bytes)


class FileLoader(Protocol):
    """Protocol for recording loaders.

    Implementing classes must provide can_load() and load() methods.
    """

    def can_load(self, path: Path) -> bool:
        """Check if this loader can handle the given file.

        Args:
            path: Path to file

        Returns:
            True if this loader can handle the file
        """
        ...

    def load(self, path: Path) -> ParsedRecording:
        """Load file and return ParsedRecording.

        Args:
            path: Path to file

        Returns:
            ParsedRecording with decoded channels

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is invalid
        """
        ...


class EdfLoader:
    """Loader for fixed-layout EEG recordings (.edf)."""

    def __init__(self, extensions: tuple[str, ...] | list[str] | None = None):
        """Initialize loader.

        Args:
            extensions: Accepted file suffixes (case-insensitive), defaults to
                PathConfig.recording_extensions
        """
        if extensions is None:
            extensions = PathConfig().recording_extensions
        self.extensions = tuple(ext.lower() for ext in extensions)

    def can_load(self, path: Path) -> bool:
        """Check if file has a recording extension."""
        return Path(path).suffix.lower() in self.extensions

    def _validate_path(self, path: Path | str) -> Path:
        # Layered validation: type → exists → format
        if not isinstance(path, Path):
            try:
                path = Path(path)
            except TypeError:
                raise TypeError(f"path must be a Path object or string, got {type(path).__name__}") from None

        if not path.exists():
            raise FileNotFoundError(f"Recording file not found: {path}")

        if not path.is_file():
            raise ValueError(f"Path is not a file: {path}")

        if not self.can_load(path):
            raise ValueError(
                f"Invalid file extension, expected one of {self.extensions}, got {path.suffix}"
            )
        return path

    def load(self, path: Path | str) -> ParsedRecording:
        """Load and decode a recording file.

        Args:
            path: Path to recording file

        Returns:
            ParsedRecording

        Raises:
            FileNotFoundError: If file doesn't exist
            FormatError: If the contents cannot be decoded
        """
        path = self._validate_path(path)
        logger.info(f"Loading recording: {path}")
        return decode_recording(path.read_bytes())

    async def load_async(self, path: Path | str) -> ParsedRecording:
        """Async variant of load(); the file read is the only await."""
        path = self._validate_path(path)
        logger.info(f"Loading recording: {path}")
        data = await read_file_bytes(path)
        return decode_recording(data)


def get_loader(path: Path, config: PathConfig | None = None) -> FileLoader:
    """Get appropriate file loader for the given path.

    Args:
        path: Path to file
        config: Path settings supplying the accepted recording extensions

    Returns:
        FileLoader instance

    Raises:
        ValueError: If no loader can handle the file

    Example:
        >>> loader = get_loader(Path("night.edf"))
        >>> recording = loader.load(Path("night.edf"))
    """
    path = Path(path)

    config = config or PathConfig()
    loaders = [EdfLoader(config.recording_extensions)]

    for loader in loaders:
        if loader.can_load(path):
            return loader

    raise ValueError(f"No loader available for file: {path}")
