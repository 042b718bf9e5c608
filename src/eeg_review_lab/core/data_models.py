"""Data models for decoded EEG recordings and their annotations.

Uses attrs with validators for type-safe, validated data containers.
Decoded recordings and annotation events are frozen; edits produce new
event instances via ``attrs.evolve``.
"""
from __future__ import annotations

import math

import attrs
import numpy as np
from attrs import define, field, frozen

from eeg_review_lab.core.timecodes import parse_clock_time

# Label used by EDF+ for the embedded annotation pseudo-channel
ANNOTATION_CHANNEL_LABEL = "EDF Annotations"

DEFAULT_EVENT_LABEL = "Unspecified"
DEFAULT_CLASSIFICATION = "abnormal"


def _validate_positive(instance, attribute, value):
    """Validator: ensure value is positive."""
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


def _validate_positive_or_zero(instance, attribute, value):
    """Validator: ensure value is positive or zero."""
    if value < 0:
        raise ValueError(f"{attribute.name} must be >= 0, got {value}")


def _validate_finite(instance, attribute, value):
    """Validator: reject NaN and infinities."""
    if not math.isfinite(value):
        raise ValueError(f"{attribute.name} must be finite, got {value}")


@frozen
class RecordingHeader:
    """Fixed 256-byte header of a recording file."""

    version: str = field(validator=attrs.validators.instance_of(str))
    subject_id: str = field(validator=attrs.validators.instance_of(str))
    recording_id: str = field(validator=attrs.validators.instance_of(str))
    start_date: str = field(validator=attrs.validators.instance_of(str))
    start_time: str = field(validator=attrs.validators.instance_of(str))
    header_bytes: int = field(validator=[attrs.validators.instance_of(int), _validate_positive])
    num_data_records: int = field(validator=[attrs.validators.instance_of(int), _validate_positive_or_zero])
    record_duration: float = field(validator=[attrs.validators.instance_of(float), _validate_positive])
    num_channels: int = field(validator=[attrs.validators.instance_of(int), _validate_positive_or_zero])
    reserved: str = field(default="", validator=attrs.validators.instance_of(str))


@frozen
class ChannelDescriptor:
    """Per-channel metadata with physical/digital calibration ranges."""

    label: str = field(validator=attrs.validators.instance_of(str))
    transducer: str = field(validator=attrs.validators.instance_of(str))
    physical_unit: str = field(validator=attrs.validators.instance_of(str))
    physical_min: float = field(validator=[attrs.validators.instance_of(float), _validate_finite])
    physical_max: float = field(validator=[attrs.validators.instance_of(float), _validate_finite])
    digital_min: float = field(validator=[attrs.validators.instance_of(float), _validate_finite])
    digital_max: float = field(validator=[attrs.validators.instance_of(float), _validate_finite])
    prefiltering: str = field(validator=attrs.validators.instance_of(str))
    samples_per_record: int = field(validator=[attrs.validators.instance_of(int), _validate_positive_or_zero])

    def __attrs_post_init__(self):
        """Reject a degenerate digital range (calibration would divide by zero)."""
        if self.digital_max == self.digital_min:
            raise ValueError(
                f"Channel '{self.label}': digital_max equals digital_min ({self.digital_min})"
            )

    @property
    def scale(self) -> float:
        """Physical units per digital step."""
        return (self.physical_max - self.physical_min) / (self.digital_max - self.digital_min)

    @property
    def bias(self) -> float:
        """Physical value corresponding to digital zero."""
        return self.physical_min - self.digital_min * self.scale

    def sample_rate(self, record_duration: float) -> float:
        """Samples per second given the recording's record duration."""
        return self.samples_per_record / record_duration


@frozen(eq=False)
class ParsedRecording:
    """Decoded recording: header, channel descriptors and calibrated samples.

    ``samples[i]`` belongs to ``channels[i]``. Sample arrays are read-only;
    a new load replaces the whole value.
    """

    header: RecordingHeader = field(validator=attrs.validators.instance_of(RecordingHeader))
    channels: tuple[ChannelDescriptor, ...] = field(converter=tuple)
    samples: tuple[np.ndarray, ...] = field(converter=tuple)

    def __attrs_post_init__(self):
        """Validate one sample array per channel with the declared length."""
        if len(self.channels) != len(self.samples):
            raise ValueError(
                f"channels ({len(self.channels)}) and samples ({len(self.samples)}) must have same length"
            )
        for channel, data in zip(self.channels, self.samples):
            expected = self.header.num_data_records * channel.samples_per_record
            if data.ndim != 1 or len(data) != expected:
                raise ValueError(
                    f"Channel '{channel.label}' expected {expected} samples, got shape {data.shape}"
                )

    @property
    def total_duration(self) -> float:
        """Recording length in seconds."""
        return self.header.num_data_records * self.header.record_duration

    @property
    def num_channels(self) -> int:
        return len(self.channels)

    @property
    def labels(self) -> list[str]:
        return [ch.label for ch in self.channels]

    def display_channels(
        self, excluded: tuple[str, ...] | list[str] = (ANNOTATION_CHANNEL_LABEL,)
    ) -> list[ChannelDescriptor]:
        """Channels that carry waveform data, in declared order.

        Args:
            excluded: Labels to hide (compared case-insensitively)

        Returns:
            List of ChannelDescriptor
        """
        hidden = {label.strip().lower() for label in excluded}
        return [ch for ch in self.channels if ch.label.strip().lower() not in hidden]

    def channel_index(self, label: str) -> int | None:
        """Index of the first channel with this label, or None."""
        for i, channel in enumerate(self.channels):
            if channel.label == label:
                return i
        return None

    def samples_for(self, label: str) -> np.ndarray | None:
        """Calibrated samples for a channel label, or None if absent."""
        index = self.channel_index(label)
        if index is None:
            return None
        return self.samples[index]

    def sample_rate(self, label: str) -> float | None:
        """Sampling rate of a channel in Hz, or None if absent."""
        index = self.channel_index(label)
        if index is None:
            return None
        return self.channels[index].sample_rate(self.header.record_duration)

    def window(self, label: str, start: float, end: float) -> np.ndarray:
        """Calibrated samples of one channel between two times in seconds.

        The slice covers ``[floor(start * sr), ceil(end * sr))`` clipped to the
        channel length. Unknown labels yield an empty array.
        """
        data = self.samples_for(label)
        if data is None:
            return np.array([], dtype=np.float64)
        rate = self.sample_rate(label)
        first = max(0, int(math.floor(start * rate)))
        last = min(len(data), int(math.ceil(end * rate)))
        if last <= first:
            return data[0:0]
        return data[first:last]


@frozen
class DetectionRegion:
    """Sub-event detail: provenance of an event from a detector or a manual draw."""

    confidence: float = field(converter=float)
    start: float = field(converter=float)
    end: float = field(converter=float)

    @confidence.validator
    def _check_confidence(self, attribute, value):
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {value}")


@frozen
class AnnotationEvent:
    """One time-coded finding on a single channel.

    Times are seconds relative to the recording start. Range limits against
    the recording length are applied by the EventStore, not here.
    """

    event_id: str = field(validator=attrs.validators.instance_of(str))
    channel: str = field(validator=attrs.validators.instance_of(str))
    start: float = field(converter=float, validator=_validate_finite)
    end: float = field(converter=float, validator=_validate_finite)
    label: str = field(default=DEFAULT_EVENT_LABEL, validator=attrs.validators.instance_of(str))
    classification: str = field(default=DEFAULT_CLASSIFICATION, validator=attrs.validators.instance_of(str))
    regions: tuple[DetectionRegion, ...] = field(factory=tuple, converter=tuple)

    def __attrs_post_init__(self):
        """Validate ordering and identifier."""
        if not self.event_id:
            raise ValueError("event_id must be non-empty")
        if self.start > self.end:
            raise ValueError(f"start ({self.start}) must be <= end ({self.end})")

    @classmethod
    def manual(
        cls,
        event_id: str,
        channel: str,
        start: float,
        end: float,
        label: str = DEFAULT_EVENT_LABEL,
        classification: str = DEFAULT_CLASSIFICATION,
    ) -> AnnotationEvent:
        """Create an event with a single full-confidence sub-event covering it."""
        return cls(
            event_id=event_id,
            channel=channel,
            start=start,
            end=end,
            label=label,
            classification=classification,
            regions=(DetectionRegion(confidence=1.0, start=start, end=end),),
        )

    @property
    def duration(self) -> float:
        """Event length in seconds."""
        return self.end - self.start

    @property
    def max_confidence(self) -> float:
        """Highest sub-event confidence (1.0 when no detail is attached)."""
        if not self.regions:
            return 1.0
        return max(region.confidence for region in self.regions)


@define
class RecordingMetadata:
    """File-level facts stated once in the annotation table's first data row."""

    gender: str = field(default="", validator=attrs.validators.instance_of(str))
    age: str = field(default="", validator=attrs.validators.instance_of(str))
    file_start: str = field(default="", validator=attrs.validators.instance_of(str))

    @property
    def is_empty(self) -> bool:
        return not (self.gender or self.age or self.file_start)

    @property
    def file_start_seconds(self) -> float:
        """Absolute clock time of the recording start in seconds (0 when unset)."""
        if not self.file_start:
            return 0.0
        return parse_clock_time(self.file_start)
