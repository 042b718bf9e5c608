"""Viewer state and playback as explicit values.

ViewState is immutable; every transition returns a new value. Playback is
driven by a caller-side loop that feeds wall-clock timestamps to a
PlaybackClock, which turns them into ``advance`` calls. Playback only reads
the recording length; it never touches decoded data or the event store.
"""
from __future__ import annotations

import attrs
from attrs import field, frozen
from loguru import logger

from eeg_review_lab.config.settings import ViewConfig
from eeg_review_lab.core.data_models import AnnotationEvent


def _validate_nonnegative(instance, attribute, value):
    if value < 0:
        raise ValueError(f"{attribute.name} must be >= 0, got {value}")


def _validate_positive(instance, attribute, value):
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


@frozen
class ViewState:
    """Cursor position, window length, play flag and selection."""

    current_time: float = field(default=0.0, converter=float, validator=_validate_nonnegative)
    window_size: float = field(factory=lambda: ViewConfig().window_size, converter=float, validator=_validate_positive)
    is_playing: bool = field(default=False)
    selected_event_id: str | None = field(default=None)

    @classmethod
    def from_config(cls, view: ViewConfig) -> ViewState:
        """Initial state using the configured window length."""
        return cls(window_size=view.window_size)

    @property
    def window_end(self) -> float:
        return self.current_time + self.window_size


def max_start(state: ViewState, total_duration: float) -> float:
    """Latest cursor position that still shows a full window."""
    return max(0.0, total_duration - state.window_size)


def play(state: ViewState) -> ViewState:
    return attrs.evolve(state, is_playing=True)


def pause(state: ViewState) -> ViewState:
    return attrs.evolve(state, is_playing=False)


def toggle_play(state: ViewState) -> ViewState:
    return attrs.evolve(state, is_playing=not state.is_playing)


def seek(state: ViewState, time: float, total_duration: float) -> ViewState:
    """Move the cursor, clamped to ``[0, total_duration - window_size]``."""
    clamped = min(max(float(time), 0.0), max_start(state, total_duration))
    return attrs.evolve(state, current_time=clamped)


def skip(
    state: ViewState,
    total_duration: float,
    forward: bool = True,
    view: ViewConfig | None = None,
) -> ViewState:
    """Jump forward or back by the configured skip step."""
    step = (view or ViewConfig()).skip_seconds
    return seek(state, state.current_time + (step if forward else -step), total_duration)


def set_window_size(state: ViewState, window_size: float, total_duration: float) -> ViewState:
    """Change the window length, re-clamping the cursor."""
    resized = attrs.evolve(state, window_size=window_size)
    return seek(resized, resized.current_time, total_duration)


def focus_event(state: ViewState, event: AnnotationEvent, total_duration: float) -> ViewState:
    """Select an event and park the cursor one second before it, paused."""
    moved = seek(state, event.start - 1.0, total_duration)
    return attrs.evolve(moved, is_playing=False, selected_event_id=event.event_id)


def clear_selection(state: ViewState) -> ViewState:
    return attrs.evolve(state, selected_event_id=None)


def advance(state: ViewState, elapsed: float, total_duration: float) -> ViewState:
    """Advance the cursor by ``elapsed`` seconds while playing.

    When the next position would run past the last full window, playback
    stops and the cursor stays where it was.
    """
    if not state.is_playing or elapsed <= 0:
        return state
    next_time = state.current_time + elapsed
    if next_time > total_duration - state.window_size:
        logger.debug(f"Playback reached end of recording at {state.current_time:.2f}s")
        return attrs.evolve(state, is_playing=False)
    return attrs.evolve(state, current_time=next_time)


class PlaybackClock:
    """Turns scheduler ticks into ``advance`` calls.

    The first tick after ``start()`` only records the timestamp. After
    ``stop()`` ticks leave the state unchanged, so a tick already queued by
    the scheduler cannot move the cursor once playback is cancelled.
    """

    def __init__(self, total_duration: float):
        self.total_duration = float(total_duration)
        self._last_timestamp: float | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True
        self._last_timestamp = None

    def stop(self) -> None:
        self._running = False
        self._last_timestamp = None

    def tick(self, state: ViewState, timestamp: float) -> ViewState:
        """Advance ``state`` by the wall-clock time since the previous tick.

        Args:
            state: Current view state
            timestamp: Monotonic clock reading in seconds

        Returns:
            Updated view state; the clock stops itself when playback ends
        """
        if not self._running or not state.is_playing:
            return state
        if self._last_timestamp is None:
            self._last_timestamp = timestamp
            return state

        elapsed = timestamp - self._last_timestamp
        self._last_timestamp = timestamp
        updated = advance(state, elapsed, self.total_duration)
        if not updated.is_playing:
            self.stop()
        return updated
