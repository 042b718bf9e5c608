"""Interactive region editing: draw, refine, confirm or delete annotation events.

A RegionEditSession governs a single edit and moves through::

    IDLE -> DRAWING -> PENDING_COMMIT -> REFINING -> CONFIRMED | DELETED | CANCELLED

Selecting an existing event goes straight from IDLE to REFINING. The session
only ever receives times (seconds) and lane indices; mapping pixels to time
is the renderer's job. Newly drawn events live in the session until confirmed
and are never written to the store before that.

AnnotationEditor owns the at-most-one-active-session rule: gestures that would
start a second edit while one is in progress are ignored.
"""
from __future__ import annotations

from enum import Enum

import attrs
from loguru import logger

from eeg_review_lab.config.settings import AppConfig, EditingConfig
from eeg_review_lab.core.data_models import AnnotationEvent, DetectionRegion, ParsedRecording
from eeg_review_lab.core.event_store import EventStore


class EditState(Enum):
    """Region edit session states."""

    IDLE = "idle"
    DRAWING = "drawing"
    PENDING_COMMIT = "pending_commit"
    REFINING = "refining"
    CONFIRMED = "confirmed"
    DELETED = "deleted"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({EditState.CONFIRMED, EditState.DELETED, EditState.CANCELLED})
BUSY_STATES = frozenset({EditState.DRAWING, EditState.PENDING_COMMIT, EditState.REFINING})


class RegionEditSession:
    """State machine for one interactive edit of the event store."""

    def __init__(
        self,
        store: EventStore,
        channel_labels: list[str],
        total_duration: float,
        config: EditingConfig | None = None,
    ):
        """Initialize an idle session.

        Args:
            store: Event store the session commits to
            channel_labels: Labels of the displayed lanes, in lane order
            total_duration: Recording length in seconds
            config: Editing parameters (defaults if None)
        """
        self.store = store
        self.channel_labels = list(channel_labels)
        self.total_duration = float(total_duration)
        self.config = config or EditingConfig()

        self.state = EditState.IDLE

        # Drawing
        self.anchor_channel: int | None = None
        self.anchor_time: float | None = None
        self.current_channel: int | None = None
        self.current_time: float | None = None

        # Refining
        self.group: list[AnnotationEvent] = []
        self.is_new_group = False
        self.refined_start = 0.0
        self.refined_end = 0.0
        self.view_start = 0.0
        self.view_end = 0.0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_terminated(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_busy(self) -> bool:
        """True while a draw or refinement is in progress."""
        return self.state in BUSY_STATES

    @property
    def candidate_channels(self) -> tuple[int, int] | None:
        """Inclusive lane range of the rectangle being drawn."""
        if self.anchor_channel is None or self.current_channel is None:
            return None
        return (
            min(self.anchor_channel, self.current_channel),
            max(self.anchor_channel, self.current_channel),
        )

    @property
    def candidate_times(self) -> tuple[float, float] | None:
        """Ordered (start, end) of the rectangle being drawn, unclamped."""
        if self.anchor_time is None or self.current_time is None:
            return None
        return (min(self.anchor_time, self.current_time), max(self.anchor_time, self.current_time))

    @property
    def active_ids(self) -> list[str]:
        """Identifiers of the active refinement group."""
        return [ev.event_id for ev in self.group]

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def pointer_down(self, channel_index: int, time: float) -> bool:
        """Start drawing on a lane.

        Returns:
            True if drawing started
        """
        if self.state is not EditState.IDLE:
            logger.debug(f"pointer_down ignored in state {self.state.name}")
            return False
        if not 0 <= channel_index < len(self.channel_labels):
            logger.warning(f"pointer_down on invalid lane {channel_index}")
            return False

        self.anchor_channel = channel_index
        self.anchor_time = float(time)
        self.current_channel = None
        self.current_time = None
        self.state = EditState.DRAWING
        return True

    def pointer_move(self, channel_index: int, time: float) -> bool:
        """Track the candidate rectangle while drawing.

        The lane index is clamped to the displayed lanes.
        """
        if self.state not in (EditState.DRAWING, EditState.PENDING_COMMIT):
            return False

        self.current_channel = max(0, min(len(self.channel_labels) - 1, channel_index))
        self.current_time = float(time)
        self.state = EditState.PENDING_COMMIT
        return True

    def pointer_up(self, time: float | None = None) -> bool:
        """Finish drawing; commit a valid rectangle to the refinement group.

        Args:
            time: Time under the pointer on release (defaults to the last move)

        Returns:
            True if events were created and the session is now refining
        """
        if self.state is EditState.DRAWING:
            # Press and release without a move is a click
            self._reset_drawing()
            return False
        if self.state is not EditState.PENDING_COMMIT:
            return False

        if time is not None:
            self.current_time = float(time)

        lo_time, hi_time = self.candidate_times
        if hi_time - lo_time < self.config.min_draw_duration:
            logger.debug(f"Drag of {hi_time - lo_time:.3f}s below threshold, treated as click")
            self._reset_drawing()
            return False

        start = min(max(lo_time, 0.0), self.total_duration)
        end = max(min(hi_time, self.total_duration), 0.0)
        if end <= start:
            logger.debug("Drawn region lies outside the recording, discarded")
            self._reset_drawing()
            return False

        first, last = self.candidate_channels
        events = [
            AnnotationEvent.manual(
                event_id=self.store.new_id("evt"),
                channel=self.channel_labels[lane],
                start=start,
                end=end,
                label=self.config.default_label,
                classification=self.config.default_classification,
            )
            for lane in range(first, last + 1)
        ]
        self._reset_drawing()
        self._enter_refining(events, is_new=True)
        logger.info(f"Drew region [{start:.3f}, {end:.3f}]s across {len(events)} channels")
        return True

    def cancel_draw(self) -> bool:
        """Abandon an in-progress drag (e.g. the pointer left the lanes)."""
        if self.state not in (EditState.DRAWING, EditState.PENDING_COMMIT):
            return False
        self._reset_drawing()
        return True

    def _reset_drawing(self) -> None:
        self.anchor_channel = None
        self.anchor_time = None
        self.current_channel = None
        self.current_time = None
        self.state = EditState.IDLE

    # ------------------------------------------------------------------
    # Refining
    # ------------------------------------------------------------------

    def select_event(self, event_id: str) -> bool:
        """Refine an existing event on its own.

        Returns:
            True if the event exists and refinement started
        """
        if self.state is not EditState.IDLE:
            logger.debug(f"select_event ignored in state {self.state.name}")
            return False
        event = self.store.get(event_id)
        if event is None:
            logger.warning(f"Cannot select unknown event {event_id}")
            return False

        self._enter_refining([event], is_new=False)
        return True

    def _enter_refining(self, events: list[AnnotationEvent], is_new: bool) -> None:
        self.group = list(events)
        self.is_new_group = is_new
        self.refined_start = events[0].start
        self.refined_end = events[0].end
        buffer = self.config.refine_buffer
        self.view_start = max(0.0, self.refined_start - buffer)
        self.view_end = min(self.total_duration, self.refined_end + buffer)
        self.state = EditState.REFINING

    def drag_start(self, time: float) -> bool:
        """Move the start boundary, keeping it inside the view and before the end."""
        if self.state is not EditState.REFINING:
            return False
        t = min(max(float(time), self.view_start), self.view_end)
        self.refined_start = max(self.view_start, min(t, self.refined_end - self.config.boundary_epsilon))
        return True

    def drag_end(self, time: float) -> bool:
        """Move the end boundary, keeping it inside the view and after the start."""
        if self.state is not EditState.REFINING:
            return False
        t = min(max(float(time), self.view_start), self.view_end)
        self.refined_end = min(self.view_end, max(t, self.refined_start + self.config.boundary_epsilon))
        return True

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def confirm(self, label: str | None = None) -> bool:
        """Apply label and refined bounds to every event in the group.

        New events are inserted into the store; existing ones are replaced.
        """
        if self.state is not EditState.REFINING:
            return False

        label = label or self.config.default_label
        start, end = self.refined_start, self.refined_end

        if self.is_new_group:
            self.store.insert(
                attrs.evolve(
                    ev,
                    label=label,
                    start=start,
                    end=end,
                    regions=(DetectionRegion(confidence=1.0, start=start, end=end),),
                )
                for ev in self.group
            )
        else:
            self.store.replace(
                self.active_ids,
                lambda ev: attrs.evolve(ev, label=label, start=start, end=end),
            )

        self.state = EditState.CONFIRMED
        logger.info(
            f"Confirmed '{label}' on {len(self.group)} events [{start:.3f}, {end:.3f}]s"
        )
        return True

    def delete(self) -> bool:
        """Remove every event in the group (new events are simply dropped)."""
        if self.state is not EditState.REFINING:
            return False

        removed = 0
        if not self.is_new_group:
            removed = self.store.remove(self.active_ids)
        self.state = EditState.DELETED
        logger.info(f"Deleted refinement group of {len(self.group)} events ({removed} removed from store)")
        return True

    def cancel(self) -> bool:
        """End the session without touching the store."""
        if self.is_terminated:
            return False
        self._reset_drawing()
        self.state = EditState.CANCELLED
        logger.debug(f"Edit cancelled ({len(self.group)} events in group discarded)")
        return True


class AnnotationEditor:
    """Routes gestures to at most one active RegionEditSession.

    While a draw or refinement is in progress, gestures that would begin
    another edit are ignored until the session terminates.
    """

    def __init__(
        self,
        store: EventStore,
        channel_labels: list[str],
        total_duration: float,
        config: EditingConfig | None = None,
    ):
        self.store = store
        self.channel_labels = list(channel_labels)
        self.total_duration = float(total_duration)
        self.config = config or EditingConfig()
        self._session: RegionEditSession | None = None

    @classmethod
    def from_recording(
        cls,
        recording: ParsedRecording,
        store: EventStore,
        config: AppConfig | None = None,
    ) -> AnnotationEditor:
        """Create an editor whose lanes are the recording's display channels.

        Channels listed in ``config.view.excluded_channels`` get no lane.
        """
        config = config or AppConfig()
        labels = [ch.label for ch in recording.display_channels(config.view.excluded_channels)]
        return cls(store, labels, recording.total_duration, config.editing)

    @property
    def session(self) -> RegionEditSession | None:
        """The most recent session, which may already be terminated."""
        return self._session

    @property
    def active_session(self) -> RegionEditSession | None:
        """The current session if it has not terminated."""
        if self._session is None or self._session.is_terminated:
            return None
        return self._session

    @property
    def is_busy(self) -> bool:
        return self._session is not None and self._session.is_busy

    def _idle_session(self) -> RegionEditSession | None:
        if self.is_busy:
            return None
        if self._session is None or self._session.is_terminated:
            self._session = RegionEditSession(
                self.store, self.channel_labels, self.total_duration, self.config
            )
        return self._session

    def pointer_down(self, channel_index: int, time: float) -> bool:
        session = self._idle_session()
        if session is None:
            logger.debug("Draw gesture ignored: an edit is already in progress")
            return False
        return session.pointer_down(channel_index, time)

    def select_event(self, event_id: str) -> bool:
        session = self._idle_session()
        if session is None:
            logger.debug("Selection ignored: an edit is already in progress")
            return False
        return session.select_event(event_id)

    def pointer_move(self, channel_index: int, time: float) -> bool:
        return self._session is not None and self._session.pointer_move(channel_index, time)

    def pointer_up(self, time: float | None = None) -> bool:
        return self._session is not None and self._session.pointer_up(time)

    def cancel_draw(self) -> bool:
        return self._session is not None and self._session.cancel_draw()

    def drag_start(self, time: float) -> bool:
        return self._session is not None and self._session.drag_start(time)

    def drag_end(self, time: float) -> bool:
        return self._session is not None and self._session.drag_end(time)

    def confirm(self, label: str | None = None) -> bool:
        return self._session is not None and self._session.confirm(label)

    def delete(self) -> bool:
        return self._session is not None and self._session.delete()

    def cancel(self) -> bool:
        return self._session is not None and self._session.cancel()
