"""Interactive editing and viewer state for EEGReviewLab.

Provides the region edit state machine, the single-session editor and the
playback/view state transitions.
"""

from eeg_review_lab.editing.playback import (
    PlaybackClock,
    ViewState,
    advance,
    clear_selection,
    focus_event,
    pause,
    play,
    seek,
    set_window_size,
    skip,
    toggle_play,
)
from eeg_review_lab.editing.region_edit import (
    AnnotationEditor,
    EditState,
    RegionEditSession,
)

__all__ = [
    # Region editing
    "EditState",
    "RegionEditSession",
    "AnnotationEditor",
    # Viewer state
    "ViewState",
    "PlaybackClock",
    "advance",
    "play",
    "pause",
    "toggle_play",
    "seek",
    "skip",
    "set_window_size",
    "focus_event",
    "clear_selection",
]
