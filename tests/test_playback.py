"""Tests for viewer state transitions and the playback clock."""
import pytest

from eeg_review_lab.config import ViewConfig
from eeg_review_lab.core import AnnotationEvent
from eeg_review_lab.editing import (
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

TOTAL = 120.0


class TestViewState:
    def test_defaults(self):
        state = ViewState()
        assert state.current_time == 0.0
        assert state.window_size == 30.0
        assert state.is_playing is False
        assert state.selected_event_id is None
        assert state.window_end == 30.0

    def test_from_config(self):
        state = ViewState.from_config(ViewConfig(window_size=10.0))
        assert state.window_size == 10.0
        assert seek(state, 200.0, TOTAL).current_time == TOTAL - 10.0

    def test_default_window_follows_config_default(self):
        assert ViewState().window_size == ViewConfig().window_size

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            ViewState(current_time=-1.0)
        with pytest.raises(ValueError):
            ViewState(window_size=0.0)

    def test_transitions_return_new_values(self):
        state = ViewState()
        playing = play(state)

        assert playing.is_playing
        assert not state.is_playing
        assert pause(playing).is_playing is False
        assert toggle_play(state).is_playing is True


class TestSeek:
    def test_seek_clamped(self):
        state = ViewState()
        assert seek(state, 50.0, TOTAL).current_time == 50.0
        assert seek(state, -10.0, TOTAL).current_time == 0.0
        assert seek(state, 200.0, TOTAL).current_time == TOTAL - 30.0

    def test_short_recording(self):
        """A recording shorter than the window keeps the cursor at zero."""
        assert seek(ViewState(), 5.0, 10.0).current_time == 0.0

    def test_skip(self):
        state = ViewState(current_time=20.0)
        assert skip(state, TOTAL).current_time == 25.0
        assert skip(state, TOTAL, forward=False).current_time == 15.0
        assert skip(ViewState(current_time=2.0), TOTAL, forward=False).current_time == 0.0

    def test_skip_uses_configured_step(self):
        view = ViewConfig(skip_seconds=10.0)
        state = ViewState(current_time=20.0)
        assert skip(state, TOTAL, view=view).current_time == 30.0
        assert skip(state, TOTAL, forward=False, view=view).current_time == 10.0

    def test_set_window_size_reclamps(self):
        state = ViewState(current_time=85.0)
        resized = set_window_size(state, 60.0, TOTAL)

        assert resized.window_size == 60.0
        assert resized.current_time == 60.0


class TestFocusEvent:
    def test_focus_event(self):
        event = AnnotationEvent.manual("e1", "FP1", 40.0, 42.0)
        state = focus_event(play(ViewState()), event, TOTAL)

        assert state.current_time == 39.0
        assert state.is_playing is False
        assert state.selected_event_id == "e1"
        assert clear_selection(state).selected_event_id is None

    def test_focus_event_near_start(self):
        event = AnnotationEvent.manual("e1", "FP1", 0.5, 1.0)
        assert focus_event(ViewState(), event, TOTAL).current_time == 0.0


class TestAdvance:
    def test_advance_while_playing(self):
        state = advance(play(ViewState(current_time=10.0)), 0.5, TOTAL)
        assert state.current_time == 10.5
        assert state.is_playing

    def test_paused_state_unchanged(self):
        state = ViewState(current_time=10.0)
        assert advance(state, 1.0, TOTAL) is state

    def test_stops_at_last_window(self):
        """Playback stops instead of running past the last full window."""
        state = play(ViewState(current_time=89.5))
        stopped = advance(state, 1.0, TOTAL)

        assert stopped.is_playing is False
        assert stopped.current_time == 89.5

    def test_reaches_last_window_exactly(self):
        state = advance(play(ViewState(current_time=89.0)), 1.0, TOTAL)
        assert state.current_time == 90.0
        assert state.is_playing


class TestPlaybackClock:
    def test_first_tick_primes(self):
        clock = PlaybackClock(TOTAL)
        clock.start()
        state = play(ViewState())

        assert clock.tick(state, 100.0) is state
        assert clock.tick(state, 100.25).current_time == pytest.approx(0.25)

    def test_no_ticks_after_stop(self):
        clock = PlaybackClock(TOTAL)
        clock.start()
        state = play(ViewState())
        state = clock.tick(state, 0.0)
        state = clock.tick(state, 1.0)
        clock.stop()

        assert clock.tick(state, 5.0) is state
        assert not clock.running

    def test_clock_stops_at_end(self):
        clock = PlaybackClock(40.0)
        clock.start()
        state = play(ViewState(current_time=9.0))
        state = clock.tick(state, 0.0)
        state = clock.tick(state, 2.0)

        assert state.is_playing is False
        assert not clock.running

    def test_restart_does_not_jump(self):
        """The gap while stopped is not applied after restarting."""
        clock = PlaybackClock(TOTAL)
        clock.start()
        state = play(ViewState())
        state = clock.tick(state, 0.0)
        state = clock.tick(state, 1.0)
        clock.stop()
        clock.start()
        state = clock.tick(state, 50.0)
        state = clock.tick(state, 50.5)

        assert state.current_time == pytest.approx(1.5)
