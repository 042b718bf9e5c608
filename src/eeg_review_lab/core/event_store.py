"""Time-ordered in-memory collection of annotation events.

The store is the single source of truth for the event list shown beside the
waveform and for export. After every mutation it is re-sorted by start time;
the sort is stable, so ties keep insertion order.
"""
from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable, Iterator

import attrs
from loguru import logger

from eeg_review_lab.core.data_models import AnnotationEvent


class EventStore:
    """Ordered store of AnnotationEvent keyed by unique identifier.

    Mutators clamp event times into ``[0, total_duration]`` (the upper bound
    applies once a recording length is known). Identifiers that are not in
    the store are ignored by ``replace`` and ``remove`` so stale references
    from a dismissed edit are harmless.
    """

    def __init__(
        self,
        events: Iterable[AnnotationEvent] = (),
        total_duration: float | None = None,
    ):
        """Initialize store.

        Args:
            events: Initial events (e.g. from the annotation table)
            total_duration: Recording length in seconds, or None if unknown
        """
        self.total_duration = total_duration
        self._events: list[AnnotationEvent] = []
        self._id_counter = itertools.count(1)
        if events:
            self.insert(events)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all(self) -> list[AnnotationEvent]:
        """All events sorted by start time."""
        return list(self._events)

    def by_channel(self, label: str) -> list[AnnotationEvent]:
        """Events on one channel, sorted by start time."""
        return [ev for ev in self._events if ev.channel == label]

    def get(self, event_id: str) -> AnnotationEvent | None:
        for event in self._events:
            if event.event_id == event_id:
                return event
        return None

    def ids(self) -> set[str]:
        return {ev.event_id for ev in self._events}

    def in_range(self, start: float, end: float) -> list[AnnotationEvent]:
        """Events overlapping ``[start, end]``, e.g. those visible in a view window."""
        return [ev for ev in self._events if ev.end >= start and ev.start <= end]

    def new_id(self, prefix: str = "evt") -> str:
        """Generate an identifier not currently in the store."""
        existing = self.ids()
        while True:
            candidate = f"{prefix}_{next(self._id_counter)}"
            if candidate not in existing:
                return candidate

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[AnnotationEvent]:
        return iter(list(self._events))

    def __contains__(self, event_id: object) -> bool:
        return any(ev.event_id == event_id for ev in self._events)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(self, events: Iterable[AnnotationEvent]) -> int:
        """Append events and re-sort.

        Args:
            events: Events with identifiers not already in the store

        Returns:
            Number of events inserted

        Raises:
            ValueError: If an identifier is already present or repeated
        """
        new_events = [self._clamp(ev) for ev in events]
        existing = self.ids()
        seen: set[str] = set()
        for event in new_events:
            if event.event_id in existing or event.event_id in seen:
                raise ValueError(f"Duplicate event identifier: {event.event_id}")
            seen.add(event.event_id)

        self._events.extend(new_events)
        self._sort()
        logger.debug(f"Inserted {len(new_events)} events ({len(self._events)} total)")
        return len(new_events)

    def replace(
        self,
        event_ids: Iterable[str],
        mutator: Callable[[AnnotationEvent], AnnotationEvent],
    ) -> int:
        """Replace events by applying ``mutator`` to each targeted event.

        Args:
            event_ids: Identifiers to replace; unknown identifiers are ignored
            mutator: Function returning the updated event (same identifier)

        Returns:
            Number of events replaced
        """
        targets = set(event_ids)
        replaced = 0
        for i, event in enumerate(self._events):
            if event.event_id not in targets:
                continue
            updated = mutator(event)
            if updated.event_id != event.event_id:
                raise ValueError(
                    f"Mutator changed identifier {event.event_id} -> {updated.event_id}"
                )
            self._events[i] = self._clamp(updated)
            replaced += 1

        missing = len(targets) - replaced
        if missing:
            logger.debug(f"replace(): {missing} identifiers not in store, ignored")
        self._sort()
        return replaced

    def remove(self, event_ids: Iterable[str]) -> int:
        """Remove events by identifier; unknown identifiers are ignored.

        Returns:
            Number of events removed
        """
        targets = set(event_ids)
        before = len(self._events)
        self._events = [ev for ev in self._events if ev.event_id not in targets]
        removed = before - len(self._events)

        if removed < len(targets):
            logger.debug(f"remove(): {len(targets) - removed} identifiers not in store, ignored")
        self._sort()
        return removed

    def reset(self, events: Iterable[AnnotationEvent] = (), total_duration: float | None = None) -> None:
        """Replace the whole collection, e.g. when a new file pair is loaded."""
        self._events = []
        self.total_duration = total_duration
        self.insert(events)
        logger.info(f"Event store reset with {len(self._events)} events")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _clamp(self, event: AnnotationEvent) -> AnnotationEvent:
        """Clamp start/end into ``[0, total_duration]``."""
        upper = self.total_duration if self.total_duration is not None else float("inf")
        start = min(max(event.start, 0.0), upper)
        end = min(max(event.end, 0.0), upper)
        if start == event.start and end == event.end:
            return event
        logger.debug(
            f"Clamped event {event.event_id} from [{event.start:.3f}, {event.end:.3f}] "
            f"to [{start:.3f}, {end:.3f}]"
        )
        return attrs.evolve(event, start=start, end=end)

    def _sort(self) -> None:
        self._events.sort(key=lambda ev: ev.start)
