"""Consumer that reads each event of a store exactly once, tolerating gaps."""

from __future__ import annotations

import operator
import threading
from typing import Any, Callable, Generic, Protocol, Sequence, TypeVar

from .event_store import EventRange

T = TypeVar("T")

# Transactions that failed leave gaps that never fill, so gaps are
# forgotten once this many newer ranges exist.
EVENT_GAP_SKIP_WINDOW = 5000


class _EventSource(Protocol):
    def load_events(self, ranges: Sequence[EventRange]) -> Any: ...


class EventConsumer(Generic[T]):
    """Tracks which event ids were consumed and fetches the rest."""

    def __init__(
        self,
        store: _EventSource,
        begin_id: int,
        key: Callable[[T], int] = operator.attrgetter("id"),
    ) -> None:
        self._store = store
        self._key = key
        self._ranges = [EventRange(begin=begin_id)]
        self._lock = threading.Lock()

    def begin_event_id(self) -> int:
        """Return the smallest id of an event that may still be consumed."""
        with self._lock:
            return self._ranges[0].begin

    def _remove_empty_ranges(self) -> None:
        ranges = [rng for rng in self._ranges if rng.begin != rng.end]
        self._ranges = ranges[-EVENT_GAP_SKIP_WINDOW:]

    def consume_events(self, fn: Callable[[T], None]) -> None:
        """Pass every new event to fn, in id order."""
        with self._lock:
            with self._store.load_events(list(self._ranges)) as events:
                it = 0
                for event in events:
                    event_id = self._key(event)
                    while it < len(self._ranges) and not self._ranges[it].contains(
                        event_id
                    ):
                        it += 1
                    if it == len(self._ranges):
                        raise ValueError("invalid event ID")
                    fn(event)
                    rng = self._ranges[it]
                    if event_id == rng.begin:
                        self._ranges[it] = EventRange(rng.begin + 1, rng.end)
                    else:
                        self._ranges[it : it + 1] = [
                            EventRange(rng.begin, event_id),
                            EventRange(event_id + 1, rng.end),
                        ]
            self._remove_empty_ranges()