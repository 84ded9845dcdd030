"""Deduplicating in-memory event store.

Events are keyed by id: the first delivery wins and later copies from
other relays are ignored. Retention is optional. With ``max_age`` set,
[prune()][georelay.services.manager.store.EventStore.prune] drops events
received longer ago than that; independently, ``max_events`` caps memory
by evicting the oldest received events in batches.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass

from georelay.models import StoredEvent


EVICTION_BATCH = 1000


@dataclass(frozen=True, slots=True)
class EventStoreStats:
    """Summary of the store contents.

    Attributes:
        total: Number of stored events.
        by_region: Event count per region key.
        flagged: Events kept despite an invalid geohash tag.
        oldest_age: Seconds since the oldest ``created_at``, None when empty.
        newest_age: Seconds since the newest ``created_at``, None when empty.
    """

    total: int
    by_region: dict[str, int]
    flagged: int
    oldest_age: float | None
    newest_age: float | None


class EventStore:
    """Session store of accepted events.

    Args:
        max_age: Retention in seconds measured from receipt, None to keep
            everything for the session.
        max_events: Cap on stored events; reaching it evicts the
            ``EVICTION_BATCH`` oldest by receipt time.
    """

    def __init__(self, *, max_age: float | None = None, max_events: int = 100_000) -> None:
        self._max_age = max_age
        self._max_events = max_events
        # Insertion order doubles as receipt order
        self._events: dict[str, tuple[StoredEvent, float]] = {}

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events

    def __iter__(self) -> Iterator[StoredEvent]:
        return iter(self.events())

    def get(self, event_id: str) -> StoredEvent | None:
        entry = self._events.get(event_id)
        return entry[0] if entry else None

    def add(self, event: StoredEvent, received_at: float) -> bool:
        """Store ``event`` unless its id is already present.

        Returns:
            True if the event was new.
        """
        if event.id in self._events:
            return False
        if len(self._events) >= self._max_events:
            self._evict(EVICTION_BATCH)
        self._events[event.id] = (event, received_at)
        return True

    def _evict(self, count: int) -> None:
        for event_id in list(self._events)[:count]:
            del self._events[event_id]

    def events(self) -> list[StoredEvent]:
        """All stored events, newest ``created_at`` first."""
        return sorted(
            (event for event, _ in self._events.values()),
            key=lambda e: e.created_at,
            reverse=True,
        )

    def get_by_region(self, prefix: str) -> list[StoredEvent]:
        """Stored events whose region key starts with ``prefix``, newest first."""
        prefix = prefix.lower()
        return [event for event in self.events() if event.region.startswith(prefix)]

    def prune(self, now: float) -> int:
        """Drop events received more than ``max_age`` seconds before ``now``.

        Returns:
            Number of events removed (always 0 without ``max_age``).
        """
        if self._max_age is None:
            return 0
        cutoff = now - self._max_age
        stale = [eid for eid, (_, received_at) in self._events.items() if received_at < cutoff]
        for event_id in stale:
            del self._events[event_id]
        return len(stale)

    def stats(self, now: float) -> EventStoreStats:
        """Summarize the store as of ``now``."""
        events = [event for event, _ in self._events.values()]
        by_region = Counter(e.region for e in events if e.region)
        created = [e.created_at for e in events]
        return EventStoreStats(
            total=len(events),
            by_region=dict(by_region),
            flagged=sum(1 for e in events if e.flagged),
            oldest_age=now - min(created) if created else None,
            newest_age=now - max(created) if created else None,
        )

    def clear(self) -> None:
        self._events.clear()
