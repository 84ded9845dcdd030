"""Per-region activity counters with hierarchical rollups.

Keys are exact lowercase geohashes (or channel names for channel messages
without a usable geohash). Because a geohash is a prefix of every cell it
contains, the count for a coarse cell is the sum over all keys starting
with it:

    9q8 -> 3 direct, 9q8y -> 2 direct
    hierarchical_count("9q8") == 5
    hierarchical_count("9q8y") == 2

Lookups scan every key, which is fine for a session-sized key set. A
prefix trie would make rollups sublinear if key counts grow large.
"""

from __future__ import annotations

from collections.abc import Iterator

from georelay.models import CountVariant, GeohashStatRecord


class StatsAggregator:
    """Mutable map from region key to [GeohashStatRecord][georelay.models.stats.GeohashStatRecord].

    Counters only grow; [clear()][georelay.services.manager.stats.StatsAggregator.clear]
    is the single way to reset them.
    """

    def __init__(self) -> None:
        self._records: dict[str, GeohashStatRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[GeohashStatRecord]:
        return iter(list(self._records.values()))

    def get(self, key: str) -> GeohashStatRecord | None:
        return self._records.get(key)

    def records(self) -> dict[str, GeohashStatRecord]:
        """Copy of every record, keyed by region."""
        return dict(self._records)

    def record_event(self, key: str) -> GeohashStatRecord:
        """Count one accepted event under its exact key (``total_count``)."""
        record = self._records.get(key) or GeohashStatRecord(key=key)
        record = record.with_event()
        self._records[key] = record
        return record

    def record_activity(self, key: str, at: float) -> GeohashStatRecord:
        """Attribute one event to a displayed key (``direct_count``, ``last_activity``)."""
        record = self._records.get(key) or GeohashStatRecord(key=key)
        record = record.with_activity(at)
        self._records[key] = record
        return record

    def hierarchical_count(self, prefix: str, variant: CountVariant = CountVariant.DIRECT) -> int:
        """Sum the ``variant`` counter over every key starting with ``prefix``.

        An empty prefix returns 0 rather than the global total.
        """
        if not prefix:
            return 0
        prefix = prefix.lower()
        return sum(
            _counter(record, variant)
            for key, record in self._records.items()
            if key.startswith(prefix)
        )

    def all_counts_by_prefix(self, variant: CountVariant = CountVariant.DIRECT) -> dict[str, int]:
        """Hierarchical count for every prefix of every observed key.

        Returns:
            ``{prefix: count}`` ordered by prefix length, then prefix.
        """
        counts: dict[str, int] = {}
        for key, record in self._records.items():
            value = _counter(record, variant)
            for length in range(1, len(key) + 1):
                prefix = key[:length]
                counts[prefix] = counts.get(prefix, 0) + value
        return dict(sorted(counts.items(), key=lambda item: (len(item[0]), item[0])))

    def clear(self) -> None:
        self._records.clear()


def _counter(record: GeohashStatRecord, variant: CountVariant) -> int:
    if variant is CountVariant.TOTAL:
        return record.total_count
    return record.direct_count
