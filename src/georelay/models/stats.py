"""Per-region activity counters."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class GeohashStatRecord:
    """Running counters for one exact geohash or channel key.

    Counters only grow within a session. ``total_count`` counts every
    accepted event tagged with exactly this key; ``direct_count`` and
    ``last_activity`` count events attributed to this key while it was the
    matching key of the active view.

    Attributes:
        key: Lowercase geohash or channel name.
        last_activity: Unix time of the last attributed event, 0 if none.
        direct_count: Events attributed through the active view.
        total_count: Events tagged with this exact key.
    """

    key: str
    last_activity: float = 0.0
    direct_count: int = 0
    total_count: int = 0

    def __post_init__(self) -> None:
        if self.direct_count < 0 or self.total_count < 0:
            raise ValueError(f"negative counters for {self.key!r}")

    def with_event(self) -> GeohashStatRecord:
        return replace(self, total_count=self.total_count + 1)

    def with_activity(self, at: float) -> GeohashStatRecord:
        return replace(self, direct_count=self.direct_count + 1, last_activity=at)
