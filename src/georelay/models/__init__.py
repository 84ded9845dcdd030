"""Pure frozen dataclasses with zero I/O for relays, events, and region stats.

The models layer is the foundation of the diamond DAG. It has **no
dependencies** on any other georelay package, only the Python standard
library. Every model uses ``@dataclass(frozen=True, slots=True)``; state
changes produce new instances via ``dataclasses.replace``.

Attributes:
    RelayEndpoint: Directory entry, a relay host with coordinates.
    BoundingBox: Rectangle decoded from a geohash.
    ConnectedRelay: Relay tracked by the connection manager, with
        [RelayRole][georelay.models.constants.RelayRole] and
        [RelayStatus][georelay.models.constants.RelayStatus].
    ConnectionSnapshot: Immutable state handed to observers.
    GeohashStatRecord: Running counters for one region or channel key.
    StoredEvent: Deduplicated inbound Nostr event.
"""

from .constants import (
    GEOHASH_ALPHABET,
    CountVariant,
    EventKind,
    RelayRole,
    RelayStatus,
    ServiceName,
    TagName,
)
from .event import StoredEvent
from .geo import BoundingBox, RelayEndpoint
from .relay import ConnectedRelay, ConnectionSnapshot
from .stats import GeohashStatRecord


__all__ = [
    "GEOHASH_ALPHABET",
    "BoundingBox",
    "ConnectedRelay",
    "ConnectionSnapshot",
    "CountVariant",
    "EventKind",
    "GeohashStatRecord",
    "RelayEndpoint",
    "RelayRole",
    "RelayStatus",
    "ServiceName",
    "StoredEvent",
    "TagName",
]
