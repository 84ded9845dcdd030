"""Shared constants for the models layer.

Defines the wire-level event kinds and tag names, relay roles and statuses,
and the geohash alphabet. Placing them here avoids circular dependencies
between the models, utils, and services layers.

See Also:
    [StoredEvent][georelay.models.event.StoredEvent]: Uses
        [TagName][georelay.models.constants.TagName] for tag lookups.
    [ConnectedRelay][georelay.models.relay.ConnectedRelay]: Carries a
        [RelayRole][georelay.models.constants.RelayRole] and a
        [RelayStatus][georelay.models.constants.RelayStatus].
"""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Final


GEOHASH_ALPHABET: Final[str] = "0123456789bcdefghjkmnpqrstuvwxyz"


class EventKind(IntEnum):
    """Nostr event kinds consumed by the engine.

    Attributes:
        GEOHASH_MESSAGE: Location-tagged message. Strict: requires a valid
            ``g`` geohash tag.
        CHANNEL_MESSAGE: Named-channel message keyed by its ``d`` tag.
            Lenient: an invalid ``g`` tag is flagged but the event is kept.
        GIFT_WRAP: Opaque private-message envelope addressed with a ``p`` tag.
    """

    GIFT_WRAP = 1059
    GEOHASH_MESSAGE = 20000
    CHANNEL_MESSAGE = 23333


class TagName(StrEnum):
    """Single-purpose tag names read from inbound events."""

    GEOHASH = "g"
    CHANNEL = "d"
    NAME = "n"
    CLIENT = "client"
    RELAY = "relay"
    PUBKEY = "p"


class RelayRole(StrEnum):
    """Why a relay is part of the connection set.

    Attributes:
        INITIAL: Always-connected fallback relay loaded by ``connect()``.
        LOCAL: Georelay selected for proximity to the active region.
    """

    INITIAL = "initial"
    LOCAL = "local"


class RelayStatus(StrEnum):
    """Connection state of a single relay, also used for the aggregate."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class CountVariant(StrEnum):
    """Which counter a hierarchical rollup sums.

    Attributes:
        DIRECT: Events attributed to the key that was on display.
        TOTAL: Every accepted event, keyed by its exact tag value.
    """

    DIRECT = "direct"
    TOTAL = "total"


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics."""

    WATCHER = "watcher"
