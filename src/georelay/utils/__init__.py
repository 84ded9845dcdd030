"""Utils layer: pure helpers and network I/O shared by the services.

Depends only on ``georelay.models`` and third-party libraries. Raises
builtin and library exceptions; services translate them.

Attributes:
    geohash: Geohash decode/center/encode and hierarchy matching.
    distance: Haversine great-circle distance.
    http: Size-bounded HTTP text/JSON fetches (aiohttp).
    relay_url: RFC 3986 relay URL normalization.
    transport: Relay subscription pool over the nostr-sdk client.
"""

from .distance import EARTH_RADIUS_KM, haversine_km
from .geohash import (
    center,
    common_prefix_length,
    decode,
    encode,
    find_matching_geohash,
    is_prefix_of,
    is_valid_geohash,
    normalize_geohash,
)
from .http import fetch_json, fetch_text
from .relay_url import is_relay_url, normalize_relay_url
from .transport import (
    RelayPool,
    SubscriptionHandlers,
    Unsubscribe,
    WebSocketRelayPool,
    event_to_dict,
)


__all__ = [
    "EARTH_RADIUS_KM",
    "RelayPool",
    "SubscriptionHandlers",
    "Unsubscribe",
    "WebSocketRelayPool",
    "center",
    "common_prefix_length",
    "decode",
    "encode",
    "event_to_dict",
    "fetch_json",
    "fetch_text",
    "find_matching_geohash",
    "haversine_km",
    "is_prefix_of",
    "is_relay_url",
    "is_valid_geohash",
    "normalize_geohash",
    "normalize_relay_url",
]
