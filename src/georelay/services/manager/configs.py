"""Connection manager configuration models.

See Also:
    [ConnectionManager][georelay.services.manager.ConnectionManager]: The
        manager that consumes these configurations.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from georelay.core.retry import RetryPolicy
from georelay.models.constants import EventKind
from georelay.utils.geohash import is_valid_geohash
from georelay.utils.relay_url import normalize_relay_url


EVENT_KIND_MAX = 65_535
_HEX_STRING_LENGTH = 64

DEFAULT_RELAYS = [
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.primal.net",
    "wss://offchain.pub",
    "wss://nostr21.com",
]

# North America west/east, Europe, East Asia, Africa, South America, Oceania
DEFAULT_SPREAD_PREFIXES = ["9", "d", "u", "w", "s", "6", "r"]


def _validate_kinds(kinds: list[int]) -> list[int]:
    for kind in kinds:
        if not 0 <= kind <= EVENT_KIND_MAX:
            raise ValueError(f"Event kind {kind} out of valid range (0-{EVENT_KIND_MAX})")
    return kinds


class SubscriptionConfig(BaseModel):
    """Primary content subscription filter.

    See Also:
        [build_content_filter][georelay.services.manager.utils.build_content_filter]:
            Turns this config into a NIP-01 filter.
    """

    kinds: list[int] = Field(
        default_factory=lambda: [EventKind.GEOHASH_MESSAGE, EventKind.CHANNEL_MESSAGE],
        min_length=1,
        description="Event kinds to subscribe to",
    )
    lookback_seconds: int = Field(
        default=86_400,
        ge=60,
        le=604_800,
        description="Only request events newer than now - lookback",
    )
    limit: int | None = Field(default=None, ge=1, le=5000, description="Max stored events per relay")

    @field_validator("kinds", mode="after")
    @classmethod
    def validate_kinds(cls, v: list[int]) -> list[int]:
        """Validate that all event kinds are within the valid range (0-65535)."""
        return _validate_kinds(v)


class PrivateMessagesConfig(BaseModel):
    """Secondary subscription for private messages addressed to ``pubkey``.

    Disabled while ``pubkey`` is unset. Payloads are never decrypted.
    """

    pubkey: str | None = Field(default=None, description="Recipient public key (hex)")
    kinds: list[int] = Field(
        default_factory=lambda: [EventKind.GIFT_WRAP],
        min_length=1,
        description="Envelope kinds",
    )
    lookback_seconds: int = Field(
        default=172_800,
        ge=60,
        le=604_800,
        description="Gift wraps carry randomized timestamps, so look back further",
    )

    @field_validator("pubkey", mode="after")
    @classmethod
    def validate_pubkey(cls, v: str | None) -> str | None:
        """Validate a 64-character hex public key."""
        if v is None:
            return v
        if len(v) != _HEX_STRING_LENGTH:
            raise ValueError(f"Invalid pubkey length: {len(v)} (expected {_HEX_STRING_LENGTH})")
        try:
            bytes.fromhex(v)
        except ValueError as e:
            raise ValueError(f"Invalid hex pubkey: {v}") from e
        return v.lower()

    @field_validator("kinds", mode="after")
    @classmethod
    def validate_kinds(cls, v: list[int]) -> list[int]:
        """Validate that all event kinds are within the valid range (0-65535)."""
        return _validate_kinds(v)


class InitialRelaysConfig(BaseModel):
    """How ``connect()`` chooses the always-on relay set.

    ``fixed`` uses ``relays`` as given; ``spread`` takes the nearest
    directory relay for each of ``spread_prefixes``.
    """

    strategy: Literal["fixed", "spread"] = Field(default="fixed", description="Selection strategy")
    relays: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RELAYS),
        description="Fallback relays for the fixed strategy",
    )
    spread_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SPREAD_PREFIXES),
        min_length=1,
        description="Top-level geohash cells for the spread strategy",
    )

    @field_validator("relays", mode="after")
    @classmethod
    def validate_relays(cls, v: list[str]) -> list[str]:
        """Normalize every relay URL and drop duplicates."""
        return list(dict.fromkeys(normalize_relay_url(url) for url in v))

    @field_validator("spread_prefixes", mode="after")
    @classmethod
    def validate_prefixes(cls, v: list[str]) -> list[str]:
        """Validate that every prefix is a geohash."""
        for prefix in v:
            if not is_valid_geohash(prefix):
                raise ValueError(f"Invalid geohash prefix: {prefix!r}")
        return v


class RelayPoolConfig(BaseModel):
    """Relay pool settings for the nostr-sdk client.

    See Also:
        [WebSocketRelayPool][georelay.utils.transport.WebSocketRelayPool]:
            The pool built from this config.
    """

    timeout: float = Field(default=10.0, gt=0.0, le=120.0, description="Handshake timeout (s)")
    verify_signatures: bool = Field(default=True, description="Drop events with bad signatures")
    reconnect: bool = Field(default=False, description="Let nostr-sdk reconnect dropped relays")
    reconnect_base_delay: float = Field(
        default=1.0, ge=0.1, description="Initial nostr-sdk retry interval (s)"
    )


class GeolocationConfig(BaseModel):
    """IP geolocation lookup used by ``connect_nearby()``.

    ``latitude_path`` and ``longitude_path`` are JMESPath expressions
    evaluated against the JSON response.
    """

    url: str = Field(default="https://ipapi.co/json/", description="Geolocation endpoint")
    latitude_path: str = Field(default="latitude", description="JMESPath to latitude")
    longitude_path: str = Field(default="longitude", description="JMESPath to longitude")
    timeout: float = Field(default=10.0, gt=0.0, le=60.0, description="Request timeout (s)")
    precision: int = Field(default=5, ge=1, le=12, description="Geohash precision of the region")
    retry: RetryPolicy = Field(default_factory=RetryPolicy, description="Attempts and backoff")


class EventStoreConfig(BaseModel):
    """Retention for stored events. ``max_age`` of None keeps the whole session."""

    max_age: float | None = Field(default=None, gt=0.0, description="Retention in seconds")
    max_events: int = Field(default=100_000, ge=1000, description="Safety cap on stored events")


class ConnectionManagerConfig(BaseModel):
    """Connection manager configuration.

    See Also:
        [WatcherConfig][georelay.services.watcher.WatcherConfig]: Parent
            config that embeds this model.
    """

    max_local_relays: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Upper bound on proximity-selected relays",
    )
    geo_relay_count: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Nearest relays requested from the directory per region",
    )
    initial_relays: InitialRelaysConfig = Field(default_factory=InitialRelaysConfig)
    subscription: SubscriptionConfig = Field(default_factory=SubscriptionConfig)
    private_messages: PrivateMessagesConfig = Field(default_factory=PrivateMessagesConfig)
    pool: RelayPoolConfig = Field(default_factory=RelayPoolConfig)
    geolocation: GeolocationConfig = Field(default_factory=GeolocationConfig)
    store: EventStoreConfig = Field(default_factory=EventStoreConfig)
