"""Relay directory configuration models.

See Also:
    [RelayDirectory][georelay.services.directory.RelayDirectory]: The
        directory handle that consumes these configurations.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from georelay.core.retry import RetryPolicy


DEFAULT_REMOTE_URL = (
    "https://raw.githubusercontent.com/permissionlesstech/georelays/refs/heads/main/nostr_relays.csv"
)


class DirectoryConfig(BaseModel):
    """Sources, refresh schedule and persistence keys for the relay directory.

    See Also:
        [WatcherConfig][georelay.services.watcher.WatcherConfig]: Parent
            config that embeds this model.
    """

    remote_url: str = Field(default=DEFAULT_REMOTE_URL, description="Remote CSV snapshot")
    refresh_interval: float = Field(
        default=86400.0,
        ge=0.0,
        description="Minimum seconds between remote refreshes",
    )
    fetch_timeout: float = Field(
        default=15.0,
        gt=0.0,
        le=120.0,
        description="Timeout for one remote fetch attempt",
    )
    max_size: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Maximum remote snapshot size in bytes",
    )
    fetch_retry: RetryPolicy = Field(
        default_factory=RetryPolicy,
        description="Attempts and backoff for the remote fetch",
    )
    auto_refresh: bool = Field(
        default=True,
        description="Start a background refresh when the directory becomes ready",
    )
    snapshot_path: str | None = Field(
        default=None,
        description="CSV used instead of the bundled snapshot when no cache exists",
    )
    cache_key: str = Field(default="georelays_cache.csv", description="State key for the cache")
    timestamp_key: str = Field(
        default="georelay.lastFetchAt",
        description="State key for the last successful fetch time",
    )
