"""Watcher service configuration models.

See Also:
    [Watcher][georelay.services.watcher.Watcher]: The service that consumes
        these configurations.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from georelay.core.base_service import BaseServiceConfig
from georelay.services.directory import DirectoryConfig
from georelay.services.manager import ConnectionManagerConfig
from georelay.utils.geohash import is_valid_geohash, normalize_geohash


class WatcherConfig(BaseServiceConfig):
    """Configuration for the headless watcher.

    With ``region`` set the watcher joins that region's georelays on
    start; otherwise, with ``locate`` enabled, it locates the host by IP.

    Attributes:
        directory: Relay directory sources and refresh schedule.
        manager: Connection limits, filters and pool settings.
        state_path: JSON file for the directory cache, in-memory if unset.
        region: Geohash whose georelays are joined on start.
        locate: Join the georelays around this host's IP location.
    """

    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    manager: ConnectionManagerConfig = Field(default_factory=ConnectionManagerConfig)
    state_path: str | None = Field(default=None, description="Persistent state file")
    region: str | None = Field(default=None, description="Geohash to watch")
    locate: bool = Field(default=False, description="Locate the host when no region is set")

    @field_validator("region", mode="after")
    @classmethod
    def validate_region(cls, v: str | None) -> str | None:
        """Normalize the region and reject anything that is not a geohash."""
        if v is None:
            return v
        region = normalize_geohash(v)
        if not is_valid_geohash(region):
            raise ValueError(f"Invalid region geohash: {v!r}")
        return region
