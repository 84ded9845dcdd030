"""Geographic value types: relay directory entries and geohash boxes."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Rectangular region covered by a geohash, in decimal degrees.

    Attributes:
        min_lat: Southern edge.
        max_lat: Northern edge.
        min_lon: Western edge.
        max_lon: Eastern edge.
    """

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @property
    def center(self) -> tuple[float, float]:
        """Midpoint of the box as ``(lat, lon)``."""
        return (self.min_lat + self.max_lat) / 2, (self.min_lon + self.max_lon) / 2

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon


@dataclass(frozen=True, slots=True)
class RelayEndpoint:
    """A relay host annotated with approximate coordinates.

    Identity is the host string. The host is stored without scheme or
    trailing slash; [url][georelay.models.geo.RelayEndpoint.url] adds the
    ``wss://`` prefix used for connections.

    Attributes:
        host: Bare hostname, optionally with port or path.
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.

    Raises:
        ValueError: If ``host`` is empty or a coordinate is not finite.
    """

    host: str
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must not be empty")
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            raise ValueError(f"non-finite coordinates for {self.host}: {self.lat},{self.lon}")

    @property
    def url(self) -> str:
        return f"wss://{self.host}"
