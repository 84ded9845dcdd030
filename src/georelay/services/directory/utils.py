"""Relay directory utility functions.

Pure helpers that do not require directory instance state: CSV parsing,
host normalization, proximity ranking, and bundled snapshot access.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from importlib import resources

from georelay.models import RelayEndpoint
from georelay.utils.distance import haversine_km
from georelay.utils.geohash import center


_logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^(?:https?|wss?)://", re.IGNORECASE)

BUNDLED_SNAPSHOT = "online_relays_gps.csv"


def normalize_host(raw: str) -> str:
    """Strip whitespace, an ``http(s)://`` or ``ws(s)://`` scheme, and trailing slashes."""
    host = _SCHEME_RE.sub("", raw.strip())
    return host.rstrip("/")


def parse_relay_csv(text: str) -> tuple[RelayEndpoint, ...]:
    """Parse ``host,lat,lon`` rows into directory entries.

    A first row containing ``relay url`` (any case) is a header and skipped.
    Rows with fewer than three fields, an empty host, or non-numeric
    coordinates are skipped. Duplicate ``(host, lat, lon)`` triples keep
    their first occurrence, so file order is preserved.

    Args:
        text: Full CSV document.

    Returns:
        Entries in file order; empty if nothing usable was found.
    """
    entries: list[RelayEndpoint] = []
    seen: set[tuple[str, float, float]] = set()
    skipped = 0

    for index, line in enumerate(text.splitlines()):
        row = line.strip()
        if not row:
            continue
        if index == 0 and "relay url" in row.lower():
            continue

        parts = [p.strip() for p in row.split(",")]
        if len(parts) < 3:
            skipped += 1
            continue

        try:
            endpoint = RelayEndpoint(
                host=normalize_host(parts[0]),
                lat=float(parts[1]),
                lon=float(parts[2]),
            )
        except ValueError:
            skipped += 1
            continue

        triple = (endpoint.host, endpoint.lat, endpoint.lon)
        if triple in seen:
            continue
        seen.add(triple)
        entries.append(endpoint)

    if skipped:
        _logger.debug("relay_csv_rows_skipped count=%d", skipped)
    return tuple(entries)


def closest_relays(entries: Iterable[RelayEndpoint], geohash: str, count: int) -> list[str]:
    """Return ``wss://`` URLs of the ``count`` entries nearest to ``geohash``.

    Distance is measured from the geohash center. ``sorted`` is stable, so
    equal distances keep directory order.
    """
    if count <= 0:
        return []
    lat, lon = center(geohash)
    ranked = sorted(entries, key=lambda e: haversine_km(lat, lon, e.lat, e.lon))
    return [entry.url for entry in ranked[:count]]


def load_bundled_snapshot() -> str:
    """Read the relay snapshot shipped inside the package."""
    return resources.files("georelay.data").joinpath(BUNDLED_SNAPSHOT).read_text(encoding="utf-8")
