"""Geohash codec and hierarchy helpers.

A geohash is a base32 string over ``0123456789bcdefghjkmnpqrstuvwxyz``
(no ``a``, ``i``, ``l``, ``o``). Each character contributes 5 bits that
alternately bisect the longitude and latitude intervals, starting with
longitude. A string is a prefix of every geohash inside its box, which is
what the hierarchical counts rely on.

Decoding is lenient: characters outside the alphabet are skipped rather
than rejected. Validation is a separate, case-sensitive check
([is_valid_geohash()][georelay.utils.geohash.is_valid_geohash]).

Encoding delegates to ``geohash2``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

import geohash2

from georelay.models.constants import GEOHASH_ALPHABET
from georelay.models.geo import BoundingBox


_GEOHASH_RE = re.compile(r"^[0-9b-hjkmnp-z]+$")
_CHAR_VALUES = {c: i for i, c in enumerate(GEOHASH_ALPHABET)}


def is_valid_geohash(value: str) -> bool:
    """True if ``value`` is non-empty lowercase base32 geohash text."""
    return bool(_GEOHASH_RE.match(value))


def normalize_geohash(value: str) -> str:
    return value.strip().lower()


def decode(geohash: str) -> BoundingBox:
    """Decode ``geohash`` to the box it covers.

    Characters outside the alphabet are ignored, so ``decode("")`` and
    ``decode("!!")`` return the whole globe.
    """
    min_lat, max_lat = -90.0, 90.0
    min_lon, max_lon = -180.0, 180.0
    is_lon = True

    for char in geohash:
        value = _CHAR_VALUES.get(char)
        if value is None:
            continue
        for mask in (16, 8, 4, 2, 1):
            bit = value & mask
            if is_lon:
                mid = (min_lon + max_lon) / 2
                if bit:
                    min_lon = mid
                else:
                    max_lon = mid
            else:
                mid = (min_lat + max_lat) / 2
                if bit:
                    min_lat = mid
                else:
                    max_lat = mid
            is_lon = not is_lon

    return BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lon=min_lon, max_lon=max_lon)


def center(geohash: str) -> tuple[float, float]:
    """Midpoint ``(lat, lon)`` of the decoded box."""
    return decode(geohash).center


def encode(lat: float, lon: float, precision: int = 5) -> str:
    """Encode a position as a geohash of ``precision`` characters.

    Raises:
        ValueError: If ``precision`` is not positive.
    """
    if precision < 1:
        raise ValueError(f"precision must be >= 1, got {precision}")
    return geohash2.encode(lat, lon, precision=precision)


def is_prefix_of(prefix: str, geohash: str) -> bool:
    """True if ``geohash`` lies inside ``prefix`` (or equals it)."""
    return geohash.startswith(prefix)


def common_prefix_length(a: str, b: str) -> int:
    n = 0
    for x, y in zip(a, b, strict=False):
        if x != y:
            break
        n += 1
    return n


def find_matching_geohash(
    event_geohash: str,
    search_geohash: str | None,
    current_geohashes: Iterable[str],
) -> str | None:
    """Return the displayed geohash an event should be attributed to.

    With a valid ``search_geohash`` the view shows the children of the
    searched cell: an event inside it maps to its ancestor one character
    longer than the search, provided that cell is among
    ``current_geohashes``. Without a search, the first displayed geohash
    that is a prefix of the event's geohash wins.

    Args:
        event_geohash: Lowercase geohash carried by the event.
        search_geohash: Active search cell, any case, or None.
        current_geohashes: Cells currently on display.

    Returns:
        The matching displayed cell, or None if the event is off-screen.
    """
    if not event_geohash:
        return None

    current = list(current_geohashes)
    search = normalize_geohash(search_geohash) if search_geohash else ""

    if search and is_valid_geohash(search):
        if is_prefix_of(search, event_geohash):
            localized = event_geohash[: len(search) + 1]
            if localized in current:
                return localized
        return None

    for display in current:
        if is_prefix_of(display, event_geohash):
            return display
    return None
