"""IP-based geolocation for the connect-nearby flow."""

from __future__ import annotations

import math

import aiohttp
import jmespath
from jmespath.exceptions import JMESPathError

from georelay.core.exceptions import GeolocationError
from georelay.utils.http import fetch_json

from .configs import GeolocationConfig


async def locate_host(
    config: GeolocationConfig,
    session: aiohttp.ClientSession | None = None,
) -> tuple[float, float]:
    """Look up the approximate ``(lat, lon)`` of this host.

    Raises:
        GeolocationError: On network failure, an unparseable response, or
            coordinates that are missing or out of range.
    """
    try:
        payload = await fetch_json(config.url, timeout=config.timeout, session=session)
    except (aiohttp.ClientError, TimeoutError, OSError, ValueError) as e:
        raise GeolocationError(f"geolocation lookup failed: {e}") from e

    try:
        lat = float(jmespath.search(config.latitude_path, payload))
        lon = float(jmespath.search(config.longitude_path, payload))
    except (JMESPathError, TypeError, ValueError) as e:
        raise GeolocationError(f"geolocation response has no coordinates: {e}") from e

    if not (math.isfinite(lat) and math.isfinite(lon)) or abs(lat) > 90 or abs(lon) > 180:
        raise GeolocationError(f"geolocation coordinates out of range: {lat}, {lon}")
    return lat, lon
