"""georelay exception hierarchy.

Typed exceptions for each failure category, so callers can catch the
transient ones (remote directory down, geolocation lookup failed, no relay
reachable) without a bare ``except Exception`` and let ``CancelledError``
propagate untouched. The utils layer raises builtins (``OSError``,
``ValueError``, ``aiohttp.ClientError``); services translate them into the
types below at their boundary.

Exception hierarchy:

```text
GeoRelayError (base -- never raised directly)
├── ConfigurationError       -- config validation, bad YAML, bad region
├── StateStoreError          -- key-value state file unwritable
├── ConnectivityError        -- no relay could be selected or reached
├── DirectoryFetchError      -- remote relay directory unusable
└── GeolocationError         -- IP geolocation returned no position
```

See Also:
    [RelayDirectory.refresh()][georelay.services.directory.service.RelayDirectory.refresh]:
        Absorbs [DirectoryFetchError][georelay.core.exceptions.DirectoryFetchError].
    [ConnectionManager.connect_nearby()][georelay.services.manager.service.ConnectionManager.connect_nearby]:
        Retries on [GeolocationError][georelay.core.exceptions.GeolocationError]
        and [ConnectivityError][georelay.core.exceptions.ConnectivityError].
    [retry_async()][georelay.core.retry.retry_async]: Re-raises the last
        error once a [RetryPolicy][georelay.core.retry.RetryPolicy] is exhausted.
"""

from __future__ import annotations


class GeoRelayError(Exception):
    """Base exception for all georelay errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration and state
# ---------------------------------------------------------------------------


class ConfigurationError(GeoRelayError):
    """Invalid or missing configuration (YAML, CLI flags, bad region)."""


class StateStoreError(GeoRelayError):
    """The persisted key-value state could not be written.

    See Also:
        [StateStore][georelay.core.state.StateStore]: Raises this on
            flush failures.
    """


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


class ConnectivityError(GeoRelayError):
    """No relay could be selected or reached for a requested region."""


class DirectoryFetchError(GeoRelayError):
    """The remote relay directory could not be fetched, was oversized, or
    contained no usable rows."""


class GeolocationError(GeoRelayError):
    """The geolocation endpoint did not yield a usable position."""
