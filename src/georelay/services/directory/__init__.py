"""Relay directory package.

Re-exports all public symbols::

    from georelay.services.directory import RelayDirectory, DirectoryConfig
"""

from .configs import DEFAULT_REMOTE_URL, DirectoryConfig
from .service import RelayDirectory
from .utils import closest_relays, load_bundled_snapshot, normalize_host, parse_relay_csv


__all__ = [
    "DEFAULT_REMOTE_URL",
    "DirectoryConfig",
    "RelayDirectory",
    "closest_relays",
    "load_bundled_snapshot",
    "normalize_host",
    "parse_relay_csv",
]
