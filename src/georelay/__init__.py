r"""georelay -- geospatial relay aggregation engine for Nostr.

Connects to a small fixed set of relays plus the relays nearest to a
region of interest, ingests location-tagged and channel messages, and
keeps per-region counters with hierarchical geohash rollups.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Directory, connection manager, watcher
             /        \
          core        utils    Infrastructure and network/geo helpers
             \        /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses. Zero I/O, depends only on stdlib.
    core: Base service, exceptions, logging, metrics, retry, state store.
    utils: Geohash codec, haversine, HTTP fetches, relay pool.
    services: Relay directory, connection manager and watcher.

Note:
    For lightweight usage, import directly from subpackages::

        from georelay.models import StoredEvent
        from georelay.services.manager import ConnectionManager

    Top-level imports (``from georelay import ConnectionManager``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("georelay")

__all__ = [
    "BaseService",
    "ConnectedRelay",
    "ConnectionManager",
    "ConnectionManagerConfig",
    "ConnectionSnapshot",
    "DirectoryConfig",
    "GeohashStatRecord",
    "Logger",
    "RelayDirectory",
    "RelayEndpoint",
    "RetryPolicy",
    "StateStore",
    "StoredEvent",
    "Watcher",
    "WatcherConfig",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("georelay.core", "BaseService"),
    "Logger": ("georelay.core", "Logger"),
    "RetryPolicy": ("georelay.core", "RetryPolicy"),
    "StateStore": ("georelay.core", "StateStore"),
    "ConnectedRelay": ("georelay.models", "ConnectedRelay"),
    "ConnectionSnapshot": ("georelay.models", "ConnectionSnapshot"),
    "GeohashStatRecord": ("georelay.models", "GeohashStatRecord"),
    "RelayEndpoint": ("georelay.models", "RelayEndpoint"),
    "StoredEvent": ("georelay.models", "StoredEvent"),
    "ConnectionManager": ("georelay.services", "ConnectionManager"),
    "ConnectionManagerConfig": ("georelay.services", "ConnectionManagerConfig"),
    "DirectoryConfig": ("georelay.services", "DirectoryConfig"),
    "RelayDirectory": ("georelay.services", "RelayDirectory"),
    "Watcher": ("georelay.services", "Watcher"),
    "WatcherConfig": ("georelay.services", "WatcherConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'georelay' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
