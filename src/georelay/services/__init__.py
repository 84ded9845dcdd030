"""Relay directory, connection manager and the headless watcher.

Services are the top layer of the diamond DAG, depending on
[georelay.core][georelay.core], [georelay.utils][georelay.utils] and
[georelay.models][georelay.models].

```text
RelayDirectory -> ConnectionManager -> Watcher
```

Attributes:
    RelayDirectory: Relay hosts with coordinates, proximity lookup and a
        TTL-gated remote refresh.
    ConnectionManager: Relay topology, subscriptions, event ingestion,
        counters and the event store.
    Watcher: [BaseService][georelay.core.base_service.BaseService] that runs
        the two above without a UI.

Examples:
    ```python
    from georelay.services import ConnectionManager, RelayDirectory

    directory = RelayDirectory()
    manager = ConnectionManager(directory)
    async with manager:
        await manager.connect_to_geo_relays("9q8y")
        manager.hierarchical_count("9q8")
    ```
"""

from .directory import DirectoryConfig, RelayDirectory
from .manager import ConnectionManager, ConnectionManagerConfig
from .watcher import Watcher, WatcherConfig


__all__ = [
    "ConnectionManager",
    "ConnectionManagerConfig",
    "DirectoryConfig",
    "RelayDirectory",
    "Watcher",
    "WatcherConfig",
]
