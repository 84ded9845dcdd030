"""Headless watcher: keeps a connection manager running and reports on it.

The watcher owns one [RelayDirectory][georelay.services.directory.RelayDirectory]
and one [ConnectionManager][georelay.services.manager.ConnectionManager].
It is the process-level runner used by the CLI.

Lifecycle:
    1. ``__aenter__``: load the directory, connect, then join the
       configured region's georelays (or the host's, with ``locate``).
    2. ``run()``: schedule a directory refresh when due, prune retained
       events, log and publish the current state.
    3. ``__aexit__``: disconnect and cancel any pending refresh.

See Also:
    [BaseService][georelay.core.base_service.BaseService]: Lifecycle,
        interval loop and metrics.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, ClassVar

from georelay.core.base_service import BaseService
from georelay.core.exceptions import ConnectivityError, GeolocationError
from georelay.core.state import StateStore
from georelay.models.constants import ServiceName
from georelay.services.directory import RelayDirectory
from georelay.services.manager import ConnectionManager

from .configs import WatcherConfig


if TYPE_CHECKING:
    from types import TracebackType


class Watcher(BaseService[WatcherConfig]):
    """Runs the relay aggregation engine without a UI.

    Args:
        config: Service configuration.
        directory: Use this directory instead of building one from config.
        manager: Use this manager instead of building one from config.
        clock: Wall-clock source for pruning and stats.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.WATCHER
    CONFIG_CLASS: ClassVar[type[WatcherConfig]] = WatcherConfig

    def __init__(
        self,
        config: WatcherConfig | None = None,
        *,
        directory: RelayDirectory | None = None,
        manager: ConnectionManager | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(config)
        self._clock = clock
        if directory is None:
            state = StateStore(self._config.state_path)
            directory = RelayDirectory(self._config.directory, state=state, clock=clock)
        self._directory = directory
        self._manager = manager or ConnectionManager(directory, self._config.manager, clock=clock)

    @property
    def directory(self) -> RelayDirectory:
        return self._directory

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    async def __aenter__(self) -> Watcher:
        await super().__aenter__()
        await self._directory.wait_ready()
        await self._manager.connect()

        if self._config.region is not None:
            added = await self._manager.connect_to_geo_relays(self._config.region)
            self._logger.info("region_joined", region=self._config.region, relays=len(added))
        elif self._config.locate:
            try:
                local = await self._manager.connect_nearby()
                self._logger.info("nearby_joined", region=self._manager.region, relays=len(local))
            except (GeolocationError, ConnectivityError) as e:
                self._logger.warning("nearby_failed", error=str(e), error_type=type(e).__name__)
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self._manager.disconnect()
        await self._directory.close()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def run(self) -> None:
        """One reporting cycle."""
        if self._directory.schedule_refresh() is not None:
            self.inc_counter("directory_refreshes")

        now = self._clock()
        pruned = self._manager.store.prune(now)
        if pruned:
            self.inc_counter("events_pruned", pruned)

        snapshot = self._manager.snapshot()
        stats = self._manager.store.stats(now)

        self.set_gauge("relays_connected", snapshot.connected_count)
        self.set_gauge("relays_tracked", len(snapshot.relays))
        self.set_gauge("events_stored", snapshot.event_count)
        self.set_gauge("regions_observed", snapshot.region_count)

        self._logger.info(
            "cycle_stats",
            status=snapshot.status_text,
            region=snapshot.region,
            events=stats.total,
            flagged=stats.flagged,
            regions=snapshot.region_count,
            pruned=pruned,
        )
