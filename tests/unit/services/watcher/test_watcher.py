"""
Unit tests for services.watcher module.

Tests:
- WatcherConfig region validation and nested construction
- __aenter__: region join, locate, locate failure
- run(): pruning, gauges and refresh scheduling
- __aexit__: disconnect and directory close
"""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from prometheus_client import REGISTRY

from georelay.core.exceptions import GeolocationError
from georelay.core.metrics import MetricsConfig
from georelay.core.retry import RetryPolicy
from georelay.models.constants import ServiceName
from georelay.services.directory import RelayDirectory
from georelay.services.manager import (
    ConnectionManager,
    ConnectionManagerConfig,
    EventStoreConfig,
    GeolocationConfig,
)
from georelay.services.watcher import Watcher, WatcherConfig


NYC = {"wss://nyc1.example", "wss://nyc2.example", "wss://newark.example"}
FAST_RETRY = RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0)


def _gauge(name: str) -> float | None:
    return REGISTRY.get_sample_value(
        "georelay_service_gauge", {"service": "watcher", "name": name}
    )


def _counter(name: str) -> float:
    value = REGISTRY.get_sample_value(
        "georelay_service_counter_total", {"service": "watcher", "name": name}
    )
    return value or 0.0


def _watcher(
    directory: RelayDirectory,
    fake_pool: Any,
    clock: Any,
    *,
    manager_config: ConnectionManagerConfig | None = None,
    locator: Any = None,
    **config: Any,
) -> Watcher:
    manager_config = manager_config or ConnectionManagerConfig(geo_relay_count=3)
    kwargs: dict[str, Any] = {"pool_factory": lambda: fake_pool, "clock": clock}
    if locator is not None:
        kwargs["locator"] = locator
    manager = ConnectionManager(directory, manager_config, **kwargs)
    return Watcher(
        WatcherConfig(manager=manager_config, **config),
        directory=directory,
        manager=manager,
        clock=clock,
    )


# ============================================================================
# Configuration
# ============================================================================


class TestWatcherConfig:
    """WatcherConfig."""

    def test_defaults(self) -> None:
        config = WatcherConfig()
        assert config.region is None
        assert config.locate is False
        assert config.state_path is None
        assert config.interval == 60.0
        assert config.manager.max_local_relays == 5

    def test_region_normalized(self) -> None:
        assert WatcherConfig(region=" DR5R ").region == "dr5r"

    @pytest.mark.parametrize("region", ["", "nyc!", "9qa"])
    def test_invalid_region_rejected(self, region: str) -> None:
        with pytest.raises(ValueError):
            WatcherConfig(region=region)

    def test_nested_dict(self) -> None:
        config = WatcherConfig(
            **{
                "region": "9q8y",
                "directory": {"refresh_interval": 3600},
                "manager": {"max_local_relays": 2, "store": {"max_age": 600}},
            }
        )
        assert config.directory.refresh_interval == 3600
        assert config.manager.max_local_relays == 2
        assert config.manager.store.max_age == 600


class TestWatcherInit:
    """Watcher construction."""

    def test_builds_its_own_components(self) -> None:
        watcher = Watcher()
        assert watcher.SERVICE_NAME is ServiceName.WATCHER
        assert isinstance(watcher.directory, RelayDirectory)
        assert isinstance(watcher.manager, ConnectionManager)

    def test_from_dict(self) -> None:
        watcher = Watcher.from_dict({"region": "u09t", "interval": 30})
        assert watcher.config.region == "u09t"
        assert watcher.config.interval == 30


# ============================================================================
# Lifecycle
# ============================================================================


class TestLifecycle:
    """__aenter__ / __aexit__."""

    @pytest.mark.asyncio
    async def test_joins_configured_region(
        self, directory: RelayDirectory, fake_pool: Any, clock: Any
    ) -> None:
        watcher = _watcher(directory, fake_pool, clock, region="dr5r")

        async with watcher:
            assert watcher.manager.is_enabled
            assert watcher.manager.region == "dr5r"
            assert set(watcher.manager.local_relays) == NYC
            assert watcher.is_running

        assert not watcher.manager.is_enabled
        assert fake_pool.closed
        assert not watcher.is_running

    @pytest.mark.asyncio
    async def test_without_region_only_initial_relays(
        self, directory: RelayDirectory, fake_pool: Any, clock: Any
    ) -> None:
        async with _watcher(directory, fake_pool, clock) as watcher:
            assert watcher.manager.local_relays == []
            assert watcher.manager.region is None

    @pytest.mark.asyncio
    async def test_locate(self, directory: RelayDirectory, fake_pool: Any, clock: Any) -> None:
        locator = AsyncMock(return_value=(40.71, -74.0))
        async with _watcher(directory, fake_pool, clock, locator=locator, locate=True) as watcher:
            assert set(watcher.manager.local_relays) == NYC
        locator.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_locate_failure_is_not_fatal(
        self, directory: RelayDirectory, fake_pool: Any, clock: Any
    ) -> None:
        locator = AsyncMock(side_effect=GeolocationError("offline"))
        manager_config = ConnectionManagerConfig(geolocation=GeolocationConfig(retry=FAST_RETRY))
        watcher = _watcher(
            directory,
            fake_pool,
            clock,
            manager_config=manager_config,
            locator=locator,
            locate=True,
        )

        async with watcher:
            assert watcher.manager.is_enabled
            assert watcher.manager.local_relays == []
        assert locator.await_count == 2

    @pytest.mark.asyncio
    async def test_region_wins_over_locate(
        self, directory: RelayDirectory, fake_pool: Any, clock: Any
    ) -> None:
        locator = AsyncMock(return_value=(48.85, 2.35))
        async with _watcher(
            directory, fake_pool, clock, locator=locator, region="dr5r", locate=True
        ) as watcher:
            assert watcher.manager.region == "dr5r"
        locator.assert_not_awaited()


# ============================================================================
# Run Cycle
# ============================================================================


class TestRun:
    """run()."""

    @pytest.mark.asyncio
    async def test_publishes_gauges(
        self,
        directory: RelayDirectory,
        fake_pool: Any,
        clock: Any,
        make_event: Callable[..., dict[str, Any]],
    ) -> None:
        watcher = _watcher(
            directory, fake_pool, clock, region="dr5r", metrics=MetricsConfig(enabled=True)
        )
        async with watcher:
            fake_pool.primary.handlers.on_eose("wss://nyc1.example")
            watcher.manager.handle_event(make_event(g="dr5rs"), "wss://nyc1.example")
            watcher.manager.handle_event(make_event(kind=23333, d="general"))
            await watcher.run()

        assert _gauge("relays_connected") == 1
        assert _gauge("relays_tracked") == 8
        assert _gauge("events_stored") == 2
        assert _gauge("regions_observed") == 2

    @pytest.mark.asyncio
    async def test_prunes_expired_events(
        self,
        directory: RelayDirectory,
        fake_pool: Any,
        clock: Any,
        make_event: Callable[..., dict[str, Any]],
    ) -> None:
        manager_config = ConnectionManagerConfig(store=EventStoreConfig(max_age=60))
        watcher = _watcher(
            directory,
            fake_pool,
            clock,
            manager_config=manager_config,
            metrics=MetricsConfig(enabled=True),
        )
        before = _counter("events_pruned")

        async with watcher:
            watcher.manager.handle_event(make_event(g="9q8y"))
            clock.advance(120)
            watcher.manager.handle_event(make_event(g="9q8z"))
            await watcher.run()

            assert [e.region for e in watcher.manager.events] == ["9q8z"]
            assert watcher.manager.hierarchical_count("9q8") == 2

        assert _counter("events_pruned") - before == 1

    @pytest.mark.asyncio
    async def test_schedules_due_refresh(
        self, directory: RelayDirectory, fake_pool: Any, clock: Any
    ) -> None:
        watcher = _watcher(directory, fake_pool, clock)
        async with watcher:
            with patch.object(directory, "schedule_refresh", return_value=None) as schedule:
                await watcher.run()
        schedule.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_metrics_disabled_is_silent(
        self, directory: RelayDirectory, fake_pool: Any, clock: Any
    ) -> None:
        before = _counter("directory_refreshes")
        watcher = _watcher(directory, fake_pool, clock)
        async with watcher:
            clock.advance(86400)
            with patch.object(directory, "refresh", AsyncMock(return_value=False)):
                await watcher.run()
        assert _counter("directory_refreshes") == before
