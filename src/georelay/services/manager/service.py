"""Connection manager: relay topology, subscriptions and event ingestion.

The manager owns the set of connected relays and everything derived from
the events they deliver. Relays come in two roles:

* ``INITIAL`` relays are loaded by [connect()][georelay.services.manager.service.ConnectionManager.connect],
  either a fixed fallback list or one relay per top-level geohash cell;
* ``LOCAL`` relays are picked from the
  [RelayDirectory][georelay.services.directory.RelayDirectory] for their
  proximity to a region and never exceed ``max_local_relays``.

One primary subscription covers every tracked relay and is rebuilt
whenever the relay set changes; the previous subscription is always
cancelled before its replacement is opened.

Every inbound event goes through the same ingestion path:

1. parse and drop ids already seen this session, including events the
   store has since evicted or pruned;
2. apply the per-kind admission rule
   ([classify_event()][georelay.services.manager.utils.classify_event]);
3. count it under its exact key (``total_count``);
4. attribute it to the matching key of the active view (``direct_count``)
   and tell the activity observers;
5. store it, record suggested relays, then notify state observers.

Topology changes are serialized by a lock; ingestion runs synchronously
inside pool callbacks and never awaits.

See Also:
    [StatsAggregator][georelay.services.manager.stats.StatsAggregator]:
        Counters and hierarchical rollups.
    [EventStore][georelay.services.manager.store.EventStore]: Deduplicated
        event storage.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from types import TracebackType
from typing import Any, Self

from georelay.core.exceptions import ConnectivityError, GeolocationError
from georelay.core.logger import Logger
from georelay.core.retry import retry_async
from georelay.models import (
    ConnectedRelay,
    ConnectionSnapshot,
    CountVariant,
    EventKind,
    GeohashStatRecord,
    RelayRole,
    RelayStatus,
    StoredEvent,
    TagName,
)
from georelay.services.directory import RelayDirectory
from georelay.utils.geohash import (
    encode,
    find_matching_geohash,
    is_valid_geohash,
    normalize_geohash,
)
from georelay.utils.relay_url import is_relay_url, normalize_relay_url
from georelay.utils.transport import (
    RelayPool,
    SubscriptionHandlers,
    Unsubscribe,
    WebSocketRelayPool,
)

from .configs import ConnectionManagerConfig, GeolocationConfig
from .geolocation import locate_host
from .stats import StatsAggregator
from .store import EventStore
from .utils import (
    aggregate_status,
    build_content_filter,
    build_private_filter,
    classify_event,
    extract_tag,
    format_status_text,
    plan_local_relays,
    select_spread_relays,
)


StateObserver = Callable[[ConnectionSnapshot], None]
ActivityObserver = Callable[[str], None]
Locator = Callable[[GeolocationConfig], Awaitable[tuple[float, float]]]


class ConnectionManager:
    """Relay connections, subscriptions and the state derived from events.

    Args:
        directory: Relay directory used for proximity selection.
        config: Limits, filters and pool settings.
        pool_factory: Builds the relay pool on ``connect()``. Defaults to a
            [WebSocketRelayPool][georelay.utils.transport.WebSocketRelayPool]
            configured from ``config.pool``.
        clock: Wall-clock source, injectable for tests.
        locator: Resolves the host position for ``connect_nearby()``.
    """

    def __init__(
        self,
        directory: RelayDirectory,
        config: ConnectionManagerConfig | None = None,
        *,
        pool_factory: Callable[[], RelayPool] | None = None,
        clock: Callable[[], float] = time.time,
        locator: Locator = locate_host,
    ) -> None:
        self._directory = directory
        self._config = config or ConnectionManagerConfig()
        self._pool_factory = pool_factory or self._default_pool
        self._clock = clock
        self._locator = locator
        self._logger = Logger("manager")
        self._lock = asyncio.Lock()

        self._enabled = False
        self._pool: RelayPool | None = None
        self._relays: dict[str, ConnectedRelay] = {}
        self._primary_unsub: Unsubscribe | None = None
        self._private_unsub: Unsubscribe | None = None
        self._region: str | None = None

        self._search_geohash: str | None = None
        self._current_geohashes: tuple[str, ...] = ()

        self._stats = StatsAggregator()
        self._store = EventStore(
            max_age=self._config.store.max_age,
            max_events=self._config.store.max_events,
        )
        self._seen_ids: set[str] = set()
        self._private_inbox: dict[str, StoredEvent] = {}
        self._suggested: dict[str, list[str]] = {}

        self._observers: list[StateObserver] = []
        self._activity_observers: list[ActivityObserver] = []

    def _default_pool(self) -> RelayPool:
        pool = self._config.pool
        return WebSocketRelayPool(
            timeout=pool.timeout,
            verify_signatures=pool.verify_signatures,
            reconnect=pool.reconnect,
            reconnect_base_delay=pool.reconnect_base_delay,
        )

    # -------------------------------------------------------------------------
    # Properties and getters
    # -------------------------------------------------------------------------

    @property
    def config(self) -> ConnectionManagerConfig:
        return self._config

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def region(self) -> str | None:
        """Region the local relays were last selected for."""
        return self._region

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def events(self) -> list[StoredEvent]:
        """Stored events, newest first."""
        return self._store.events()

    @property
    def counts(self) -> dict[str, GeohashStatRecord]:
        """Raw counters per exact region or channel key."""
        return self._stats.records()

    @property
    def relays(self) -> tuple[ConnectedRelay, ...]:
        """Every tracked relay, initial relays first."""
        initial = [r for r in self._relays.values() if r.role is RelayRole.INITIAL]
        local = [r for r in self._relays.values() if r.role is RelayRole.LOCAL]
        return tuple(initial + local)

    @property
    def local_relays(self) -> list[str]:
        return [r.url for r in self._relays.values() if r.role is RelayRole.LOCAL]

    @property
    def status(self) -> RelayStatus:
        """Aggregate status; one connected relay is enough to be ``CONNECTED``."""
        return aggregate_status(self._enabled, (r.status for r in self._relays.values()))

    @property
    def status_text(self) -> str:
        connected = sum(1 for r in self._relays.values() if r.status is RelayStatus.CONNECTED)
        return format_status_text(self.status, connected, len(self._relays))

    @property
    def private_messages(self) -> list[StoredEvent]:
        """Opaque private envelopes addressed to the configured pubkey, newest first."""
        return sorted(self._private_inbox.values(), key=lambda e: e.created_at, reverse=True)

    def hierarchical_count(self, prefix: str, variant: CountVariant = CountVariant.DIRECT) -> int:
        return self._stats.hierarchical_count(prefix, variant)

    def all_counts_by_prefix(self, variant: CountVariant = CountVariant.DIRECT) -> dict[str, int]:
        return self._stats.all_counts_by_prefix(variant)

    def suggested_relays(self, channel: str) -> list[str]:
        """Relay URLs suggested by ``relay`` tags in messages on ``channel``."""
        return list(self._suggested.get(channel.strip().lower(), ()))

    def snapshot(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            status=self.status,
            status_text=self.status_text,
            region=self._region,
            relays=self.relays,
            event_count=len(self._store),
            region_count=len(self._stats),
        )

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def add_observer(self, callback: StateObserver) -> Callable[[], None]:
        """Register ``callback`` for state changes; returns its removal handle."""
        self._observers.append(callback)
        return lambda: self._remove(self._observers, callback)

    def add_activity_observer(self, callback: ActivityObserver) -> Callable[[], None]:
        """Register ``callback`` for the key each attributed event lands on."""
        self._activity_observers.append(callback)
        return lambda: self._remove(self._activity_observers, callback)

    @staticmethod
    def _remove(observers: list[Any], callback: Any) -> None:
        if callback in observers:
            observers.remove(callback)

    def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception as e:  # noqa: BLE001 - an observer must not break ingestion
                self._logger.error("observer_failed", error=str(e), error_type=type(e).__name__)

    def _notify_activity(self, key: str) -> None:
        for callback in list(self._activity_observers):
            try:
                callback(key)
            except Exception as e:  # noqa: BLE001 - an observer must not break ingestion
                self._logger.error(
                    "activity_observer_failed", key=key, error=str(e), error_type=type(e).__name__
                )

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the pool, load the initial relays and subscribe.

        A no-op while already enabled.
        """
        async with self._lock:
            if self._enabled:
                return
            self._enabled = True
            self._pool = self._pool_factory()

            for url in await self._initial_relay_urls():
                if url not in self._relays:
                    self._relays[url] = ConnectedRelay(url=url)
            self._subscribe_primary()
            self._subscribe_private()
            self._logger.info(
                "connected",
                strategy=self._config.initial_relays.strategy,
                relays=len(self._relays),
            )
        self._notify()

    async def _initial_relay_urls(self) -> list[str]:
        initial = self._config.initial_relays
        if initial.strategy == "spread":
            await self._directory.wait_ready()
            urls = select_spread_relays(initial.spread_prefixes, self._directory.closest_relays)
            if urls:
                return urls
            self._logger.warning("spread_relays_unavailable", fallback=len(initial.relays))
        return list(initial.relays)

    async def disconnect(self) -> None:
        """Cancel every subscription, drop the pool and mark all relays disconnected.

        Events and counters are kept; see
        [reset()][georelay.services.manager.service.ConnectionManager.reset].
        """
        async with self._lock:
            if not self._enabled and self._pool is None:
                return
            self._enabled = False
            self._unsubscribe_all()

            pool, self._pool = self._pool, None
            if pool is not None:
                await pool.close()

            for url, relay in self._relays.items():
                self._relays[url] = relay.with_status(RelayStatus.DISCONNECTED)
            self._logger.info("disconnected", relays=len(self._relays))
        self._notify()

    async def toggle(self) -> bool:
        """Connect if disconnected, disconnect otherwise. Returns the new enabled flag."""
        if self._enabled:
            await self.disconnect()
        else:
            await self.connect()
        return self._enabled

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    # -------------------------------------------------------------------------
    # Georelays
    # -------------------------------------------------------------------------

    async def connect_to_geo_relays(self, region: str) -> list[str]:
        """Bring the relays nearest to ``region`` into the local set.

        Waits for the directory, merges its nearest ``geo_relay_count``
        relays into the local set without exceeding ``max_local_relays``,
        and rebuilds the primary subscription.

        Returns:
            URLs newly added to the local set. Empty for an invalid region
            or when the directory has nothing to offer; neither is an error.
        """
        region = normalize_geohash(region)
        if not is_valid_geohash(region):
            self._logger.warning("region_invalid", region=region)
            return []

        await self._directory.wait_ready()

        async with self._lock:
            self._region = region
            proposed = self._directory.closest_relays(region, self._config.geo_relay_count)
            if not proposed:
                self._logger.info("georelays_unavailable", region=region)
                return []

            existing = self.local_relays
            initial = [r.url for r in self._relays.values() if r.role is RelayRole.INITIAL]
            planned = plan_local_relays(existing, proposed, initial, self._config.max_local_relays)

            added = [url for url in planned if url not in existing]
            removed = [url for url in existing if url not in planned]
            for url in removed:
                del self._relays[url]
            status = RelayStatus.CONNECTING if self._enabled else RelayStatus.DISCONNECTED
            for url in added:
                self._relays[url] = ConnectedRelay(
                    url=url,
                    assigned_region=region,
                    role=RelayRole.LOCAL,
                    status=status,
                )

            if added or removed:
                self._subscribe_primary()
            self._logger.info(
                "georelays_selected",
                region=region,
                added=len(added),
                removed=len(removed),
                local=len(planned),
            )
        self._notify()
        return added

    async def disconnect_from_geo_relays(self) -> None:
        """Drop every local relay and resubscribe on the initial set only."""
        async with self._lock:
            local = self.local_relays
            for url in local:
                del self._relays[url]
            self._region = None
            if local:
                self._subscribe_primary()
            self._logger.info("georelays_dropped", removed=len(local))
        self._notify()

    async def update_region(self, region: str) -> list[str]:
        """Select georelays for ``region`` unless it is already the tracked one."""
        if normalize_geohash(region) == self._region:
            return []
        return await self.connect_to_geo_relays(region)

    async def connect_nearby(self) -> list[str]:
        """Locate this host and connect to the georelays around it.

        Each attempt resolves the position, encodes it at the configured
        precision and selects georelays. A lookup failure or an empty local
        set fails the attempt; attempts follow the geolocation retry policy.

        Returns:
            The local relay URLs after a successful attempt.

        Raises:
            GeolocationError: If the last attempt could not locate the host.
            ConnectivityError: If the last attempt found no georelays.
        """
        geolocation = self._config.geolocation

        async def attempt() -> list[str]:
            lat, lon = await self._locator(geolocation)
            region = encode(lat, lon, precision=geolocation.precision)
            await self.connect_to_geo_relays(region)
            local = self.local_relays
            if not local:
                raise ConnectivityError(f"no georelays near {region}")
            self._logger.info("nearby_connected", region=region, relays=len(local))
            return local

        return await retry_async(
            attempt,
            geolocation.retry,
            retry_on=(GeolocationError, ConnectivityError),
            name="connect_nearby",
        )

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def _subscribe_primary(self) -> None:
        if self._primary_unsub is not None:
            self._primary_unsub()
            self._primary_unsub = None
        if not self._enabled or self._pool is None or not self._relays:
            return

        # Resubscribed relays report CONNECTED again on their next EOSE
        for url, relay in self._relays.items():
            self._relays[url] = relay.with_status(RelayStatus.CONNECTING)

        sub = self._config.subscription
        content_filter = build_content_filter(
            sub.kinds, sub.lookback_seconds, self._clock(), sub.limit
        )
        self._primary_unsub = self._pool.subscribe(
            list(self._relays),
            [content_filter],
            SubscriptionHandlers(
                on_event=self.handle_event,
                on_eose=self._on_eose,
                on_error=self._on_error,
            ),
        )

    def _subscribe_private(self) -> None:
        private = self._config.private_messages
        if private.pubkey is None or self._pool is None:
            return
        if self._private_unsub is not None:
            self._private_unsub()

        private_filter = build_private_filter(
            private.pubkey, private.kinds, private.lookback_seconds, self._clock()
        )
        self._private_unsub = self._pool.subscribe(
            list(self._relays),
            [private_filter],
            SubscriptionHandlers(on_event=self.handle_private_event),
        )

    def _unsubscribe_all(self) -> None:
        for unsubscribe in (self._primary_unsub, self._private_unsub):
            if unsubscribe is not None:
                unsubscribe()
        self._primary_unsub = None
        self._private_unsub = None

    def _on_eose(self, relay_url: str) -> None:
        relay = self._relays.get(relay_url)
        if relay is None:
            return
        self._relays[relay_url] = relay.with_status(RelayStatus.CONNECTED, at=self._clock())
        if relay.status is not RelayStatus.CONNECTED:
            self._logger.info("relay_connected", url=relay_url)
        self._notify()

    def _on_error(self, relay_url: str, error: BaseException) -> None:
        relay = self._relays.get(relay_url)
        if relay is None:
            return
        self._relays[relay_url] = relay.with_status(RelayStatus.DISCONNECTED)
        self._logger.warning(
            "relay_error", url=relay_url, error=str(error), error_type=type(error).__name__
        )
        self._notify()

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    def set_view(self, search_geohash: str | None, current_geohashes: Sequence[str] = ()) -> None:
        """Set the region on display, used to attribute ``direct_count``.

        Args:
            search_geohash: Searched cell; its children are on display.
            current_geohashes: Cells currently on display.
        """
        self._search_geohash = search_geohash
        self._current_geohashes = tuple(normalize_geohash(g) for g in current_geohashes)

    def _matching_key(self, key: str) -> str | None:
        if not self._search_geohash and not self._current_geohashes:
            return key
        return find_matching_geohash(key, self._search_geohash, self._current_geohashes)

    def handle_event(self, raw: dict[str, Any] | StoredEvent, relay_url: str | None = None) -> bool:
        """Ingest one inbound event.

        Args:
            raw: NIP-01 event object or an already parsed event.
            relay_url: Delivering relay.

        Returns:
            True if the event was new and accepted.
        """
        try:
            event = raw if isinstance(raw, StoredEvent) else StoredEvent.from_dict(raw, relay_url)
        except ValueError as e:
            self._logger.debug("event_invalid", relay=relay_url, error=str(e))
            return False

        now = self._clock()
        if relay_url is not None and relay_url in self._relays:
            self._relays[relay_url] = self._relays[relay_url].touched(now)

        if event.id in self._seen_ids:
            return False
        self._seen_ids.add(event.id)

        admission = classify_event(event)
        if not admission.accepted:
            self._logger.debug(
                "event_dropped", id=event.id, kind=event.kind, reason=admission.reason
            )
            return False
        if admission.flagged:
            self._logger.info("event_flagged", id=event.id, key=admission.key, reason=admission.reason)

        self._stats.record_event(admission.key)
        matching = self._matching_key(admission.key)
        if matching is not None:
            self._stats.record_activity(matching, now)
            self._notify_activity(matching)

        self._store.add(replace(event, region=admission.key, flagged=admission.flagged), now)
        if event.kind == EventKind.CHANNEL_MESSAGE:
            self._record_suggested(event)
        self._notify()
        return True

    def _record_suggested(self, event: StoredEvent) -> None:
        channel = extract_tag(event, TagName.CHANNEL)
        if channel is None:
            return
        for value in event.tag_values(TagName.RELAY):
            if not is_relay_url(value):
                continue
            urls = self._suggested.setdefault(channel.lower(), [])
            url = normalize_relay_url(value)
            if url not in urls:
                urls.append(url)

    def handle_private_event(self, raw: dict[str, Any], relay_url: str | None = None) -> bool:
        """Keep one private envelope in the inbox, deduplicated by id."""
        try:
            event = StoredEvent.from_dict(raw, relay_url)
        except ValueError as e:
            self._logger.debug("private_event_invalid", relay=relay_url, error=str(e))
            return False
        if event.id in self._private_inbox:
            return False
        self._private_inbox[event.id] = event
        self._notify()
        return True

    def reset(self) -> None:
        """Forget events, counters, suggestions and the private inbox."""
        self._store.clear()
        self._seen_ids.clear()
        self._stats.clear()
        self._suggested.clear()
        self._private_inbox.clear()
        self._notify()
