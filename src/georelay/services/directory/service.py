"""Relay directory: relay hosts annotated with coordinates.

The directory is an explicit handle, constructed once and passed to every
consumer. Its entries live in an immutable tuple that a successful remote
refresh replaces in a single assignment, so lookups never lock and never
see a half-updated list.

Loading order:

1. the cached snapshot from the [StateStore][georelay.core.state.StateStore]
   (``georelays_cache.csv``), if it parses to at least one entry;
2. otherwise the configured ``snapshot_path`` or the bundled
   ``online_relays_gps.csv``.

Independently of loading, a remote refresh runs in the background once
``refresh_interval`` (default 24h) has passed since the last successful
fetch. A failed refresh is logged and leaves the entries untouched; it is
not attempted again until another interval has elapsed.

Examples:
    ```python
    directory = RelayDirectory(DirectoryConfig(), state=StateStore("state.json"))
    async with directory:
        directory.closest_relays("dr5r", 3)
        # ['wss://nyc.relay.example', ...]
    ```
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import Self

import aiohttp

from georelay.core.exceptions import DirectoryFetchError, StateStoreError
from georelay.core.logger import Logger
from georelay.core.retry import retry_async
from georelay.core.state import StateStore
from georelay.models import RelayEndpoint
from georelay.utils.http import fetch_text

from .configs import DirectoryConfig
from .utils import closest_relays, load_bundled_snapshot, parse_relay_csv


class RelayDirectory:
    """Directory of relay endpoints with proximity lookup.

    Args:
        config: Sources, schedule and keys. Defaults to ``DirectoryConfig()``.
        state: Persistence for the cache and timestamp. In-memory if omitted.
        entries: Start with these entries instead of loading any snapshot
            (the directory is immediately ready).
        clock: Wall-clock source, injectable for tests.
        session: Shared ``aiohttp.ClientSession`` for remote fetches.
    """

    def __init__(
        self,
        config: DirectoryConfig | None = None,
        *,
        state: StateStore | None = None,
        entries: tuple[RelayEndpoint, ...] | None = None,
        clock: Callable[[], float] = time.time,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config or DirectoryConfig()
        self._state = state or StateStore()
        self._clock = clock
        self._session = session
        self._logger = Logger("directory")
        self._entries: tuple[RelayEndpoint, ...] = ()
        self._ready = asyncio.Event()
        self._refresh_task: asyncio.Task[bool] | None = None
        self._last_attempt: float | None = None

        if entries is not None:
            self._entries = tuple(entries)
            self._ready.set()

    @property
    def config(self) -> DirectoryConfig:
        return self._config

    @property
    def entries(self) -> tuple[RelayEndpoint, ...]:
        """Current snapshot of directory entries."""
        return self._entries

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load(self) -> int:
        """Load the cached or bundled snapshot and mark the directory ready.

        Returns:
            Number of entries loaded (0 if neither source had usable rows,
            in which case every lookup returns an empty list).
        """
        source = "cache"
        entries: tuple[RelayEndpoint, ...] = ()

        cached = self._state.get(self._config.cache_key)
        if isinstance(cached, str):
            entries = parse_relay_csv(cached)

        if not entries:
            source = self._config.snapshot_path or "bundled"
            entries = parse_relay_csv(self._read_snapshot())

        self._entries = entries
        self._ready.set()
        self._logger.info("directory_loaded", source=source, entries=len(entries))
        return len(entries)

    def _read_snapshot(self) -> str:
        try:
            if self._config.snapshot_path:
                return Path(self._config.snapshot_path).read_text(encoding="utf-8")
            return load_bundled_snapshot()
        except (OSError, UnicodeDecodeError) as e:
            self._logger.warning("snapshot_unavailable", error=str(e))
            return ""

    async def wait_ready(self) -> None:
        """Return once local data is loaded, loading it first if needed.

        The first call also schedules a background refresh when
        ``auto_refresh`` is enabled; the refresh never delays this call.
        """
        if not self._ready.is_set():
            self.load()
            if self._config.auto_refresh:
                self.schedule_refresh()
        await self._ready.wait()

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def closest_relays(self, geohash: str, count: int) -> list[str]:
        """``wss://`` URLs of the ``count`` entries nearest to ``geohash``'s center.

        Results are in non-decreasing distance; ties keep directory order.
        Returns an empty list when the directory has no entries.
        """
        return closest_relays(self._entries, geohash.strip().lower(), count)

    # -------------------------------------------------------------------------
    # Remote refresh
    # -------------------------------------------------------------------------

    @property
    def last_fetch_at(self) -> float | None:
        value = self._state.get(self._config.timestamp_key)
        return float(value) if isinstance(value, int | float) else None

    def is_refresh_due(self, now: float | None = None) -> bool:
        """Whether ``refresh_interval`` has elapsed since the last fetch.

        In-session failed attempts count as well, so a failing source is not
        hammered before the next interval.
        """
        now = self._clock() if now is None else now
        last = max(self.last_fetch_at or 0.0, self._last_attempt or 0.0)
        return now - last >= self._config.refresh_interval

    async def refresh(self, *, force: bool = False) -> bool:
        """Fetch the remote snapshot and swap it in.

        Skipped unless a refresh is due or ``force`` is set. On success the
        entries are replaced and the raw CSV and fetch time are persisted.
        Every failure (network, timeout, oversized body, zero usable rows)
        is logged and leaves the current entries in place.

        Returns:
            True if the entries were replaced.
        """
        now = self._clock()
        if not force and not self.is_refresh_due(now):
            self._logger.debug("refresh_skipped", last_fetch_at=self.last_fetch_at)
            return False

        self._last_attempt = now
        try:
            text = await retry_async(
                self._fetch_remote,
                self._config.fetch_retry,
                retry_on=(DirectoryFetchError, TimeoutError, OSError),
                name="directory_fetch",
            )
            entries = parse_relay_csv(text)
            if not entries:
                raise DirectoryFetchError("remote snapshot has no usable rows")
        except (DirectoryFetchError, TimeoutError, OSError) as e:
            self._logger.warning(
                "refresh_failed",
                url=self._config.remote_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        self._entries = entries

        try:
            self._state.update({self._config.cache_key: text, self._config.timestamp_key: now})
        except StateStoreError as e:
            self._logger.warning("cache_write_failed", error=str(e))

        self._logger.info("refresh_completed", entries=len(entries))
        return True

    async def _fetch_remote(self) -> str:
        try:
            return await fetch_text(
                self._config.remote_url,
                timeout=self._config.fetch_timeout,
                max_size=self._config.max_size,
                session=self._session,
            )
        except aiohttp.ClientResponseError as e:
            raise DirectoryFetchError(f"HTTP {e.status} from {self._config.remote_url}") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise DirectoryFetchError(str(e)) from e

    def schedule_refresh(self) -> asyncio.Task[bool] | None:
        """Start a background refresh if one is due and none is running.

        Fire-and-forget: the task handles its own failures.
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            return self._refresh_task
        if not self.is_refresh_due():
            return None
        self._refresh_task = asyncio.create_task(self.refresh(), name="georelay-directory-refresh")
        return self._refresh_task

    async def close(self) -> None:
        """Cancel a pending background refresh."""
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def __aenter__(self) -> Self:
        await self.wait_ready()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
