"""
Pytest configuration and shared fixtures for georelay tests.

Provides:
- A fake relay pool that records subscriptions instead of opening sockets
- A manual clock
- A relay directory with fixed entries
- A connection manager wired to both
- An event factory producing NIP-01 event dicts
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pytest
from nostr_sdk import Filter

from georelay.core.state import StateStore
from georelay.models import RelayEndpoint
from georelay.services.directory import DirectoryConfig, RelayDirectory
from georelay.services.manager import ConnectionManager, ConnectionManagerConfig
from georelay.utils.transport import SubscriptionHandlers


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Fakes
# ============================================================================


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeSubscription:
    relays: list[str]
    filters: list[dict[str, Any]]
    handlers: SubscriptionHandlers
    active: bool = True


@dataclass
class FakeRelayPool:
    """Relay pool that records subscriptions; tests drive the handlers."""

    subscriptions: list[FakeSubscription] = field(default_factory=list)
    closed: bool = False

    def subscribe(
        self,
        relays: Sequence[str],
        filters: Sequence[Filter],
        handlers: SubscriptionHandlers,
    ) -> Callable[[], None]:
        decoded = [json.loads(f.as_json()) for f in filters]
        sub = FakeSubscription(list(relays), decoded, handlers)
        self.subscriptions.append(sub)

        def unsubscribe() -> None:
            sub.active = False

        return unsubscribe

    async def close(self) -> None:
        self.closed = True

    @property
    def active(self) -> list[FakeSubscription]:
        return [s for s in self.subscriptions if s.active]

    @property
    def primary(self) -> FakeSubscription:
        """The latest active subscription carrying the content kinds."""
        for sub in reversed(self.subscriptions):
            if sub.active and 20000 in sub.filters[0].get("kinds", []):
                return sub
        raise AssertionError("no active primary subscription")


# ============================================================================
# Fixtures
# ============================================================================

DIRECTORY_ENTRIES = (
    RelayEndpoint("nyc1.example", 40.71, -74.00),
    RelayEndpoint("nyc2.example", 40.73, -73.99),
    RelayEndpoint("newark.example", 40.73, -74.17),
    RelayEndpoint("boston.example", 42.36, -71.06),
    RelayEndpoint("philly.example", 39.95, -75.16),
    RelayEndpoint("london.example", 51.50, -0.12),
    RelayEndpoint("paris.example", 48.85, 2.35),
    RelayEndpoint("sf.example", 37.77, -122.42),
    RelayEndpoint("tokyo.example", 35.68, 139.69),
)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fake_pool() -> FakeRelayPool:
    return FakeRelayPool()


@pytest.fixture
def state(clock: ManualClock) -> StateStore:
    """In-memory state with a fresh directory fetch, so no refresh is due."""
    store = StateStore()
    store.set("georelay.lastFetchAt", clock.now)
    return store


@pytest.fixture
def directory(clock: ManualClock, state: StateStore) -> RelayDirectory:
    """Directory preloaded with fixed entries and no remote refresh."""
    return RelayDirectory(
        DirectoryConfig(auto_refresh=False),
        state=state,
        entries=DIRECTORY_ENTRIES,
        clock=clock,
    )


@pytest.fixture
def manager_config() -> ConnectionManagerConfig:
    return ConnectionManagerConfig(geo_relay_count=3)


@pytest.fixture
def manager(
    directory: RelayDirectory,
    manager_config: ConnectionManagerConfig,
    fake_pool: FakeRelayPool,
    clock: ManualClock,
) -> ConnectionManager:
    return ConnectionManager(
        directory,
        manager_config,
        pool_factory=lambda: fake_pool,
        clock=clock,
    )


@pytest.fixture
def make_event() -> Callable[..., dict[str, Any]]:
    """Factory for NIP-01 event dicts."""
    counter = iter(range(1, 1_000_000))

    def _make(
        *,
        id: str | None = None,  # noqa: A002
        kind: int = 20000,
        g: str | None = None,
        d: str | None = None,
        tags: list[list[str]] | None = None,
        created_at: int = 1_700_000_000,
        content: str = "hello",
    ) -> dict[str, Any]:
        all_tags = list(tags or [])
        if g is not None:
            all_tags.append(["g", g])
        if d is not None:
            all_tags.append(["d", d])
        return {
            "id": id or f"{next(counter):064x}",
            "pubkey": "b" * 64,
            "created_at": created_at,
            "kind": kind,
            "tags": all_tags,
            "content": content,
            "sig": "c" * 128,
        }

    return _make
