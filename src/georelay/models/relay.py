"""Relay connection records owned by the connection manager."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .constants import RelayRole, RelayStatus


@dataclass(frozen=True, slots=True)
class ConnectedRelay:
    """A relay in the manager's connection set.

    Instances are immutable; status changes produce a new record through
    [with_status()][georelay.models.relay.ConnectedRelay.with_status].

    Attributes:
        url: WebSocket URL (``wss://host``).
        assigned_region: Geohash the relay was selected for, empty for
            initial relays.
        role: ``INITIAL`` fallback or ``LOCAL`` georelay.
        status: Current connection status.
        last_ping: Unix time of the last end-of-stored-events signal.
        last_activity: Unix time of the last event received from the relay.
    """

    url: str
    assigned_region: str = ""
    role: RelayRole = RelayRole.INITIAL
    status: RelayStatus = RelayStatus.CONNECTING
    last_ping: float | None = None
    last_activity: float | None = None

    def with_status(self, status: RelayStatus, *, at: float | None = None) -> ConnectedRelay:
        """Return a copy with ``status`` set; ``CONNECTED`` also stamps ``last_ping``."""
        if status is RelayStatus.CONNECTED and at is not None:
            return replace(self, status=status, last_ping=at)
        return replace(self, status=status)

    def touched(self, at: float) -> ConnectedRelay:
        return replace(self, last_activity=at)


@dataclass(frozen=True, slots=True)
class ConnectionSnapshot:
    """Point-in-time view of the manager handed to state observers.

    Attributes:
        status: Aggregate status derived from the individual relays.
        status_text: Human-readable status, e.g. ``"Connected (3/5)"``.
        region: Region the local relays were last selected for.
        relays: Every tracked relay, initial relays first.
        event_count: Number of stored (deduplicated) events.
        region_count: Number of distinct stat keys observed.
    """

    status: RelayStatus
    status_text: str
    region: str | None
    relays: tuple[ConnectedRelay, ...]
    event_count: int
    region_count: int

    @property
    def connected_count(self) -> int:
        return sum(1 for r in self.relays if r.status is RelayStatus.CONNECTED)

    @property
    def local_relays(self) -> tuple[ConnectedRelay, ...]:
        return tuple(r for r in self.relays if r.role is RelayRole.LOCAL)
