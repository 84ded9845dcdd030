"""
Unit tests for models.geo and models.relay modules.

Tests:
- BoundingBox center and containment
- RelayEndpoint validation and url
- ConnectedRelay status transitions
- ConnectionSnapshot derived counts
"""

import math

import pytest

from georelay.models import (
    BoundingBox,
    ConnectedRelay,
    ConnectionSnapshot,
    RelayEndpoint,
    RelayRole,
    RelayStatus,
)


class TestBoundingBox:
    """BoundingBox helpers."""

    def test_center(self) -> None:
        box = BoundingBox(min_lat=0.0, max_lat=10.0, min_lon=-20.0, max_lon=0.0)
        assert box.center == (5.0, -10.0)

    def test_contains_edges(self) -> None:
        box = BoundingBox(min_lat=0.0, max_lat=10.0, min_lon=0.0, max_lon=10.0)
        assert box.contains(0.0, 10.0)
        assert not box.contains(10.1, 5.0)


class TestRelayEndpoint:
    """RelayEndpoint validation."""

    def test_url(self) -> None:
        assert RelayEndpoint("relay.example", 1.0, 2.0).url == "wss://relay.example"

    def test_empty_host(self) -> None:
        with pytest.raises(ValueError, match="host"):
            RelayEndpoint("", 1.0, 2.0)

    def test_nan_coordinates(self) -> None:
        with pytest.raises(ValueError, match="non-finite"):
            RelayEndpoint("relay.example", math.nan, 2.0)


class TestConnectedRelay:
    """ConnectedRelay immutable transitions."""

    def test_defaults(self) -> None:
        relay = ConnectedRelay(url="wss://a")
        assert relay.role is RelayRole.INITIAL
        assert relay.status is RelayStatus.CONNECTING
        assert relay.last_ping is None

    def test_connected_stamps_ping(self) -> None:
        relay = ConnectedRelay(url="wss://a").with_status(RelayStatus.CONNECTED, at=42.0)
        assert relay.status is RelayStatus.CONNECTED
        assert relay.last_ping == 42.0

    def test_disconnect_keeps_ping(self) -> None:
        relay = ConnectedRelay(url="wss://a", last_ping=42.0)
        assert relay.with_status(RelayStatus.DISCONNECTED, at=50.0).last_ping == 42.0

    def test_touched(self) -> None:
        assert ConnectedRelay(url="wss://a").touched(7.0).last_activity == 7.0


class TestConnectionSnapshot:
    """ConnectionSnapshot properties."""

    def test_counts(self) -> None:
        snapshot = ConnectionSnapshot(
            status=RelayStatus.CONNECTED,
            status_text="Connected (1/2)",
            region="9q8",
            relays=(
                ConnectedRelay(url="wss://a", status=RelayStatus.CONNECTED),
                ConnectedRelay(url="wss://b", role=RelayRole.LOCAL),
            ),
            event_count=0,
            region_count=0,
        )
        assert snapshot.connected_count == 1
        assert [r.url for r in snapshot.local_relays] == ["wss://b"]
