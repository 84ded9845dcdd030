"""
Unit tests for services.directory.utils module.

Tests:
- normalize_host() scheme and slash stripping
- parse_relay_csv() header, malformed rows and deduplication
- closest_relays() proximity ordering and tie-break
- load_bundled_snapshot()
"""

import pytest

from georelay.models import RelayEndpoint
from georelay.services.directory import (
    closest_relays,
    load_bundled_snapshot,
    normalize_host,
    parse_relay_csv,
)
from georelay.utils.distance import haversine_km
from georelay.utils.geohash import center


# ============================================================================
# normalize_host
# ============================================================================


class TestNormalizeHost:
    """normalize_host()."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("relay.example", "relay.example"),
            ("wss://relay.example/", "relay.example"),
            ("ws://relay.example", "relay.example"),
            ("https://relay.example//", "relay.example"),
            ("HTTP://relay.example", "relay.example"),
            ("  relay.example/  ", "relay.example"),
            ("wss://relay.example/nostr", "relay.example/nostr"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_host(raw) == expected


# ============================================================================
# parse_relay_csv
# ============================================================================


class TestParseRelayCsv:
    """parse_relay_csv()."""

    def test_header_skipped(self) -> None:
        text = "Relay URL,Latitude,Longitude\nrelay.example,40.0,-74.0\n"
        assert parse_relay_csv(text) == (RelayEndpoint("relay.example", 40.0, -74.0),)

    def test_header_detection_only_on_first_row(self) -> None:
        text = "a.example,1,2\nrelay url,3,4\n"
        hosts = [e.host for e in parse_relay_csv(text)]
        assert hosts == ["a.example", "relay url"]

    def test_no_header(self) -> None:
        assert len(parse_relay_csv("a.example,1,2\nb.example,3,4")) == 2

    def test_malformed_rows_skipped(self) -> None:
        text = "\n".join(
            [
                "good.example,1.5,2.5",
                "short.example,1.0",
                "nan.example,abc,2.0",
                ",1.0,2.0",
                "",
                "   ",
                "inf.example,inf,2.0",
                "also-good.example, -3 , 4 ",
            ]
        )
        hosts = [e.host for e in parse_relay_csv(text)]
        assert hosts == ["good.example", "also-good.example"]

    def test_schemes_stripped(self) -> None:
        (entry,) = parse_relay_csv("wss://relay.example/,1,2")
        assert entry.host == "relay.example"
        assert entry.url == "wss://relay.example"

    def test_duplicate_triples_deduplicated_in_order(self) -> None:
        text = "a.example,1,2\nb.example,3,4\nwss://a.example/,1,2\na.example,5,6\n"
        entries = parse_relay_csv(text)
        assert [(e.host, e.lat) for e in entries] == [
            ("a.example", 1.0),
            ("b.example", 3.0),
            ("a.example", 5.0),
        ]

    def test_extra_columns_ignored(self) -> None:
        (entry,) = parse_relay_csv("a.example,1,2,extra,cols")
        assert (entry.lat, entry.lon) == (1.0, 2.0)

    def test_empty(self) -> None:
        assert parse_relay_csv("") == ()


# ============================================================================
# closest_relays
# ============================================================================


class TestClosestRelays:
    """closest_relays()."""

    def test_new_york_geohash_picks_new_york_relay(self) -> None:
        entries = (
            RelayEndpoint("r1.example", 40.0, -74.0),
            RelayEndpoint("r2.example", 51.5, -0.1),
        )
        assert closest_relays(entries, "dr5r", 1) == ["wss://r1.example"]

    def test_ordering_is_non_decreasing(self) -> None:
        entries = parse_relay_csv(load_bundled_snapshot())
        urls = closest_relays(entries, "u4pr", 10)
        by_url = {e.url: e for e in entries}
        lat, lon = center("u4pr")
        distances = [haversine_km(lat, lon, by_url[u].lat, by_url[u].lon) for u in urls]
        assert distances == sorted(distances)

    def test_ties_keep_directory_order(self) -> None:
        entries = (
            RelayEndpoint("first.example", 10.0, 10.0),
            RelayEndpoint("second.example", 10.0, 10.0),
        )
        assert closest_relays(entries, "s", 2) == ["wss://first.example", "wss://second.example"]

    def test_count_larger_than_directory(self) -> None:
        entries = (RelayEndpoint("only.example", 0.0, 0.0),)
        assert closest_relays(entries, "s", 5) == ["wss://only.example"]

    def test_empty_directory(self) -> None:
        assert closest_relays((), "dr5r", 3) == []

    def test_zero_count(self) -> None:
        entries = (RelayEndpoint("only.example", 0.0, 0.0),)
        assert closest_relays(entries, "s", 0) == []


class TestBundledSnapshot:
    """load_bundled_snapshot()."""

    def test_parses_to_entries(self) -> None:
        entries = parse_relay_csv(load_bundled_snapshot())
        assert len(entries) > 10
        assert entries[0].host == "relay.damus.io"
