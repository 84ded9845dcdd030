"""
Unit tests for services.manager.utils module.

Tests:
- build_content_filter() / build_private_filter() JSON output
- classify_event() per-kind acceptance rule
- plan_local_relays() slot bound and replacement
- select_spread_relays() dedup across prefixes
- aggregate_status() / format_status_text()
"""

import json
from typing import Any

import pytest
from nostr_sdk import Filter

from georelay.models import RelayStatus, StoredEvent
from georelay.services.manager.utils import (
    aggregate_status,
    build_content_filter,
    build_private_filter,
    classify_event,
    extract_tag,
    format_status_text,
    plan_local_relays,
    select_spread_relays,
)


PUBKEY = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
NOW = 1_700_000_000.0


def _json(f: Filter) -> dict[str, Any]:
    result: dict[str, Any] = json.loads(f.as_json())
    return result


def _event(kind: int = 20000, **tags: Any) -> StoredEvent:
    return StoredEvent(
        id="e" * 64,
        pubkey="b" * 64,
        kind=kind,
        created_at=1_700_000_000,
        content="hi",
        tags=tuple((name, value) for name, value in tags.items()),
    )


# ============================================================================
# Filter Builders
# ============================================================================


class TestBuildContentFilter:
    """build_content_filter()."""

    def test_kinds_and_since(self) -> None:
        f = _json(build_content_filter([20000, 23333], 86400, NOW))
        assert sorted(f["kinds"]) == [20000, 23333]
        assert f["since"] == int(NOW) - 86400
        assert "limit" not in f

    def test_limit(self) -> None:
        f = _json(build_content_filter([20000], 3600, NOW, limit=50))
        assert f["limit"] == 50

    def test_since_never_negative(self) -> None:
        f = _json(build_content_filter([20000], 86400, 100.0))
        assert f["since"] == 0


class TestBuildPrivateFilter:
    """build_private_filter()."""

    def test_addressed_to_pubkey(self) -> None:
        f = _json(build_private_filter(PUBKEY, [1059], 172800, NOW))
        assert f["kinds"] == [1059]
        assert f["#p"] == [PUBKEY]
        assert f["since"] == int(NOW) - 172800


# ============================================================================
# Event Admission
# ============================================================================


class TestExtractTag:
    """extract_tag()."""

    def test_strips_value(self) -> None:
        assert extract_tag(_event(g=" 9q8y "), "g") == "9q8y"

    def test_blank_is_none(self) -> None:
        assert extract_tag(_event(g="   "), "g") is None

    def test_missing_is_none(self) -> None:
        assert extract_tag(_event(), "g") is None


class TestClassifyGeohashMessage:
    """classify_event() for kind 20000."""

    def test_valid_geohash(self) -> None:
        admission = classify_event(_event(g="9q8y"))
        assert admission.accepted
        assert admission.key == "9q8y"
        assert not admission.flagged

    def test_uppercase_rejected(self) -> None:
        admission = classify_event(_event(g="NYC1"))
        assert not admission.accepted
        assert admission.reason == "invalid_geohash"

    @pytest.mark.parametrize("value", ["9qa8", "hello!", "9q 8"])
    def test_invalid_alphabet_rejected(self, value: str) -> None:
        assert not classify_event(_event(g=value)).accepted

    def test_missing_geohash_rejected(self) -> None:
        admission = classify_event(_event(d="general"))
        assert not admission.accepted
        assert admission.reason == "missing_geohash"


class TestClassifyChannelMessage:
    """classify_event() for kind 23333."""

    def test_valid_geohash_is_key(self) -> None:
        admission = classify_event(_event(23333, g="u09t", d="paris"))
        assert admission.accepted
        assert admission.key == "u09t"
        assert not admission.flagged

    def test_invalid_geohash_with_channel_accepted_and_flagged(self) -> None:
        admission = classify_event(_event(23333, g="NYC1", d="General"))
        assert admission.accepted
        assert admission.key == "general"
        assert admission.flagged

    def test_channel_only(self) -> None:
        admission = classify_event(_event(23333, d="Tokyo"))
        assert admission.accepted
        assert admission.key == "tokyo"
        assert not admission.flagged

    def test_invalid_geohash_without_channel_keyed_on_raw_value(self) -> None:
        admission = classify_event(_event(23333, g="Hello!"))
        assert admission.accepted
        assert admission.key == "hello!"
        assert admission.flagged

    def test_no_tags_rejected(self) -> None:
        admission = classify_event(_event(23333))
        assert not admission.accepted
        assert admission.reason == "missing_channel"


class TestClassifyOtherKinds:
    """classify_event() for kinds outside the two message kinds."""

    def test_accepted_with_valid_geohash(self) -> None:
        admission = classify_event(_event(1, g="dr5r"))
        assert admission.accepted
        assert admission.key == "dr5r"

    def test_rejected_without_geohash(self) -> None:
        assert not classify_event(_event(1)).accepted


# ============================================================================
# Relay Planning
# ============================================================================


class TestPlanLocalRelays:
    """plan_local_relays()."""

    def test_partial_fill_keeps_existing(self) -> None:
        existing = ["wss://l1", "wss://l2", "wss://l3", "wss://l4"]
        planned = plan_local_relays(existing, ["wss://n1", "wss://n2", "wss://n3"], [], 5)
        assert planned == existing + ["wss://n1"]

    def test_everything_fits(self) -> None:
        planned = plan_local_relays(["wss://l1"], ["wss://n1", "wss://n2"], [], 5)
        assert planned == ["wss://l1", "wss://n1", "wss://n2"]

    def test_known_relays_dropped(self) -> None:
        planned = plan_local_relays(
            ["wss://l1"],
            ["wss://l1", "wss://i1", "wss://n1", "wss://n1"],
            ["wss://i1"],
            5,
        )
        assert planned == ["wss://l1", "wss://n1"]

    def test_full_set_replaced_by_fresh(self) -> None:
        existing = ["wss://l1", "wss://l2"]
        planned = plan_local_relays(existing, ["wss://n1", "wss://n2", "wss://n3"], [], 2)
        assert planned == ["wss://n1", "wss://n2"]

    def test_full_set_without_fresh_unchanged(self) -> None:
        existing = ["wss://l1", "wss://l2"]
        assert plan_local_relays(existing, ["wss://l1"], [], 2) == existing

    def test_zero_capacity(self) -> None:
        assert plan_local_relays(["wss://l1"], ["wss://n1"], [], 0) == []

    @pytest.mark.parametrize("max_local", [1, 2, 3, 5])
    def test_never_exceeds_bound(self, max_local: int) -> None:
        existing = [f"wss://l{i}" for i in range(max_local)]
        proposed = [f"wss://n{i}" for i in range(7)]
        assert len(plan_local_relays(existing, proposed, [], max_local)) <= max_local


class TestSelectSpreadRelays:
    """select_spread_relays()."""

    def test_one_per_prefix_without_repeats(self) -> None:
        table = {"9": ["wss://west"], "d": ["wss://east"], "f": ["wss://east"], "u": []}

        def closest(prefix: str, count: int) -> list[str]:
            return table[prefix][:count]

        assert select_spread_relays(["9", "d", "f", "u"], closest) == ["wss://west", "wss://east"]


# ============================================================================
# Status
# ============================================================================


class TestAggregateStatus:
    """aggregate_status()."""

    def test_disabled_is_disconnected(self) -> None:
        assert aggregate_status(False, [RelayStatus.CONNECTED]) is RelayStatus.DISCONNECTED

    def test_any_connected_wins(self) -> None:
        statuses = [RelayStatus.DISCONNECTED, RelayStatus.CONNECTING, RelayStatus.CONNECTED]
        assert aggregate_status(True, statuses) is RelayStatus.CONNECTED

    def test_connecting(self) -> None:
        statuses = [RelayStatus.DISCONNECTED, RelayStatus.CONNECTING]
        assert aggregate_status(True, statuses) is RelayStatus.CONNECTING

    def test_all_failed(self) -> None:
        assert aggregate_status(True, [RelayStatus.DISCONNECTED]) is RelayStatus.DISCONNECTED

    def test_no_relays(self) -> None:
        assert aggregate_status(True, []) is RelayStatus.DISCONNECTED


class TestFormatStatusText:
    """format_status_text()."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (RelayStatus.CONNECTED, "Connected (3/5)"),
            (RelayStatus.CONNECTING, "Connecting..."),
            (RelayStatus.DISCONNECTED, "Disconnected"),
        ],
    )
    def test_text(self, status: RelayStatus, expected: str) -> None:
        assert format_status_text(status, 3, 5) == expected
