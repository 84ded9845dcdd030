"""Connection manager utility functions.

Pure helpers that do not need manager state: subscription filter
construction, per-kind event admission, local relay planning, initial
relay selection and status text.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from nostr_sdk import Filter, Kind, PublicKey, Timestamp

from georelay.models import EventKind, RelayStatus, StoredEvent, TagName
from georelay.utils.geohash import is_valid_geohash, normalize_geohash


# =============================================================================
# Filter Builders
# =============================================================================


def build_content_filter(
    kinds: Sequence[int],
    lookback_seconds: int,
    now: float,
    limit: int | None = None,
) -> Filter:
    """Build the primary subscription filter.

    Example:
        Serializes as ``{"kinds": [20000, 23333], "since": 1700000000}``.
    """
    since = max(0, int(now) - lookback_seconds)
    f = Filter().kinds([Kind(k) for k in kinds]).since(Timestamp.from_secs(since))
    if limit is not None:
        f = f.limit(limit)
    return f


def build_private_filter(
    pubkey: str,
    kinds: Sequence[int],
    lookback_seconds: int,
    now: float,
) -> Filter:
    """Build the private message filter addressed to ``pubkey`` (``#p`` tag)."""
    since = max(0, int(now) - lookback_seconds)
    f = (
        Filter()
        .kinds([Kind(k) for k in kinds])
        .pubkey(PublicKey.parse(pubkey))
        .since(Timestamp.from_secs(since))
    )
    return f


# =============================================================================
# Event Admission
# =============================================================================


def extract_tag(event: StoredEvent, name: str | TagName) -> str | None:
    """First value of tag ``name``, stripped, or None if absent or blank."""
    value = event.tag(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True, slots=True)
class Admission:
    """Outcome of [classify_event()][georelay.services.manager.utils.classify_event].

    Attributes:
        accepted: Whether the event enters stats and the store.
        key: Region key the event is counted under (empty when rejected).
        flagged: Accepted with an invalid geohash tag.
        reason: Short rejection or flag reason for logging.
    """

    accepted: bool
    key: str = ""
    flagged: bool = False
    reason: str = ""


def classify_event(event: StoredEvent) -> Admission:
    """Apply the per-kind acceptance rule.

    * Geohash messages (kind 20000) require a ``g`` tag that is a valid
      lowercase geohash as sent (``"NYC1"`` is rejected); anything else
      is rejected.
    * Channel messages (kind 23333) are always accepted. The key is the
      valid geohash if present, else the lowercased ``d`` channel name,
      else the lowercased raw ``g`` value. An invalid ``g`` flags the event.
    * Any other kind is keyed on a valid ``g`` tag when present and
      rejected otherwise.
    """
    geohash = extract_tag(event, TagName.GEOHASH)
    valid = geohash is not None and is_valid_geohash(geohash)

    if event.kind == EventKind.CHANNEL_MESSAGE:
        channel = extract_tag(event, TagName.CHANNEL)
        flagged = geohash is not None and not valid
        if valid and geohash:
            return Admission(accepted=True, key=geohash)
        if channel:
            return Admission(
                accepted=True,
                key=channel.lower(),
                flagged=flagged,
                reason="invalid_geohash" if flagged else "",
            )
        if geohash:
            return Admission(
                accepted=True, key=normalize_geohash(geohash), flagged=True, reason="invalid_geohash"
            )
        return Admission(accepted=False, reason="missing_channel")

    if geohash is None:
        return Admission(accepted=False, reason="missing_geohash")
    if not valid:
        return Admission(accepted=False, reason="invalid_geohash")
    return Admission(accepted=True, key=geohash)


# =============================================================================
# Relay Planning
# =============================================================================


def plan_local_relays(
    existing: Sequence[str],
    proposed: Iterable[str],
    initial: Iterable[str],
    max_local: int,
) -> list[str]:
    """Merge newly proposed proximity relays into the current local set.

    Proposals already local or already in the initial set are dropped.
    If everything fits under ``max_local`` all fresh relays are added;
    otherwise the remaining capacity is filled in proposal order. When no
    capacity is left the local set is replaced by the first ``max_local``
    fresh relays, so a region change always takes effect.

    Returns:
        The new local relay list, never longer than ``max_local``.
    """
    if max_local <= 0:
        return []

    blocked = set(existing) | set(initial)
    fresh = list(dict.fromkeys(url for url in proposed if url not in blocked))
    current = list(existing)[:max_local]

    if len(current) + len(fresh) <= max_local:
        return current + fresh

    capacity = max_local - len(current)
    if capacity > 0:
        return current + fresh[:capacity]
    if not fresh:
        return current
    return fresh[:max_local]


def select_spread_relays(
    prefixes: Iterable[str],
    closest: Callable[[str, int], list[str]],
) -> list[str]:
    """Pick the nearest relay to each prefix cell, skipping repeats."""
    selected: list[str] = []
    for prefix in prefixes:
        for url in closest(prefix, 1):
            if url not in selected:
                selected.append(url)
    return selected


# =============================================================================
# Status
# =============================================================================


def aggregate_status(enabled: bool, statuses: Iterable[RelayStatus]) -> RelayStatus:
    """Overall status: any connected relay wins, then any relay connecting."""
    if not enabled:
        return RelayStatus.DISCONNECTED
    seen = set(statuses)
    if RelayStatus.CONNECTED in seen:
        return RelayStatus.CONNECTED
    if RelayStatus.CONNECTING in seen:
        return RelayStatus.CONNECTING
    return RelayStatus.DISCONNECTED


def format_status_text(status: RelayStatus, connected: int, total: int) -> str:
    """Human-readable status, e.g. ``"Connected (3/5)"``."""
    if status is RelayStatus.CONNECTED:
        return f"Connected ({connected}/{total})"
    if status is RelayStatus.CONNECTING:
        return "Connecting..."
    return "Disconnected"
