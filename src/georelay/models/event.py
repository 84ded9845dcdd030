"""
Immutable inbound Nostr event as kept by the event store.

Built from the NIP-01 JSON object a relay sends inside an ``EVENT`` frame via
[StoredEvent.from_dict()][georelay.models.event.StoredEvent.from_dict]. The
ingestion path fills in ``region`` (the geohash or channel key the event was
counted under) and ``flagged`` with ``dataclasses.replace`` before storing.

See Also:
    [EventStore][georelay.services.manager.store.EventStore]: Deduplicating
        store of these events.
    [classify_event()][georelay.services.manager.utils.classify_event]: Per-kind
        acceptance rule applied before storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import TagName


_REQUIRED_FIELDS = ("id", "pubkey", "created_at", "kind", "tags", "content")


@dataclass(frozen=True, slots=True)
class StoredEvent:
    """Immutable Nostr event with the relay it was first received from.

    Attributes:
        id: 64-character hex event id. Identity for deduplication.
        pubkey: Author public key (hex).
        kind: Integer event kind.
        created_at: Unix timestamp set by the author.
        content: Raw event content.
        tags: Tags as tuples of strings, ``(name, value, ...)``.
        sig: Schnorr signature (hex), empty when unknown.
        source_relay: URL of the relay that delivered the event.
        region: Geohash or channel key assigned during ingestion.
        flagged: True when a lenient-kind event carried an invalid geohash tag.

    Raises:
        ValueError: If ``id`` is empty, ``kind`` or ``created_at`` is
            negative, or content/tags contain null bytes.
    """

    id: str
    pubkey: str
    kind: int
    created_at: int
    content: str
    tags: tuple[tuple[str, ...], ...] = ()
    sig: str = ""
    source_relay: str | None = None
    region: str = ""
    flagged: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("event id must not be empty")
        if self.kind < 0 or self.created_at < 0:
            raise ValueError(f"Event {self.id[:16]}... has negative kind or timestamp")
        if "\x00" in self.content:
            raise ValueError(f"Event {self.id[:16]}... content contains null bytes")

        tags = tuple(tuple(str(v) for v in tag) for tag in self.tags)
        for tag in tags:
            if any("\x00" in v for v in tag):
                raise ValueError(f"Event {self.id[:16]}... tags contain null bytes")
        object.__setattr__(self, "tags", tags)

    def tag(self, name: str | TagName) -> str | None:
        """Return the value of the first ``name`` tag that carries one."""
        for tag in self.tags:
            if len(tag) >= 2 and tag[0] == name:
                return tag[1]
        return None

    def tag_values(self, name: str | TagName) -> list[str]:
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]

    @classmethod
    def from_dict(cls, data: dict[str, Any], source_relay: str | None = None) -> StoredEvent:
        """Build an event from a NIP-01 JSON object.

        Args:
            data: Decoded event object (``id``, ``pubkey``, ``created_at``,
                ``kind``, ``tags``, ``content``, optionally ``sig``).
            source_relay: URL of the delivering relay.

        Raises:
            ValueError: If a required field is missing or has the wrong type.
        """
        missing = [name for name in _REQUIRED_FIELDS if name not in data]
        if missing:
            raise ValueError(f"event is missing fields: {', '.join(missing)}")

        tags = data["tags"]
        if not isinstance(tags, list) or not all(isinstance(t, list) for t in tags):
            raise ValueError("event tags must be a list of lists")
        if not isinstance(data["content"], str):
            raise ValueError("event content must be a string")

        try:
            kind = int(data["kind"])
            created_at = int(data["created_at"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid kind or created_at: {e}") from e

        return cls(
            id=str(data["id"]),
            pubkey=str(data["pubkey"]),
            kind=kind,
            created_at=created_at,
            content=data["content"],
            tags=tuple(tuple(t) for t in tags),
            sig=str(data.get("sig", "")),
            source_relay=source_relay,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object for this event."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }
