"""
Immutable Nostr event received from a relay.

Events are parsed from the JSON object carried in an ``EVENT`` frame and
validated for shape only. The event id is trusted as given: neither the
content hash nor the Schnorr signature is re-computed locally, because the
viewer follows a trust-the-relay model.

See Also:
    [nostrview.models.message][]: Wire frame parsing that hands event
        payloads to [Event.from_dict()][nostrview.models.event.Event.from_dict].
    [nostrview.client.registry][]: Dispatches parsed events to subscribers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ._validation import (
    validate_hex64,
    validate_instance,
    validate_non_negative_int,
    validate_tags,
)
from .constants import EVENT_KIND_MAX


_REQUIRED_FIELDS = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event.

    Equality and hashing use the event ``id`` only, so the same event
    delivered by several relays compares equal and collapses in a ``set``.

    Attributes:
        id: Event id as 64-char lowercase hex.
        pubkey: Author public key as 64-char lowercase hex.
        created_at: Unix timestamp in seconds.
        kind: Integer event kind (0-65535).
        tags: Ordered tag arrays, each an ordered tuple of strings.
        content: Raw content string.
        sig: Signature hex as received (never verified).

    Examples:
        ```python
        event = Event.from_dict(payload)
        event.kind                 # 1
        event.tag_values("e")      # ['5c83da77af1dec6d...']
        ```
    """

    id: str
    pubkey: str = field(compare=False)
    created_at: int = field(compare=False)
    kind: int = field(compare=False)
    tags: tuple[tuple[str, ...], ...] = field(compare=False, repr=False)
    content: str = field(compare=False, repr=False)
    sig: str = field(compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", validate_hex64(self.id, "id"))
        object.__setattr__(self, "pubkey", validate_hex64(self.pubkey, "pubkey"))
        validate_non_negative_int(self.created_at, "created_at")
        validate_non_negative_int(self.kind, "kind")
        if self.kind > EVENT_KIND_MAX:
            raise ValueError(f"kind must be <= {EVENT_KIND_MAX}, got {self.kind}")
        validate_instance(self.tags, tuple, "tags")
        validate_instance(self.content, str, "content")
        validate_instance(self.sig, str, "sig")

    @classmethod
    def from_dict(cls, data: Any) -> Event:
        """Build an Event from a decoded JSON event object.

        Args:
            data: The third element of an ``EVENT`` frame.

        Returns:
            A validated [Event][nostrview.models.event.Event].

        Raises:
            TypeError: If *data* is not a mapping or a field has the wrong type.
            ValueError: If a required field is missing or out of range.
        """
        validate_instance(data, dict, "event")
        missing = [k for k in _REQUIRED_FIELDS if k not in data]
        if missing:
            raise ValueError(f"event is missing fields: {', '.join(missing)}")
        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=validate_tags(data["tags"], "tags"),
            content=data["content"],
            sig=data["sig"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the event as a JSON-serializable NIP-01 object."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in order."""
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]
