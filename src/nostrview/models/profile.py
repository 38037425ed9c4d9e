"""Typed views over the event kinds the viewer renders.

* [Profile][nostrview.models.profile.Profile] -- kind 0 metadata, whose
  content is a JSON object.
* [follow_list()][nostrview.models.profile.follow_list] -- pubkeys from a
  kind 3 contact list.
* [reaction_emoji()][nostrview.models.profile.reaction_emoji] -- display
  value of a kind 7 reaction.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Final

from ._validation import HEX64_RE
from .event import Event


DEFAULT_REACTION: Final[str] = "\N{THUMBS UP SIGN}"


@dataclass(frozen=True, slots=True)
class Profile:
    """Parsed kind 0 profile metadata.

    Well-known NIP-01/NIP-24 fields are lifted into attributes; anything
    else the author published is kept read-only in ``extra``.

    Attributes:
        pubkey: Author public key (hex).
        created_at: Timestamp of the source event, used to keep the newest.
        name: Short handle.
        display_name: Longer display name.
        about: Free-form biography.
        picture: Avatar URL.
        banner: Banner image URL.
        nip05: NIP-05 internet identifier.
        lud16: Lightning address.
        website: Personal website URL.
        extra: Remaining metadata fields.
    """

    pubkey: str
    created_at: int
    name: str | None = None
    display_name: str | None = None
    about: str | None = None
    picture: str | None = None
    banner: str | None = None
    nip05: str | None = None
    lud16: str | None = None
    website: str | None = None
    extra: MappingProxyType[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, repr=False
    )

    _KNOWN_FIELDS: ClassVar[tuple[str, ...]] = (
        "name",
        "display_name",
        "about",
        "picture",
        "banner",
        "nip05",
        "lud16",
        "website",
    )

    @classmethod
    def from_event(cls, event: Event) -> Profile:
        """Parse the JSON content of a kind 0 event.

        Non-string values of well-known fields are moved to ``extra``
        rather than rejected, since relays serve whatever clients wrote.

        Raises:
            ValueError: If the content is not a JSON object.
        """
        try:
            data = json.loads(event.content)
        except json.JSONDecodeError as e:
            raise ValueError(f"profile content is not valid JSON: {e}") from None
        if not isinstance(data, dict):
            raise ValueError("profile content must be a JSON object")

        known: dict[str, str] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key in cls._KNOWN_FIELDS and isinstance(value, str):
                known[key] = value
            else:
                extra[key] = value
        # Older clients publish camelCase displayName
        if "display_name" not in known and isinstance(extra.get("displayName"), str):
            known["display_name"] = extra["displayName"]

        return cls(
            pubkey=event.pubkey,
            created_at=event.created_at,
            extra=MappingProxyType(extra),
            **known,
        )

    @property
    def label(self) -> str:
        """Best human-readable name, falling back to a shortened pubkey."""
        return self.display_name or self.name or f"{self.pubkey[:8]}..."


def follow_list(event: Event) -> list[str]:
    """Return the followed pubkeys of a kind 3 event.

    Only ``p`` tags whose value is a 64-char hex key are kept; duplicates
    are dropped while preserving the published order.
    """
    seen: dict[str, None] = {}
    for value in event.tag_values("p"):
        if HEX64_RE.match(value):
            seen.setdefault(value.lower(), None)
    return list(seen)


def reaction_emoji(event: Event) -> str:
    """Return the display value of a kind 7 reaction (``+`` means a like)."""
    content = event.content.strip()
    if not content or content == "+":
        return DEFAULT_REACTION
    return content
